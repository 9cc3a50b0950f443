"""Failures that end the server process."""


class ConfigurationError(Exception):
    """Startup configuration is unusable; the server must not listen."""


class UncleanShutdown(Exception):
    """Shutdown finished without every connection draining."""

    def __init__(self, message: str, remaining_workers: int = 0) -> None:
        super().__init__(message)
        self.remaining_workers = remaining_workers


class ShutdownTimeout(UncleanShutdown):
    """The grace period elapsed with connections still open."""


class ShutdownForced(UncleanShutdown):
    """A second termination request cut the grace period short."""
