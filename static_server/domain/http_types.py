"""Shared HTTP type definitions to avoid circular imports."""

from dataclasses import dataclass, field
from http import HTTPStatus
from pathlib import Path
from typing import Callable, Iterable, Optional

from static_server.domain.correlation_id import get_logger

_TYPES_LOGGER = get_logger("domain.http_types")


@dataclass(frozen=True)
class HttpRequest:
    """Represents a parsed HTTP request.

    ``path`` is the percent-decoded path component of the request target,
    ``query`` the raw query string without the leading ``?``.
    """

    method: str
    path: str
    headers: dict[str, str]
    body: bytes = b""
    query: str = ""
    remote_addr: str = ""


@dataclass
class HttpResponse:
    """Represents an HTTP response to be sent to a client.

    When ``body_iter`` is set the body is streamed; ``content_length`` then
    announces its size, otherwise chunked transfer encoding is used.
    ``file_path`` records which file on disk backs the response, if any.
    """

    status: int
    headers: dict[str, str]
    body: bytes = b""
    close_connection: bool = False
    body_iter: Optional[Iterable[bytes]] = None
    content_length: Optional[int] = None
    file_path: Optional[Path] = None
    _on_complete: list[Callable[[], None]] = field(default_factory=list, repr=False)

    def __post_init__(self) -> None:
        self.status = int(self.status)

    @property
    def status_line(self) -> str:
        try:
            phrase = HTTPStatus(self.status).phrase
        except ValueError:
            phrase = ""
        return f"HTTP/1.1 {self.status} {phrase}".rstrip()

    @property
    def use_chunked(self) -> bool:
        return self.body_iter is not None and self.content_length is None

    def on_complete(self, callback: Callable[[], None]) -> None:
        """Register work to run once the response has been fully written."""
        self._on_complete.append(callback)

    def finish(self) -> None:
        """Run completion callbacks exactly once, most recent first."""
        callbacks, self._on_complete = self._on_complete, []
        for callback in reversed(callbacks):
            try:
                callback()
            except Exception:  # pylint: disable=broad-except
                _TYPES_LOGGER.exception("Response completion callback failed")


Handler = Callable[[HttpRequest], HttpResponse]


def should_close(headers: dict[str, str]) -> bool:
    """Determine whether the connection should be closed after responding."""
    return headers.get("connection", "").lower() == "close"
