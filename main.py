"""Static site server entrypoint."""

import sys

from static_server.bootstrap.config import config_from_args, parse_cli_args
from static_server.bootstrap.logging_setup import configure_logging
from static_server.domain.correlation_id import get_logger
from static_server.lifecycle.errors import ConfigurationError, UncleanShutdown
from static_server.lifecycle.manager import build_server, enabled_features

SERVER_LOGGER = get_logger("server")


def main(argv: list[str] | None = None) -> int:
    """Run the server until shutdown and return the process exit code."""
    args = parse_cli_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.log_level, args.log_destination)
    config = config_from_args(args)

    SERVER_LOGGER.info(
        "Starting static server",
        extra={
            "event": "server_starting",
            "host": config.host,
            "port": config.port,
            "directory": config.directory,
            "log_destination": args.log_destination,
            "log_level": args.log_level,
            "tls": config.tls_enabled,
            "features": enabled_features(config),
            "grace_seconds": config.shutdown_grace_seconds,
        },
    )

    try:
        runtime = build_server(config)
        runtime.run()
    except ConfigurationError as error:
        SERVER_LOGGER.critical(
            "Server failed to start",
            extra={"event": "startup_failed", "error": str(error)},
        )
        return 1
    except UncleanShutdown as error:
        SERVER_LOGGER.error(
            "Server did not shut down cleanly",
            extra={
                "event": "shutdown_unclean",
                "error": str(error),
                "remaining_workers": error.remaining_workers,
            },
        )
        return 1
    except OSError as error:
        SERVER_LOGGER.critical(
            "Server stopped on socket error",
            extra={"event": "server_failed", "error": str(error)},
        )
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
