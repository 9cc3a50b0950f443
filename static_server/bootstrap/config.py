"""Server configuration and CLI argument parsing."""

import argparse
import os
from dataclasses import dataclass
from typing import Optional


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value is not None else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value is not None else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: list[str]) -> list[str]:
    value = os.getenv(name)
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


DEFAULT_HOST = os.getenv("STATIC_SERVER_HOST", "0.0.0.0")
DEFAULT_PORT = _env_int("STATIC_SERVER_PORT", 8080)
DEFAULT_DIRECTORY = os.getenv("STATIC_SERVER_DIRECTORY", "public")
DEFAULT_READ_TIMEOUT = _env_float("STATIC_SERVER_READ_TIMEOUT", 5.0)
DEFAULT_READ_HEADER_TIMEOUT = _env_float("STATIC_SERVER_READ_HEADER_TIMEOUT", 10.0)
DEFAULT_WRITE_TIMEOUT = _env_float("STATIC_SERVER_WRITE_TIMEOUT", 5.0)
DEFAULT_IDLE_TIMEOUT = _env_float("STATIC_SERVER_IDLE_TIMEOUT", 60.0)
DEFAULT_MAX_HEADER_BYTES = _env_int("STATIC_SERVER_MAX_HEADER_BYTES", 1 << 20)
DEFAULT_MAX_BODY_BYTES = _env_int("STATIC_SERVER_MAX_BODY_BYTES", 5 * 1024 * 1024)
DEFAULT_SHUTDOWN_GRACE_SECONDS = _env_float(
    "STATIC_SERVER_SHUTDOWN_GRACE_SECONDS", 30.0
)
DEFAULT_ENABLE_CORS = _env_bool("STATIC_SERVER_CORS", True)
DEFAULT_ENABLE_HEALTH = _env_bool("STATIC_SERVER_HEALTH", True)
DEFAULT_ENABLE_DEBUG = _env_bool("STATIC_SERVER_DEBUG_ENDPOINTS", False)
DEFAULT_ENABLE_METRICS = _env_bool("STATIC_SERVER_METRICS", True)
DEFAULT_ENABLE_ACCESS_LOG = _env_bool("STATIC_SERVER_ACCESS_LOG", True)
DEFAULT_ENABLE_SECURITY_HEADERS = _env_bool("STATIC_SERVER_SECURITY_HEADERS", True)
DEFAULT_CORS_ALLOWED_ORIGINS = _env_list("STATIC_SERVER_CORS_ALLOWED_ORIGINS", ["*"])
DEFAULT_CORS_MAX_AGE = _env_int("STATIC_SERVER_CORS_MAX_AGE", 86400)
DEFAULT_CSP_REPORT_URI = os.getenv("STATIC_SERVER_CSP_REPORT_URI")


@dataclass(frozen=True)
class ServerConfig:
    """Immutable settings owned by the server for its whole lifetime."""

    # pylint: disable=too-many-instance-attributes
    directory: str = DEFAULT_DIRECTORY
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    cert: Optional[str] = None
    key: Optional[str] = None
    enable_cors: bool = DEFAULT_ENABLE_CORS
    enable_health: bool = DEFAULT_ENABLE_HEALTH
    enable_debug: bool = DEFAULT_ENABLE_DEBUG
    enable_metrics: bool = DEFAULT_ENABLE_METRICS
    enable_access_log: bool = DEFAULT_ENABLE_ACCESS_LOG
    enable_security_headers: bool = DEFAULT_ENABLE_SECURITY_HEADERS
    read_timeout: float = DEFAULT_READ_TIMEOUT
    read_header_timeout: float = DEFAULT_READ_HEADER_TIMEOUT
    write_timeout: float = DEFAULT_WRITE_TIMEOUT
    idle_timeout: float = DEFAULT_IDLE_TIMEOUT
    max_header_bytes: int = DEFAULT_MAX_HEADER_BYTES
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES
    shutdown_grace_seconds: float = DEFAULT_SHUTDOWN_GRACE_SECONDS
    cors_allowed_origins: tuple[str, ...] = tuple(DEFAULT_CORS_ALLOWED_ORIGINS)
    cors_max_age: int = DEFAULT_CORS_MAX_AGE
    csp_report_uri: Optional[str] = DEFAULT_CSP_REPORT_URI

    @property
    def tls_enabled(self) -> bool:
        return bool(self.cert and self.key)


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments for server configuration."""
    parser = argparse.ArgumentParser(description="Static site server")
    parser.add_argument(
        "--directory", default=DEFAULT_DIRECTORY, help="Content root to serve"
    )
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--cert", help="Path to TLS certificate file")
    parser.add_argument("--key", help="Path to TLS private key file")
    default_log_level = os.getenv("STATIC_SERVER_LOG_LEVEL", "INFO").upper()
    default_destination = os.getenv("STATIC_SERVER_LOG_DESTINATION", "stdout")
    parser.add_argument(
        "--log-level",
        default=default_log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default=default_destination,
        help="stdout or a file path",
    )
    parser.add_argument(
        "--read-timeout",
        type=float,
        default=DEFAULT_READ_TIMEOUT,
        help="Seconds allowed to read a whole request",
    )
    parser.add_argument(
        "--read-header-timeout",
        type=float,
        default=DEFAULT_READ_HEADER_TIMEOUT,
        help="Seconds allowed to read request headers",
    )
    parser.add_argument(
        "--write-timeout",
        type=float,
        default=DEFAULT_WRITE_TIMEOUT,
        help="Seconds allowed to write a response",
    )
    parser.add_argument(
        "--idle-timeout",
        type=float,
        default=DEFAULT_IDLE_TIMEOUT,
        help="Seconds a keep-alive connection may stay idle",
    )
    parser.add_argument(
        "--max-header-bytes",
        type=int,
        default=DEFAULT_MAX_HEADER_BYTES,
        help="Maximum size of the request header block",
    )
    parser.add_argument(
        "--max-body-bytes",
        type=int,
        default=DEFAULT_MAX_BODY_BYTES,
        help="Maximum accepted request body size",
    )
    parser.add_argument(
        "--shutdown-grace-seconds",
        type=float,
        default=DEFAULT_SHUTDOWN_GRACE_SECONDS,
        help="Grace period in seconds for graceful shutdown",
    )
    parser.add_argument(
        "--cors",
        action=argparse.BooleanOptionalAction,
        default=DEFAULT_ENABLE_CORS,
        help="Answer preflights and restrict methods to GET/POST",
    )
    parser.add_argument(
        "--health",
        action=argparse.BooleanOptionalAction,
        default=DEFAULT_ENABLE_HEALTH,
        help="Expose /health",
    )
    parser.add_argument(
        "--debug-endpoints",
        action=argparse.BooleanOptionalAction,
        default=DEFAULT_ENABLE_DEBUG,
        help="Expose /debug/pprof/ introspection endpoints",
    )
    parser.add_argument(
        "--metrics",
        action=argparse.BooleanOptionalAction,
        default=DEFAULT_ENABLE_METRICS,
        help="Expose /metrics in the Prometheus text format",
    )
    parser.add_argument(
        "--access-log",
        action=argparse.BooleanOptionalAction,
        default=DEFAULT_ENABLE_ACCESS_LOG,
        help="Record per-request logs and metrics",
    )
    parser.add_argument(
        "--security-headers",
        action=argparse.BooleanOptionalAction,
        default=DEFAULT_ENABLE_SECURITY_HEADERS,
        help="Attach HSTS, CSP and related headers",
    )
    parser.add_argument(
        "--cors-allowed-origins",
        default=",".join(DEFAULT_CORS_ALLOWED_ORIGINS),
        help="Comma-separated list of allowed CORS origins (default: *)",
    )
    parser.add_argument(
        "--cors-max-age",
        type=int,
        default=DEFAULT_CORS_MAX_AGE,
        help="CORS preflight cache duration in seconds",
    )
    parser.add_argument(
        "--csp-report-uri",
        default=DEFAULT_CSP_REPORT_URI,
        help="Endpoint receiving Content-Security-Policy violation reports",
    )
    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Freeze parsed CLI arguments into a ServerConfig."""
    return ServerConfig(
        directory=args.directory,
        host=args.host,
        port=args.port,
        cert=args.cert,
        key=args.key,
        enable_cors=args.cors,
        enable_health=args.health,
        enable_debug=args.debug_endpoints,
        enable_metrics=args.metrics,
        enable_access_log=args.access_log,
        enable_security_headers=args.security_headers,
        read_timeout=args.read_timeout,
        read_header_timeout=args.read_header_timeout,
        write_timeout=args.write_timeout,
        idle_timeout=args.idle_timeout,
        max_header_bytes=args.max_header_bytes,
        max_body_bytes=args.max_body_bytes,
        shutdown_grace_seconds=args.shutdown_grace_seconds,
        cors_allowed_origins=tuple(
            o.strip() for o in args.cors_allowed_origins.split(",") if o.strip()
        ),
        cors_max_age=args.cors_max_age,
        csp_report_uri=args.csp_report_uri,
    )
