"""Static security and caching headers."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from static_server.domain.http_types import Handler, HttpRequest, HttpResponse

STRICT_TRANSPORT_SECURITY = "max-age=63072000; includeSubDomains; preload"
REFERRER_POLICY = "strict-origin-when-cross-origin"
PERMISSIONS_POLICY = ", ".join(
    f"{feature}=()"
    for feature in (
        "accelerometer",
        "camera",
        "geolocation",
        "gyroscope",
        "magnetometer",
        "microphone",
        "payment",
        "usb",
        "interest-cohort",
    )
)
CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "img-src 'self' data:; "
    "style-src 'self' 'unsafe-inline'; "
    "object-src 'none'; "
    "base-uri 'self'; "
    "frame-ancestors 'none'"
)
REPORT_GROUP = "csp-endpoint"

LONG_CACHE = "public, max-age=2592000"
LONG_CACHE_SUFFIXES = frozenset(
    {
        # fonts
        ".woff", ".woff2", ".ttf", ".otf", ".eot",
        # images
        ".png", ".jpg", ".jpeg", ".gif", ".webp", ".avif", ".svg", ".ico",
        # styles and scripts
        ".css", ".js", ".mjs",
    }
)


@dataclass(frozen=True)
class SecurityHeadersConfig:
    csp_report_uri: Optional[str] = None


def content_security_policy(config: SecurityHeadersConfig) -> str:
    if not config.csp_report_uri:
        return CONTENT_SECURITY_POLICY
    return (
        f"{CONTENT_SECURITY_POLICY}; "
        f"report-uri {config.csp_report_uri}; report-to {REPORT_GROUP}"
    )


def security_headers_for(
    file_path: Optional[Path], config: Optional[SecurityHeadersConfig] = None
) -> dict[str, str]:
    """Headers for a response backed by ``file_path`` (None when not a file)."""
    config = config if config is not None else SecurityHeadersConfig()
    headers = {
        "Strict-Transport-Security": STRICT_TRANSPORT_SECURITY,
        "Referrer-Policy": REFERRER_POLICY,
        "Content-Security-Policy": content_security_policy(config),
        "Permissions-Policy": PERMISSIONS_POLICY,
        "X-Content-Type-Options": "nosniff",
    }
    if config.csp_report_uri:
        headers["Reporting-Endpoints"] = f'{REPORT_GROUP}="{config.csp_report_uri}"'
    if file_path is not None and file_path.suffix.lower() in LONG_CACHE_SUFFIXES:
        headers["Cache-Control"] = LONG_CACHE
    return headers


def security_headers(
    handler: Handler, config: Optional[SecurityHeadersConfig] = None
) -> Handler:
    """Middleware adding security headers without touching the body."""

    def secured(request: HttpRequest) -> HttpResponse:
        response = handler(request)
        for name, value in security_headers_for(response.file_path, config).items():
            response.headers.setdefault(name, value)
        return response

    return secured
