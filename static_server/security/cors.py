"""CORS (Cross-Origin Resource Sharing) gate for the static server."""

from dataclasses import dataclass
from http import HTTPStatus
from typing import Optional

from static_server.domain.correlation_id import get_logger
from static_server.domain.http_types import Handler, HttpRequest, HttpResponse
from static_server.domain.response_builders import (
    empty_response,
    method_not_allowed_response,
)

CORS_LOGGER = get_logger("security.cors")

# Fixed allow-list, not configurable.
PASSTHROUGH_METHODS = ("GET", "POST")
ALLOW_HEADER = PASSTHROUGH_METHODS + ("OPTIONS",)


@dataclass(frozen=True)
class CorsConfig:
    """CORS configuration for cross-origin resource sharing."""

    allowed_origins: tuple[str, ...] = ("*",)
    max_age: int = 86400


def determine_allowed_origin(origin: Optional[str], cors_config: CorsConfig) -> Optional[str]:
    """Return the Access-Control-Allow-Origin value for ``origin``, if any."""
    if "*" in cors_config.allowed_origins:
        return "*"
    if origin and origin in cors_config.allowed_origins:
        return origin
    return None


def apply_cors_headers(
    headers: dict[str, str], request: HttpRequest, cors_config: CorsConfig
) -> None:
    """Attach the permissive CORS headers shared by preflights and requests."""
    allowed_origin = determine_allowed_origin(request.headers.get("origin"), cors_config)
    if allowed_origin is not None:
        headers["Access-Control-Allow-Origin"] = allowed_origin
        if allowed_origin != "*":
            headers["Vary"] = "Origin"
    headers["Access-Control-Allow-Methods"] = ", ".join(PASSTHROUGH_METHODS)
    headers["Access-Control-Max-Age"] = str(cors_config.max_age)


def is_preflight_request(request: HttpRequest) -> bool:
    """Every OPTIONS request is answered as a preflight."""
    return request.method == "OPTIONS"


def preflight_response(request: HttpRequest, cors_config: CorsConfig) -> HttpResponse:
    """Create a 204 response for CORS preflight OPTIONS requests."""
    response = empty_response(request, HTTPStatus.NO_CONTENT)
    apply_cors_headers(response.headers, request, cors_config)
    return response


def cors_gate(handler: Handler, cors_config: Optional[CorsConfig] = None) -> Handler:
    """Dispatch on method: preflight, pass through, or refuse with 405."""
    config = cors_config if cors_config is not None else CorsConfig()

    def gated(request: HttpRequest) -> HttpResponse:
        if is_preflight_request(request):
            return preflight_response(request, config)
        if request.method in PASSTHROUGH_METHODS:
            response = handler(request)
            apply_cors_headers(response.headers, request, config)
            return response
        CORS_LOGGER.info(
            "Method not allowed",
            extra={
                "event": "method_not_allowed",
                "method": request.method,
                "path": request.path,
            },
        )
        return method_not_allowed_response(request, ALLOW_HEADER)

    return gated
