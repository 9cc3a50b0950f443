"""Pure HTTP response builders."""

import html
import urllib.parse
from http import HTTPStatus
from typing import Optional

from static_server.domain.http_types import HttpRequest, HttpResponse, should_close

PLAIN_TEXT = "text/plain; charset=utf-8"


def _close_after(request: Optional[HttpRequest]) -> bool:
    return should_close(request.headers) if request is not None else True


def empty_response(request: HttpRequest, status: int = 200) -> HttpResponse:
    """Return a response with no body."""
    return HttpResponse(status, {}, b"", should_close(request.headers))


def text_response(
    message: str, request: Optional[HttpRequest], status: int = 200
) -> HttpResponse:
    """Return a text/plain response."""
    headers = {"Content-Type": PLAIN_TEXT, "X-Content-Type-Options": "nosniff"}
    return HttpResponse(status, headers, message.encode(), _close_after(request))


def error_response(status: int, request: Optional[HttpRequest] = None) -> HttpResponse:
    """Return a bare error response carrying only the status phrase.

    Without a parsed request the connection state is unknown, so it closes.
    """
    return text_response(HTTPStatus(status).phrase + "\n", request, status)


def not_found_response(request: HttpRequest) -> HttpResponse:
    """Return a plain 404 response reusing the connection preference."""
    return error_response(HTTPStatus.NOT_FOUND, request)


def redirect_response(
    request: HttpRequest, location: str, permanent: bool = True
) -> HttpResponse:
    """Redirect to ``location`` keeping the request's query string."""
    status = HTTPStatus.MOVED_PERMANENTLY if permanent else HTTPStatus.FOUND
    target = urllib.parse.quote(location, safe="/")
    if request.query:
        target = f"{target}?{request.query}"
    body = f'<a href="{html.escape(target)}">{status.phrase}</a>.\n'
    headers = {"Location": target, "Content-Type": "text/html; charset=utf-8"}
    return HttpResponse(status, headers, body.encode(), should_close(request.headers))


def method_not_allowed_response(
    request: HttpRequest, allowed_methods: tuple[str, ...]
) -> HttpResponse:
    """Produce a 405 response enumerating the supported HTTP methods."""
    response = error_response(HTTPStatus.METHOD_NOT_ALLOWED, request)
    response.headers["Allow"] = ", ".join(allowed_methods)
    return response


def draining_response() -> HttpResponse:
    """Produce a 503 response indicating the server is draining."""
    return HttpResponse(
        HTTPStatus.SERVICE_UNAVAILABLE, {"Content-Type": PLAIN_TEXT}, b"draining", True
    )
