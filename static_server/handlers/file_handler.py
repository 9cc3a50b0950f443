"""Resolver-backed file serving."""

import logging
import mimetypes
import os
from email.utils import formatdate, parsedate_to_datetime
from http import HTTPStatus
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Union

from static_server.domain.correlation_id import get_logger
from static_server.domain.http_types import Handler, HttpRequest, HttpResponse, should_close
from static_server.domain.resolution import NotFound, Redirect, Serve, clean_path, resolve
from static_server.domain.response_builders import not_found_response, redirect_response

FILE_LOGGER = get_logger("handlers.file")

NOT_FOUND_DOCUMENT = "404.html"
MISSING_PAGE_LABEL = "<not_found>"
CHUNK_SIZE = 65536


def stream_file(file_handle: BinaryIO, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield file contents in fixed-size chunks for streaming responses."""
    while True:
        chunk = file_handle.read(chunk_size)
        if not chunk:
            break
        yield chunk


def _content_type_for_path(filepath: Path) -> str:
    mime_type, _ = mimetypes.guess_type(filepath.as_posix())
    if mime_type is None:
        return "application/octet-stream"
    if mime_type.startswith("text/") or mime_type in (
        "application/javascript",
        "application/json",
        "image/svg+xml",
    ):
        return f"{mime_type}; charset=utf-8"
    return mime_type


def _not_modified(request: HttpRequest, mtime: float) -> bool:
    if request.method not in ("GET", "HEAD"):
        return False
    header = request.headers.get("if-modified-since")
    if not header:
        return False
    try:
        since = parsedate_to_datetime(header)
    except (TypeError, ValueError):
        return False
    if since is None or since.tzinfo is None:
        return False
    return int(mtime) <= since.timestamp()


def load_not_found_page(root: Union[str, Path]) -> Handler:
    """Return a 404 responder using ``root/404.html`` when it can be read."""
    page_path = Path(root) / NOT_FOUND_DOCUMENT
    try:
        page = page_path.read_bytes()
    except OSError as error:
        FILE_LOGGER.debug(
            "Custom not-found page unavailable",
            extra={
                "event": "not_found_page_missing",
                "file": page_path.as_posix(),
                "error_type": type(error).__name__,
            },
        )
        return not_found_response

    def not_found_page(request: HttpRequest) -> HttpResponse:
        return HttpResponse(
            HTTPStatus.NOT_FOUND,
            {"Content-Type": "text/html; charset=utf-8"},
            page,
            should_close(request.headers),
            file_path=page_path,
        )

    return not_found_page


class SiteHandler:
    """Serves the content root: files, canonical redirects, or not-found."""

    def __init__(self, root: Union[str, Path], not_found: Optional[Handler] = None) -> None:
        self.root = Path(root)
        self.not_found = not_found if not_found is not None else not_found_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        outcome = resolve(self.root, request.path, on_error=self._filesystem_error)
        if isinstance(outcome, Serve):
            return self._serve_file(request, outcome.path)
        if isinstance(outcome, Redirect):
            if FILE_LOGGER.logger.isEnabledFor(logging.DEBUG):
                FILE_LOGGER.debug(
                    "Redirecting to canonical path",
                    extra={
                        "event": "canonical_redirect",
                        "path": request.path,
                        "location": outcome.location,
                    },
                )
            return redirect_response(request, outcome.location, outcome.permanent)
        if isinstance(outcome, NotFound) and outcome.rejected:
            FILE_LOGGER.warning(
                "Rejected path outside content root",
                extra={
                    "event": "forbidden_path",
                    "path": request.path,
                    "method": request.method,
                },
            )
        return self.not_found(request)

    def page_label(self, request_path: str) -> str:
        """Metric label for a hit: the cleaned path when it reaches a file.

        Paths that end in not-found, directly or after a redirect, share
        ``MISSING_PAGE_LABEL``.
        """
        outcome = resolve(self.root, request_path)
        if isinstance(outcome, Redirect):
            outcome = resolve(self.root, outcome.location)
        if isinstance(outcome, Serve):
            return clean_path(request_path) or MISSING_PAGE_LABEL
        return MISSING_PAGE_LABEL

    def _filesystem_error(self, path: Path, error: OSError) -> None:
        FILE_LOGGER.warning(
            "Filesystem error during resolution",
            extra={
                "event": "filesystem_error",
                "file": path.as_posix(),
                "error_type": type(error).__name__,
                "errno": error.errno,
            },
        )

    def _serve_file(self, request: HttpRequest, path: Path) -> HttpResponse:
        try:
            file_handle = open(path, "rb")  # pylint: disable=consider-using-with
        except OSError as error:
            self._filesystem_error(path, error)
            return self.not_found(request)
        try:
            info = os.fstat(file_handle.fileno())
        except OSError:
            file_handle.close()
            raise

        headers = {
            "Content-Type": _content_type_for_path(path),
            "Last-Modified": formatdate(info.st_mtime, usegmt=True),
        }
        if _not_modified(request, info.st_mtime):
            file_handle.close()
            del headers["Content-Type"]
            return HttpResponse(
                HTTPStatus.NOT_MODIFIED,
                headers,
                close_connection=should_close(request.headers),
                file_path=path,
            )

        response = HttpResponse(
            HTTPStatus.OK,
            headers,
            close_connection=should_close(request.headers),
            body_iter=stream_file(file_handle),
            content_length=info.st_size,
            file_path=path,
        )
        response.on_complete(file_handle.close)
        return response
