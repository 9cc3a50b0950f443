"""HTTP Input/Output operations."""

import socket
import time
import urllib.parse
from dataclasses import dataclass
from email.utils import formatdate
from typing import Optional, Tuple

from static_server.domain.correlation_id import (
    adopt_inbound_correlation_id,
    get_correlation_id,
    get_logger,
)
from static_server.domain.http_types import HttpRequest, HttpResponse

IO_LOGGER = get_logger("io")

HEADER_DELIMITER = b"\r\n\r\n"
RECV_SIZE = 4096
BODYLESS_STATUSES = (204, 304)


class RequestEntityTooLarge(Exception):
    """Raised when a request body exceeds configured limits."""


class RequestHeaderTooLarge(Exception):
    """Raised when the request header block exceeds configured limits."""


@dataclass(frozen=True)
class ReadLimits:
    """Per-request read deadlines (seconds) and size caps (bytes)."""

    read_timeout: float
    read_header_timeout: float
    max_header_bytes: int
    max_body_bytes: int


def _recv_with_deadline(client_socket: socket.socket, deadline: float) -> bytes:
    """Receive data from socket with a deadline, raising TimeoutError if exceeded."""
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise TimeoutError("Request deadline exceeded")
    client_socket.settimeout(remaining)
    return client_socket.recv(RECV_SIZE)


def _send_with_deadline(client_socket: socket.socket, data: bytes, deadline: float) -> None:
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise TimeoutError("Response deadline exceeded")
    client_socket.settimeout(remaining)
    client_socket.sendall(data)


def parse_headers(lines: list[str]) -> dict[str, str]:
    """Convert raw header lines into a lowercase-keyed dictionary."""
    parsed: dict[str, str] = {}
    for line in lines:
        name, sep, value = line.partition(":")
        if not sep or not name or name != name.strip():
            raise ValueError("Malformed header line")
        key = name.lower()
        value = value.strip()
        if key in parsed and key not in ("host", "content-length"):
            parsed[key] = f"{parsed[key]}, {value}"
        else:
            parsed[key] = value
    return parsed


def parse_request_line(request_line: str) -> Tuple[str, str, str, str]:
    """Split the request line into method, decoded path, raw query and version."""
    try:
        method, target, version = request_line.split(" ", 2)
    except ValueError as exc:
        raise ValueError("Invalid request line") from exc
    if not method.isalpha() or not version.startswith("HTTP/1."):
        raise ValueError("Invalid request line")

    if target == "*" and method == "OPTIONS":
        return method, target, "", version
    parsed_target = urllib.parse.urlsplit(target)
    path = urllib.parse.unquote(parsed_target.path)
    if not path.startswith("/"):
        raise ValueError("Invalid request target")
    return method, path, parsed_target.query, version


def determine_content_length(headers: dict[str, str], max_body_bytes: int) -> int:
    """Validate and return the declared Content-Length for the request."""
    if "transfer-encoding" in headers:
        raise ValueError("Transfer-Encoding request bodies are not supported")
    header_value = headers.get("content-length")
    if header_value is None:
        return 0
    try:
        content_length = int(header_value)
    except ValueError as exc:
        raise ValueError("Invalid Content-Length") from exc
    if content_length < 0:
        raise ValueError("Negative Content-Length")
    if content_length > max_body_bytes:
        raise RequestEntityTooLarge
    return content_length


def receive_request(
    client_socket: socket.socket,
    buffer: bytes,
    limits: ReadLimits,
    remote_addr: str = "",
) -> Tuple[Optional[HttpRequest], bytes]:
    """Read bytes from the socket until a complete request is available.

    Returns ``(None, b"")`` when the peer closes the connection first.
    """
    started = time.monotonic()
    header_deadline = started + min(limits.read_header_timeout, limits.read_timeout)
    body_deadline = started + limits.read_timeout

    buffer = buffer.lstrip(b"\r\n")
    while HEADER_DELIMITER not in buffer:
        if len(buffer) > limits.max_header_bytes:
            raise RequestHeaderTooLarge
        chunk = _recv_with_deadline(client_socket, header_deadline)
        if not chunk:
            return None, b""
        buffer = (buffer + chunk).lstrip(b"\r\n")

    header_block, remainder = buffer.split(HEADER_DELIMITER, 1)
    if len(header_block) > limits.max_header_bytes:
        raise RequestHeaderTooLarge
    header_lines = header_block.decode("iso-8859-1").split("\r\n")
    method, path, query, version = parse_request_line(header_lines[0])
    headers = parse_headers(header_lines[1:])
    if version == "HTTP/1.0":
        headers["connection"] = "close"

    adopt_inbound_correlation_id(headers.get("x-request-id"))

    content_length = determine_content_length(headers, limits.max_body_bytes)

    while len(remainder) < content_length:
        chunk = _recv_with_deadline(client_socket, body_deadline)
        if not chunk:
            return None, b""
        remainder += chunk

    body = remainder[:content_length]
    leftover = remainder[content_length:]
    IO_LOGGER.debug(
        "Parsed request",
        extra={"event": "request_parsed", "method": method, "path": path},
    )
    request = HttpRequest(
        method=method,
        path=path,
        headers=headers,
        body=body,
        query=query,
        remote_addr=remote_addr,
    )
    return request, leftover


def _header_block(response: HttpResponse, send_body: bool) -> bytes:
    headers = dict(response.headers)

    correlation_id = get_correlation_id()
    if correlation_id:
        headers["X-Request-ID"] = correlation_id
    headers.setdefault("Date", formatdate(usegmt=True))

    if response.status not in BODYLESS_STATUSES:
        if response.body_iter is None:
            headers["Content-Length"] = str(len(response.body))
        elif response.content_length is not None:
            headers["Content-Length"] = str(response.content_length)
        elif send_body:
            headers["Transfer-Encoding"] = "chunked"
    if response.close_connection:
        headers["Connection"] = "close"

    header_lines = [response.status_line]
    header_lines.extend(f"{name}: {value}" for name, value in headers.items())
    return ("\r\n".join(header_lines) + "\r\n\r\n").encode("iso-8859-1")


def send_response(
    client_socket: socket.socket,
    response: HttpResponse,
    deadline: float,
    send_body: bool = True,
) -> None:
    """Serialize and send the HTTP response before ``deadline`` (monotonic).

    ``send_body`` is False for HEAD requests: headers describe the body that
    would have been sent, but none is written.
    """
    send_body = send_body and response.status not in BODYLESS_STATUSES
    header_block = _header_block(response, send_body)

    if response.body_iter is None:
        payload = header_block + response.body if send_body else header_block
        _send_with_deadline(client_socket, payload, deadline)
    else:
        _send_with_deadline(client_socket, header_block, deadline)
        if send_body:
            for chunk in response.body_iter:
                if not chunk:
                    continue
                if response.use_chunked:
                    chunk = f"{len(chunk):X}\r\n".encode() + chunk + b"\r\n"
                _send_with_deadline(client_socket, chunk, deadline)
            if response.use_chunked:
                _send_with_deadline(client_socket, b"0\r\n\r\n", deadline)
    IO_LOGGER.debug(
        "Sent response",
        extra={"event": "response_sent", "code": response.status},
    )
