"""Worker thread logic for handling individual client connections."""

import logging
import select
import socket
import ssl
import threading
import time
from http import HTTPStatus
from typing import Any, Optional

from static_server.domain.correlation_id import (
    clear_correlation_id,
    generate_correlation_id,
    get_logger,
    set_correlation_id,
)
from static_server.domain.http_types import Handler, HttpRequest, HttpResponse
from static_server.domain.response_builders import error_response
from static_server.lifecycle.state import ServerLifecycle
from static_server.pipeline.io import (
    RequestEntityTooLarge,
    RequestHeaderTooLarge,
    receive_request,
    send_response,
)
from static_server.transport.context import WorkerContext

WORKER_LOGGER = get_logger("transport.worker")

# How often an idle connection re-checks whether the server is draining.
DRAIN_POLL_SECONDS = 0.2


def format_address(address: Any) -> str:
    if isinstance(address, tuple) and len(address) >= 2:
        return f"{address[0]}:{address[1]}"
    return str(address)


def _complete_handshake(client_socket: ssl.SSLSocket, timeout: float) -> None:
    client_socket.settimeout(timeout)
    client_socket.do_handshake()


def _wait_for_request(
    client_socket: socket.socket,
    buffer: bytes,
    timeout: float,
    lifecycle: ServerLifecycle,
    first_request: bool = False,
) -> bool:
    """Block until request bytes are available.

    Returns False when ``timeout`` elapses first or the server starts
    draining while the connection is idle. A connection's first request is
    still read during draining when its bytes have already arrived.
    """
    if buffer:
        return True
    if isinstance(client_socket, ssl.SSLSocket) and client_socket.pending():
        return True
    deadline = time.monotonic() + timeout
    while not lifecycle.is_draining():
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        readable, _, _ = select.select(
            [client_socket], [], [], min(DRAIN_POLL_SECONDS, remaining)
        )
        if readable:
            return True
    if not first_request:
        return False
    readable, _, _ = select.select([client_socket], [], [], 0)
    return bool(readable)


def _dispatch(handler: Handler, request: HttpRequest) -> HttpResponse:
    try:
        return handler(request)
    except Exception:  # pylint: disable=broad-except
        WORKER_LOGGER.exception(
            "Handler failed",
            extra={
                "event": "handler_error",
                "method": request.method,
                "path": request.path,
            },
        )
        return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, request)


def _reject(
    client_socket: socket.socket,
    status: HTTPStatus,
    context: WorkerContext,
    client_addr_str: str,
    event: str,
) -> None:
    """Answer an unreadable request and let the caller close the connection."""
    WORKER_LOGGER.warning(
        "Rejected request",
        extra={"event": event, "client": client_addr_str, "code": int(status)},
    )
    response = error_response(status)
    try:
        send_response(
            client_socket, response, time.monotonic() + context.config.write_timeout
        )
    finally:
        response.finish()


def _read_request(
    client_socket: socket.socket,
    buffer: bytes,
    context: WorkerContext,
    client_addr_str: str,
) -> tuple[Optional[HttpRequest], bytes]:
    try:
        return receive_request(client_socket, buffer, context.limits, client_addr_str)
    except RequestHeaderTooLarge:
        _reject(
            client_socket,
            HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE,
            context,
            client_addr_str,
            "header_size_exceeded",
        )
    except RequestEntityTooLarge:
        _reject(
            client_socket,
            HTTPStatus.REQUEST_ENTITY_TOO_LARGE,
            context,
            client_addr_str,
            "body_size_exceeded",
        )
    except (ValueError, UnicodeDecodeError):
        _reject(
            client_socket,
            HTTPStatus.BAD_REQUEST,
            context,
            client_addr_str,
            "malformed_request",
        )
    return None, b""


def _serve_connection(
    client_socket: socket.socket, client_addr_str: str, context: WorkerContext
) -> None:
    """Keep-alive loop: one request, one response, until either side closes."""
    lifecycle = context.lifecycle
    config = context.config
    wait_timeout = min(config.read_header_timeout, config.read_timeout)
    buffer = b""
    first_request = True

    while True:
        clear_correlation_id()
        if not _wait_for_request(
            client_socket, buffer, wait_timeout, lifecycle, first_request
        ):
            if WORKER_LOGGER.logger.isEnabledFor(logging.DEBUG):
                WORKER_LOGGER.debug(
                    "Closing idle connection",
                    extra={
                        "event": "connection_idle_closed",
                        "client": client_addr_str,
                        "draining": lifecycle.is_draining(),
                    },
                )
            return
        wait_timeout = config.idle_timeout
        first_request = False

        set_correlation_id(generate_correlation_id())
        request, buffer = _read_request(client_socket, buffer, context, client_addr_str)
        if request is None:
            if WORKER_LOGGER.logger.isEnabledFor(logging.DEBUG):
                WORKER_LOGGER.debug(
                    "Client disconnected during request",
                    extra={"event": "client_disconnected", "client": client_addr_str},
                )
            return

        write_deadline = time.monotonic() + config.write_timeout
        response = _dispatch(context.handler, request)
        if lifecycle.is_draining():
            response.close_connection = True
        try:
            send_response(
                client_socket,
                response,
                write_deadline,
                send_body=request.method != "HEAD",
            )
        finally:
            response.finish()

        if response.close_connection:
            return


def handle_client(
    client_socket: socket.socket,
    client_address: Any,
    context: WorkerContext,
) -> None:
    """Process requests on a client socket until the connection is closed.

    The calling thread must already be registered with the lifecycle; it is
    unregistered here once the connection ends.
    """
    current_thread = threading.current_thread()
    client_addr_str = format_address(client_address)

    try:
        if isinstance(client_socket, ssl.SSLSocket):
            _complete_handshake(client_socket, context.config.read_header_timeout)
        _serve_connection(client_socket, client_addr_str, context)
    except OSError as error:
        # Client timeouts, resets and failed handshakes are logged at debug only.
        if WORKER_LOGGER.logger.isEnabledFor(logging.DEBUG):
            WORKER_LOGGER.debug(
                "Connection ended with error",
                extra={
                    "event": "connection_error",
                    "client": client_addr_str,
                    "error_type": type(error).__name__,
                },
            )
    except Exception as error:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "Unexpected error in worker",
            extra={
                "event": "worker_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
            },
            exc_info=True,
        )
    finally:
        context.lifecycle.cleanup_worker(current_thread)
        try:
            client_socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass
        client_socket.close()
        clear_correlation_id()
