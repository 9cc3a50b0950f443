"""Main connection acceptance loop."""

import errno
import logging
import socket
import threading
from typing import Any

from static_server.domain.correlation_id import get_logger
from static_server.lifecycle.state import ServerLifecycle
from static_server.transport.context import WorkerContext
from static_server.transport.worker import format_address, handle_client

ACCEPT_LOGGER = get_logger("transport.accept")

TRANSIENT_ACCEPT_ERRNOS = frozenset(
    {
        errno.ECONNABORTED,
        errno.EMFILE,
        errno.ENFILE,
        errno.ENOBUFS,
        errno.ENOMEM,
        errno.EPROTO,
        errno.EINTR,
    }
)


def is_transient_accept_error(error: OSError) -> bool:
    """Errors that affect one pending connection, not the listener."""
    return error.errno in TRANSIENT_ACCEPT_ERRNOS


def run_accept_loop(
    server_socket: socket.socket, context: WorkerContext, lifecycle: ServerLifecycle
) -> None:
    """Accept connections until shutdown is requested.

    Every connection gets its own daemon thread. A non-transient accept
    failure propagates to the caller.
    """
    while not lifecycle.should_stop():
        try:
            client_socket, client_address = server_socket.accept()
        except socket.timeout:
            continue
        except OSError as error:
            if lifecycle.should_stop():
                break
            if not is_transient_accept_error(error):
                raise
            ACCEPT_LOGGER.warning(
                "Socket accept failed, retrying",
                extra={
                    "event": "accept_error",
                    "error_type": type(error).__name__,
                    "errno": error.errno,
                },
            )
            continue

        if ACCEPT_LOGGER.logger.isEnabledFor(logging.DEBUG):
            ACCEPT_LOGGER.debug(
                "Client connection accepted",
                extra={"event": "client_accepted", "client": format_address(client_address)},
            )
        start_worker(client_socket, client_address, context)


def start_worker(
    client_socket: socket.socket, client_address: Any, context: WorkerContext
) -> threading.Thread:
    """Register and start the worker thread for one accepted connection.

    Registration happens before the thread runs, so a shutdown that begins
    right after ``accept`` still waits for this connection.
    """
    thread = threading.Thread(
        target=handle_client,
        args=(client_socket, client_address, context),
        name=f"worker-{format_address(client_address)}",
        daemon=True,
    )
    context.lifecycle.register_worker(thread, client_socket)
    thread.start()
    return thread
