"""Socket creation and TLS configuration."""

import socket
import ssl
from typing import Optional

from static_server.bootstrap.config import ServerConfig
from static_server.domain.correlation_id import get_logger
from static_server.lifecycle.errors import ConfigurationError

SOCKET_LOGGER = get_logger("socket")
ACCEPT_POLL_SECONDS = 0.5


def create_tls_context(
    cert: Optional[str], key: Optional[str]
) -> Optional[ssl.SSLContext]:
    """Build the server TLS context, or ``None`` when TLS is not configured."""
    if not cert and not key:
        return None
    if not (cert and key):
        SOCKET_LOGGER.critical(
            "TLS needs both a certificate and a key",
            extra={"event": "tls_config_incomplete"},
        )
        raise ConfigurationError("TLS needs both a certificate and a key")

    tls_context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    tls_context.minimum_version = ssl.TLSVersion.TLSv1_3
    tls_context.options |= ssl.OP_CIPHER_SERVER_PREFERENCE
    try:
        tls_context.load_cert_chain(cert, key)
    except (ssl.SSLError, OSError) as error:
        SOCKET_LOGGER.critical(
            "Failed to load TLS certificates",
            extra={"event": "tls_load_failed", "error": str(error)},
        )
        raise ConfigurationError(f"load tls keys: {error}") from error
    return tls_context


def create_server_socket(
    config: ServerConfig, tls_context: Optional[ssl.SSLContext] = None
) -> socket.socket:
    """Bind the listening socket, wrapping it in TLS when a context is given.

    Handshakes are deferred to the worker thread of each connection so a slow
    client cannot stall the accept loop.
    """
    try:
        server_socket = socket.create_server((config.host, config.port))
    except OSError as error:
        SOCKET_LOGGER.critical(
            "Failed to bind listening socket",
            extra={
                "event": "bind_failed",
                "host": config.host,
                "port": config.port,
                "error": str(error),
            },
        )
        raise ConfigurationError(f"listen {config.host}:{config.port}: {error}") from error

    server_socket.settimeout(ACCEPT_POLL_SECONDS)
    if tls_context is not None:
        server_socket = tls_context.wrap_socket(
            server_socket, server_side=True, do_handshake_on_connect=False
        )
    return server_socket
