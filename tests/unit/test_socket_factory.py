"""Unit tests for listener and TLS setup."""

import logging
import socket
import ssl
from pathlib import Path

import pytest

from static_server.bootstrap.config import ServerConfig
from static_server.bootstrap.socket_factory import (
    ACCEPT_POLL_SECONDS,
    create_server_socket,
    create_tls_context,
)
from static_server.lifecycle.errors import ConfigurationError
from tests.utils.certs import write_self_signed_cert


def test_no_tls_without_cert_and_key() -> None:
    assert create_tls_context(None, None) is None


@pytest.mark.parametrize("missing", ["cert", "key"])
def test_half_configured_tls_is_rejected(tmp_path: Path, missing: str) -> None:
    cert, key = write_self_signed_cert(tmp_path)
    args = {"cert": str(cert), "key": str(key)}
    args[missing] = None

    with pytest.raises(ConfigurationError):
        create_tls_context(args["cert"], args["key"])


def test_tls_context_requires_tls13(tmp_path: Path) -> None:
    cert, key = write_self_signed_cert(tmp_path)

    context = create_tls_context(str(cert), str(key))

    assert context is not None
    assert context.minimum_version == ssl.TLSVersion.TLSv1_3
    assert context.options & ssl.OP_CIPHER_SERVER_PREFERENCE


def test_unreadable_certificate_is_fatal(tmp_path: Path, caplog) -> None:
    caplog.set_level(logging.CRITICAL)

    with pytest.raises(ConfigurationError):
        create_tls_context(str(tmp_path / "absent.pem"), str(tmp_path / "absent.key"))

    assert any(
        getattr(record, "event", None) == "tls_load_failed" for record in caplog.records
    )


def test_plain_listener_binds_and_polls() -> None:
    listener = create_server_socket(ServerConfig(host="127.0.0.1", port=0))
    try:
        assert listener.getsockname()[1] != 0
        assert listener.gettimeout() == ACCEPT_POLL_SECONDS
        assert not isinstance(listener, ssl.SSLSocket)
    finally:
        listener.close()


def test_tls_listener_is_wrapped(tmp_path: Path) -> None:
    cert, key = write_self_signed_cert(tmp_path)
    context = create_tls_context(str(cert), str(key))

    listener = create_server_socket(ServerConfig(host="127.0.0.1", port=0), context)
    try:
        assert isinstance(listener, ssl.SSLSocket)
    finally:
        listener.close()


def test_bind_conflict_is_configuration_error() -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as holder:
        holder.bind(("127.0.0.1", 0))
        holder.listen()
        port = holder.getsockname()[1]

        with pytest.raises(ConfigurationError):
            create_server_socket(ServerConfig(host="127.0.0.1", port=port))
