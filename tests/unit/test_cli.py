"""Unit tests validating CLI parsing behavior."""

import importlib
from pathlib import Path
from typing import TYPE_CHECKING

from static_server.bootstrap import config as config_module
from static_server.bootstrap.config import (
    DEFAULT_MAX_BODY_BYTES,
    config_from_args,
    parse_cli_args,
)

if TYPE_CHECKING:
    from _pytest.monkeypatch import MonkeyPatch


def test_parse_cli_args_uses_defaults() -> None:
    """Defaults ensure the server launches with its documented settings."""
    args = parse_cli_args([])
    config = config_from_args(args)

    assert config.directory == "public"
    assert config.host == "0.0.0.0"
    assert config.port == 8080
    assert args.log_level == "INFO"
    assert args.log_destination == "stdout"
    assert config.read_timeout == 5.0
    assert config.read_header_timeout == 10.0
    assert config.write_timeout == 5.0
    assert config.idle_timeout == 60.0
    assert config.max_header_bytes == 1 << 20
    assert config.max_body_bytes == DEFAULT_MAX_BODY_BYTES
    assert config.enable_cors and config.enable_health and config.enable_metrics
    assert config.enable_access_log and config.enable_security_headers
    assert not config.enable_debug
    assert not config.tls_enabled
    assert config.cors_allowed_origins == ("*",)


def test_parse_cli_args_honors_overrides(tmp_path: Path) -> None:
    """Overrides should replace defaults when flags are present."""
    args = parse_cli_args(
        [
            "--directory",
            tmp_path.as_posix(),
            "--host",
            "127.0.0.1",
            "--port",
            "9090",
            "--log-level",
            "debug",
            "--log-destination",
            "server.log",
            "--read-timeout",
            "2.5",
            "--idle-timeout",
            "15",
            "--max-body-bytes",
            "1024",
            "--shutdown-grace-seconds",
            "3",
            "--cors-allowed-origins",
            "https://a.example, https://b.example",
            "--csp-report-uri",
            "https://reports.example/csp",
            "--cert",
            "cert.pem",
            "--key",
            "key.pem",
        ]
    )
    config = config_from_args(args)

    assert config.directory == tmp_path.as_posix()
    assert config.host == "127.0.0.1"
    assert config.port == 9090
    assert args.log_level == "DEBUG"
    assert args.log_destination == "server.log"
    assert config.read_timeout == 2.5
    assert config.idle_timeout == 15.0
    assert config.max_body_bytes == 1024
    assert config.shutdown_grace_seconds == 3.0
    assert config.cors_allowed_origins == ("https://a.example", "https://b.example")
    assert config.csp_report_uri == "https://reports.example/csp"
    assert config.tls_enabled


def test_feature_toggles_can_be_flipped() -> None:
    config = config_from_args(
        parse_cli_args(
            [
                "--no-cors",
                "--no-health",
                "--debug-endpoints",
                "--no-metrics",
                "--no-access-log",
                "--no-security-headers",
            ]
        )
    )

    assert not config.enable_cors
    assert not config.enable_health
    assert config.enable_debug
    assert not config.enable_metrics
    assert not config.enable_access_log
    assert not config.enable_security_headers


def test_environment_seeds_defaults(monkeypatch: "MonkeyPatch") -> None:
    monkeypatch.setenv("STATIC_SERVER_PORT", "7070")
    monkeypatch.setenv("STATIC_SERVER_DEBUG_ENDPOINTS", "yes")
    monkeypatch.setenv("STATIC_SERVER_CORS_ALLOWED_ORIGINS", "https://only.example")
    monkeypatch.setenv("STATIC_SERVER_LOG_LEVEL", "warning")
    reloaded = importlib.reload(config_module)
    try:
        args = reloaded.parse_cli_args([])
        config = reloaded.config_from_args(args)

        assert config.port == 7070
        assert config.enable_debug
        assert config.cors_allowed_origins == ("https://only.example",)
        assert args.log_level == "WARNING"
    finally:
        monkeypatch.undo()
        importlib.reload(config_module)
