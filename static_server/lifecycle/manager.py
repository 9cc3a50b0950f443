"""Server assembly, run loop and shutdown sequencing."""

import signal
import socket
import threading
from pathlib import Path
from typing import Any, Callable, Optional

from static_server.bootstrap.config import ServerConfig
from static_server.bootstrap.socket_factory import create_server_socket, create_tls_context
from static_server.domain.correlation_id import get_logger
from static_server.domain.http_types import Handler
from static_server.domain.metrics import ServerMetrics
from static_server.handlers.debug_handlers import register_debug_handlers
from static_server.handlers.file_handler import (
    MISSING_PAGE_LABEL,
    SiteHandler,
    load_not_found_page,
)
from static_server.handlers.system_handlers import health_handler, metrics_handler
from static_server.lifecycle.errors import (
    ConfigurationError,
    ShutdownForced,
    ShutdownTimeout,
)
from static_server.lifecycle.state import ServerLifecycle, ServerState
from static_server.pipeline.middleware import LogMiddleware
from static_server.pipeline.router import Router
from static_server.security.cors import CorsConfig, cors_gate
from static_server.security.headers import SecurityHeadersConfig, security_headers
from static_server.transport.accept_loop import run_accept_loop
from static_server.transport.context import WorkerContext

MANAGER_LOGGER = get_logger("lifecycle.manager")

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def enabled_features(config: ServerConfig) -> list[str]:
    toggles = {
        "cors": config.enable_cors,
        "health": config.enable_health,
        "debug": config.enable_debug,
        "metrics": config.enable_metrics,
        "access_log": config.enable_access_log,
        "security_headers": config.enable_security_headers,
        "tls": config.tls_enabled,
    }
    return [name for name, enabled in toggles.items() if enabled]


def build_handler(
    config: ServerConfig, lifecycle: ServerLifecycle, metrics: ServerMetrics
) -> Handler:
    """Compose the request pipeline: CORS, logging, security headers, routes."""
    root = Path(config.directory)
    router = Router()
    if config.enable_health:
        router.handle("/health", health_handler(lifecycle))
    if config.enable_debug:
        register_debug_handlers(router)
    if config.enable_metrics:
        router.handle("/metrics", metrics_handler(metrics))
    site = SiteHandler(root, load_not_found_page(root))
    router.handle("/", site)

    handler: Handler = router
    if config.enable_security_headers:
        handler = security_headers(handler, SecurityHeadersConfig(config.csp_report_uri))
    if config.enable_access_log:
        handler = LogMiddleware(metrics, page_label=page_labeler(router, site)).wrap(
            handler
        )
    if config.enable_cors:
        handler = cors_gate(
            handler, CorsConfig(config.cors_allowed_origins, config.cors_max_age)
        )
    return handler


def page_labeler(router: Router, site: SiteHandler) -> Callable[[str], str]:
    """Hit-counter labels: route patterns for built-in endpoints, pages for the site."""

    def label(path: str) -> str:
        pattern, handler = router.match(path)
        if handler is site:
            return site.page_label(path)
        return pattern if pattern is not None else MISSING_PAGE_LABEL

    return label


class ServerRuntime:
    """A bound, ready-to-run server."""

    def __init__(
        self,
        config: ServerConfig,
        listener: socket.socket,
        context: WorkerContext,
        metrics: ServerMetrics,
    ) -> None:
        self.config = config
        self.listener = listener
        self.context = context
        self.lifecycle = context.lifecycle
        self.metrics = metrics
        self._previous_handlers: dict[int, Any] = {}

    @property
    def address(self) -> tuple[str, int]:
        """The bound host and port; useful when configured with port 0."""
        host, port = self.listener.getsockname()[:2]
        return host, port

    def shutdown(self) -> None:
        """Programmatic equivalent of a termination signal."""
        self.lifecycle.request_shutdown()

    def run(self, install_signals: bool = True) -> None:
        """Serve until shutdown, then drain within the grace period.

        Returns normally only when every connection finished in time.
        """
        if install_signals:
            self._install_signal_handlers()
        try:
            self.lifecycle.transition(ServerState.LISTENING)
            host, port = self.address
            MANAGER_LOGGER.info(
                "Server listening for connections",
                extra={
                    "event": "server_listening",
                    "host": host,
                    "port": port,
                    "tls": self.config.tls_enabled,
                },
            )
            try:
                run_accept_loop(self.listener, self.context, self.lifecycle)
            except OSError as error:
                self.lifecycle.transition(ServerState.ERROR)
                MANAGER_LOGGER.critical(
                    "Accept loop failed",
                    extra={
                        "event": "accept_failed",
                        "error_type": type(error).__name__,
                        "errno": error.errno,
                    },
                )
                self.lifecycle.force_stop()
                self.lifecycle.close_connections()
                raise
            finally:
                self.listener.close()
            self._drain()
        finally:
            self._restore_signal_handlers()

    def _drain(self) -> None:
        grace = self.config.shutdown_grace_seconds
        MANAGER_LOGGER.info(
            "Waiting for active connections to complete",
            extra={"event": "shutdown_waiting", "grace_seconds": grace},
        )
        if self.lifecycle.wait_for_workers(grace):
            self.lifecycle.transition(ServerState.STOPPED)
            MANAGER_LOGGER.info("Server shutdown complete", extra={"event": "server_stopped"})
            return

        remaining = self.lifecycle.active_worker_count()
        self.lifecycle.close_connections()
        self.lifecycle.transition(ServerState.ERROR)
        if self.lifecycle.is_forced():
            raise ShutdownForced("shutdown forced by repeated signal", remaining)
        raise ShutdownTimeout(
            f"connections still open after {grace:g}s grace period", remaining
        )

    def _install_signal_handlers(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            MANAGER_LOGGER.debug(
                "Not on the main thread, skipping signal handlers",
                extra={"event": "signals_skipped"},
            )
            return

        def shutdown_handler(signum: int, _frame) -> None:
            MANAGER_LOGGER.info(
                "Received shutdown signal",
                extra={"event": "signal_received", "signal": signal.Signals(signum).name},
            )
            self.lifecycle.request_shutdown()

        for signum in SHUTDOWN_SIGNALS:
            self._previous_handlers[signum] = signal.signal(signum, shutdown_handler)

    def _restore_signal_handlers(self) -> None:
        for signum, previous in self._previous_handlers.items():
            signal.signal(signum, previous)
        self._previous_handlers.clear()


def build_server(
    config: ServerConfig,
    handler: Optional[Handler] = None,
    metrics: Optional[ServerMetrics] = None,
) -> ServerRuntime:
    """Validate configuration, compose the pipeline and bind the listener.

    TLS material is loaded before binding so a bad certificate never leaves
    a half-started server behind.
    """
    root = Path(config.directory)
    if not root.is_dir():
        MANAGER_LOGGER.critical(
            "Content root is not a directory",
            extra={"event": "invalid_directory", "directory": str(root)},
        )
        raise ConfigurationError(f"content root is not a directory: {root}")

    metrics = metrics if metrics is not None else ServerMetrics()
    lifecycle = ServerLifecycle()
    if handler is None:
        handler = build_handler(config, lifecycle, metrics)

    tls_context = create_tls_context(config.cert, config.key)
    listener = create_server_socket(config, tls_context)
    context = WorkerContext.from_config(handler, lifecycle, config)
    return ServerRuntime(config, listener, context, metrics)
