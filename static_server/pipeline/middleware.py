"""Per-request access logging and metrics."""

import logging
import time
from typing import Callable, Optional, Union

from static_server.domain.correlation_id import CorrelationLoggerAdapter, get_logger
from static_server.domain.http_types import Handler, HttpRequest, HttpResponse
from static_server.domain.metrics import ServerMetrics

ACCESS_LOGGER = get_logger("access")

Logger = Union[logging.Logger, CorrelationLoggerAdapter]
PageLabeler = Callable[[str], str]


def client_address(request: HttpRequest) -> str:
    """Prefer the first X-Forwarded-For hop over the peer address."""
    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",", 1)[0].strip()
    return first_hop or request.remote_addr


class LogMiddleware:
    """Wraps a handler to count, time and log every request.

    The page hit is counted before the inner handler runs so requests that
    hang are still visible. Latency, status and the log line are recorded once
    the response has been written, or immediately when the handler raises.

    ``page_label`` maps a request path to the value of the hit counter's
    ``page`` label; by default the path itself is used.
    """

    def __init__(
        self,
        metrics: ServerMetrics,
        logger: Optional[Logger] = None,
        page_label: Optional[PageLabeler] = None,
    ) -> None:
        self.metrics = metrics
        self.logger = logger if logger is not None else ACCESS_LOGGER
        self.page_label = page_label if page_label is not None else str

    def wrap(self, handler: Handler) -> Handler:
        def logged(request: HttpRequest) -> HttpResponse:
            started = time.perf_counter()
            self.metrics.record_hit(self.page_label(request.path))
            try:
                response = handler(request)
            except Exception:
                self._record(request, 500, started)
                raise
            response.on_complete(lambda: self._record(request, response.status, started))
            return response

        return logged

    __call__ = wrap

    def _record(self, request: HttpRequest, code: int, started: float) -> None:
        duration_ms = (time.perf_counter() - started) * 1000.0
        self.metrics.observe_latency(duration_ms)
        self.metrics.record_status(code)
        self.logger.debug(
            "served",
            extra={
                "event": "request_served",
                "src": client_address(request),
                "method": request.method,
                "path": request.path,
                "code": code,
                "user_agent": request.headers.get("user-agent", ""),
                "referer": request.headers.get("referer", ""),
                "duration_ms": round(duration_ms, 3),
            },
        )
