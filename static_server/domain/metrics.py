"""Prometheus instruments for page hits, response codes and serve latency."""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

LATENCY_BUCKETS_MS = (1.0, 5.0, 10.0, 50.0, 100.0)


class ServerMetrics:
    """Request instruments bound to their own registry.

    Instances are shared by every worker thread; the underlying
    ``prometheus_client`` values lock internally, so increments from
    concurrent requests need no extra coordination.
    """

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self.page_hit = Counter(
            "page_hit",
            "hits per page",
            labelnames=("page",),
            registry=self.registry,
        )
        self.response_code = Counter(
            "response_code",
            "http response codes",
            labelnames=("code",),
            registry=self.registry,
        )
        self.serve_latency = Histogram(
            "serve_latency_ms",
            "http response latency in milliseconds",
            buckets=LATENCY_BUCKETS_MS,
            registry=self.registry,
        )

    def record_hit(self, path: str) -> None:
        self.page_hit.labels(page=path).inc()

    def record_status(self, code: int) -> None:
        self.response_code.labels(code=str(code)).inc()

    def observe_latency(self, milliseconds: float) -> None:
        self.serve_latency.observe(milliseconds)

    def exposition(self) -> bytes:
        """Render the registry in the Prometheus text format."""
        return generate_latest(self.registry)
