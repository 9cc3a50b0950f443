"""System handlers for health checks and the metrics exporter."""

import logging
from http import HTTPStatus

from static_server.domain.correlation_id import get_logger
from static_server.domain.http_types import Handler, HttpRequest, HttpResponse, should_close
from static_server.domain.metrics import ServerMetrics
from static_server.domain.response_builders import (
    draining_response,
    empty_response,
)
from static_server.lifecycle.state import ServerLifecycle

SYSTEM_LOGGER = get_logger("handlers.system")


def health_handler(lifecycle: ServerLifecycle) -> Handler:
    """Build the /health handler: 200 while serving, 503 once draining."""

    def handle_health(request: HttpRequest) -> HttpResponse:
        is_draining = lifecycle.is_draining()
        if SYSTEM_LOGGER.logger.isEnabledFor(logging.DEBUG):
            SYSTEM_LOGGER.debug(
                "Health check performed",
                extra={"event": "health_check", "draining": is_draining},
            )
        if is_draining:
            return draining_response()
        return empty_response(request, HTTPStatus.OK)

    return handle_health


def metrics_handler(metrics: ServerMetrics) -> Handler:
    """Build the /metrics handler exposing the registry as Prometheus text."""

    def handle_metrics(request: HttpRequest) -> HttpResponse:
        headers = {"Content-Type": metrics.content_type}
        return HttpResponse(
            HTTPStatus.OK,
            headers,
            metrics.exposition(),
            should_close(request.headers),
        )

    return handle_metrics
