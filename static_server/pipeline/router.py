"""Request routing logic."""

import logging
from typing import Optional

from static_server.domain.correlation_id import get_logger
from static_server.domain.http_types import Handler, HttpRequest, HttpResponse
from static_server.domain.response_builders import not_found_response

ROUTER_LOGGER = get_logger("pipeline.router")


class Router:
    """Table of path patterns bound to handlers.

    A pattern ending in ``/`` matches every path below it, any other pattern
    matches one path exactly. The longest matching pattern wins, so ``/`` is
    the catch-all.
    """

    def __init__(self) -> None:
        self._exact: dict[str, Handler] = {}
        self._prefixes: list[tuple[str, Handler]] = []

    def handle(self, pattern: str, handler: Handler) -> None:
        """Bind ``handler`` to ``pattern``; rebinding a pattern is an error."""
        if not pattern.startswith("/"):
            raise ValueError(f"pattern must start with '/': {pattern!r}")
        if pattern in self._exact or any(p == pattern for p, _ in self._prefixes):
            raise ValueError(f"pattern already registered: {pattern!r}")
        if pattern.endswith("/"):
            self._prefixes.append((pattern, handler))
            self._prefixes.sort(key=lambda item: len(item[0]), reverse=True)
        else:
            self._exact[pattern] = handler

    def match(self, path: str) -> tuple[Optional[str], Optional[Handler]]:
        """Return the winning pattern and its handler for ``path``."""
        handler = self._exact.get(path)
        if handler is not None:
            return path, handler
        for pattern, prefix_handler in self._prefixes:
            if path.startswith(pattern):
                return pattern, prefix_handler
        return None, None

    def __call__(self, request: HttpRequest) -> HttpResponse:
        pattern, handler = self.match(request.path)
        if handler is None:
            ROUTER_LOGGER.info(
                "No matching route found",
                extra={
                    "event": "route_not_found",
                    "path": request.path,
                    "method": request.method,
                },
            )
            return not_found_response(request)
        if ROUTER_LOGGER.logger.isEnabledFor(logging.DEBUG):
            ROUTER_LOGGER.debug(
                "Route matched",
                extra={"event": "route_matched", "path": pattern},
            )
        return handler(request)
