"""Context object shared across worker threads."""

from dataclasses import dataclass

from static_server.bootstrap.config import ServerConfig
from static_server.domain.http_types import Handler
from static_server.lifecycle.state import ServerLifecycle
from static_server.pipeline.io import ReadLimits


@dataclass(frozen=True)
class WorkerContext:
    """Dependencies shared across handler threads."""

    handler: Handler
    lifecycle: ServerLifecycle
    config: ServerConfig
    limits: ReadLimits

    @classmethod
    def from_config(
        cls, handler: Handler, lifecycle: ServerLifecycle, config: ServerConfig
    ) -> "WorkerContext":
        limits = ReadLimits(
            read_timeout=config.read_timeout,
            read_header_timeout=config.read_header_timeout,
            max_header_bytes=config.max_header_bytes,
            max_body_bytes=config.max_body_bytes,
        )
        return cls(handler, lifecycle, config, limits)
