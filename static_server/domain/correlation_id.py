"""Per-request ids carried through logs and the X-Request-ID header."""

import contextvars
import logging
import re
import uuid
from typing import Any, MutableMapping, Optional

LOGGER_PREFIX = "static_server."
# Inbound X-Request-ID values are echoed back, so only accept token-like ids.
_INBOUND_ID_PATTERN = re.compile(r"[A-Za-z0-9._:-]{1,128}")

_correlation_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)


def generate_correlation_id() -> str:
    """Fresh random id for a request that arrived without one."""
    return str(uuid.uuid4())


def get_correlation_id() -> Optional[str]:
    """Id of the request being served on this thread, if any."""
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    """Bind ``correlation_id`` to the request being served."""
    _correlation_id_var.set(correlation_id)


def adopt_inbound_correlation_id(value: Optional[str]) -> bool:
    """Use a client supplied X-Request-ID when it looks like a safe token."""
    if not value or not _INBOUND_ID_PATTERN.fullmatch(value):
        return False
    _correlation_id_var.set(value)
    return True


def clear_correlation_id() -> None:
    """Forget the id once a request is finished."""
    _correlation_id_var.set(None)


class CorrelationLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter injecting correlation_id and component into every record."""

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})

        correlation_id = get_correlation_id()
        extra["correlation_id"] = correlation_id if correlation_id is not None else "-"

        name = self.logger.name
        extra["component"] = (
            name[len(LOGGER_PREFIX) :] if name.startswith(LOGGER_PREFIX) else name
        )

        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(component: str) -> CorrelationLoggerAdapter:
    """Return the correlation-aware adapter for a ``static_server`` component."""
    return CorrelationLoggerAdapter(logging.getLogger(LOGGER_PREFIX + component), {})
