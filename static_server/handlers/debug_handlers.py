"""Runtime introspection endpoints under /debug/pprof/."""

import collections
import gc
import sys
import threading
import traceback
from http import HTTPStatus

from static_server.domain.correlation_id import get_logger
from static_server.domain.http_types import HttpRequest, HttpResponse
from static_server.domain.response_builders import text_response
from static_server.pipeline.router import Router

DEBUG_LOGGER = get_logger("handlers.debug")

DEBUG_PREFIX = "/debug/pprof/"
TOP_OBJECT_TYPES = 20

_PROFILES = {
    "cmdline": "The command line invocation of the current program",
    "threads": "Stack traces of all live threads",
    "gc": "Garbage collector statistics and the most common live object types",
}


def debug_index(request: HttpRequest) -> HttpResponse:
    """List the available profiles; unknown names under the prefix are 404."""
    name = request.path[len(DEBUG_PREFIX):]
    if name:
        return text_response("Unknown profile\n", request, HTTPStatus.NOT_FOUND)
    lines = ["Profile descriptions:", ""]
    lines.extend(f"{profile}: {text}" for profile, text in _PROFILES.items())
    return text_response("\n".join(lines) + "\n", request)


def debug_cmdline(request: HttpRequest) -> HttpResponse:
    """Return the interpreter argv separated by NUL bytes."""
    return text_response("\x00".join([sys.executable] + sys.argv), request)


def debug_threads(request: HttpRequest) -> HttpResponse:
    """Dump the current stack of every live thread."""
    frames = sys._current_frames()  # pylint: disable=protected-access
    sections = []
    for thread in threading.enumerate():
        header = f"thread {thread.name} ident={thread.ident} daemon={thread.daemon}"
        frame = frames.get(thread.ident) if thread.ident is not None else None
        stack = "".join(traceback.format_stack(frame)) if frame is not None else ""
        sections.append(f"{header}\n{stack}")
    DEBUG_LOGGER.info(
        "Thread dump requested",
        extra={"event": "debug_threads", "threads": len(sections)},
    )
    body = f"total {len(sections)} threads\n\n" + "\n".join(sections)
    return text_response(body, request)


def debug_gc(request: HttpRequest) -> HttpResponse:
    """Report collector generations and the most common live object types."""
    lines = [f"enabled: {gc.isenabled()}"]
    lines.append("thresholds: " + " ".join(str(value) for value in gc.get_threshold()))
    lines.append("counts: " + " ".join(str(value) for value in gc.get_count()))
    for generation, stats in enumerate(gc.get_stats()):
        details = " ".join(f"{key}={value}" for key, value in sorted(stats.items()))
        lines.append(f"generation {generation}: {details}")
    type_counts = collections.Counter(type(obj).__name__ for obj in gc.get_objects())
    lines.append("")
    lines.append(f"tracked objects: {sum(type_counts.values())}")
    lines.extend(
        f"{count:>10} {name}" for name, count in type_counts.most_common(TOP_OBJECT_TYPES)
    )
    return text_response("\n".join(lines) + "\n", request)


def register_debug_handlers(router: Router) -> None:
    """Mount the introspection endpoints on ``router``."""
    router.handle(DEBUG_PREFIX, debug_index)
    router.handle(DEBUG_PREFIX + "cmdline", debug_cmdline)
    router.handle(DEBUG_PREFIX + "threads", debug_threads)
    router.handle(DEBUG_PREFIX + "gc", debug_gc)
