"""Server lifecycle state management."""

import enum
import socket
import threading
import time
from typing import Optional

from static_server.domain.correlation_id import get_logger

LIFECYCLE_LOGGER = get_logger("lifecycle")


class ServerState(enum.Enum):
    STARTING = "starting"
    LISTENING = "listening"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"
    ERROR = "error"


class ServerLifecycle:
    """Manages server lifecycle state and worker thread tracking.

    Shutdown requests escalate: the first one stops new connections and lets
    in-flight requests drain, a second one abandons the grace period.
    """

    def __init__(self) -> None:
        # Re-entered by shutdown signal handlers on the main thread.
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._draining_event = threading.Event()
        self._forced_event = threading.Event()
        self._workers: dict[threading.Thread, Optional[socket.socket]] = {}
        self._state = ServerState.STARTING

    @property
    def state(self) -> ServerState:
        with self._lock:
            return self._state

    def transition(self, state: ServerState) -> None:
        """Move to ``state``; STOPPED and ERROR are terminal."""
        with self._lock:
            previous = self._state
            if previous in (ServerState.STOPPED, ServerState.ERROR):
                return
            self._state = state
        LIFECYCLE_LOGGER.debug(
            "Lifecycle state changed",
            extra={"event": "state_changed", "state": state.value},
        )

    def should_stop(self) -> bool:
        """Check if the server should stop accepting new connections."""
        return self._stop_event.is_set()

    def is_draining(self) -> bool:
        """Check if the server is in draining mode."""
        return self._draining_event.is_set()

    def is_forced(self) -> bool:
        """Check if the grace period has been abandoned."""
        return self._forced_event.is_set()

    def register_worker(
        self, thread: threading.Thread, connection: Optional[socket.socket] = None
    ) -> None:
        """Register a worker thread, and the socket it serves, for tracking."""
        with self._lock:
            self._workers[thread] = connection

    def cleanup_worker(self, thread: threading.Thread) -> None:
        """Remove a worker thread from tracking."""
        with self._lock:
            self._workers.pop(thread, None)

    def has_worker(self, thread: threading.Thread) -> bool:
        """Return True when the worker is currently tracked."""
        with self._lock:
            return thread in self._workers

    def active_worker_count(self) -> int:
        """Return the number of currently tracked worker threads."""
        with self._lock:
            return len(self._workers)

    def begin_draining(self) -> None:
        """Signal the server to begin graceful shutdown."""
        if self._draining_event.is_set():
            return
        self._draining_event.set()
        self._stop_event.set()
        self.transition(ServerState.SHUTTING_DOWN)
        LIFECYCLE_LOGGER.info(
            "Beginning graceful shutdown", extra={"event": "shutdown_started"}
        )

    def force_stop(self) -> None:
        """Abandon the grace period and stop immediately."""
        self._draining_event.set()
        self._stop_event.set()
        self._forced_event.set()
        LIFECYCLE_LOGGER.warning(
            "Forcing immediate shutdown", extra={"event": "shutdown_forced"}
        )

    def request_shutdown(self) -> None:
        """Escalating shutdown request: drain first, force on repetition."""
        if self._draining_event.is_set():
            self.force_stop()
        else:
            self.begin_draining()

    def wait_for_workers(self, timeout: float) -> bool:
        """Wait for all worker threads to complete within the timeout.

        Returns False when the deadline passes or the shutdown is forced
        while workers are still running.
        """
        deadline = time.monotonic() + timeout
        while True:
            with self._lock:
                self._workers = {
                    w: conn for w, conn in self._workers.items() if w.is_alive()
                }
                active_workers = list(self._workers)
            if not active_workers:
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0 or self._forced_event.is_set():
                LIFECYCLE_LOGGER.warning(
                    "Shutdown finished with active connections",
                    extra={
                        "event": "shutdown_incomplete",
                        "remaining_workers": len(active_workers),
                    },
                )
                return False
            for worker in active_workers:
                worker.join(timeout=min(0.1, remaining))
                if time.monotonic() >= deadline or self._forced_event.is_set():
                    break

    def close_connections(self) -> int:
        """Tear down the sockets of every remaining worker."""
        with self._lock:
            connections = [conn for conn in self._workers.values() if conn is not None]
        for connection in connections:
            try:
                connection.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
        return len(connections)
