"""Server lifecycle state management."""

import enum
import logging
import socket
import threading
import time
from typing import Optional

from surl.domain.correlation_id import CorrelationLoggerAdapter

LIFECYCLE_LOGGER = CorrelationLoggerAdapter(logging.getLogger("surl.lifecycle"), {})


class LifecycleState(enum.Enum):
    """Phases the server moves through, in order."""

    CONFIGURED = "configured"
    STARTING = "starting"
    LISTENING = "listening"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class ShutdownSignal:
    """One-shot shutdown request shared by every producer.

    The first call to ``request_shutdown`` records its reason and wakes the
    waiter; later calls are ignored. Calls never block.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: Optional[str] = None

    def request_shutdown(self, reason: str) -> bool:
        """Fire the signal; return True only for the call that fired it."""
        with self._lock:
            if self._reason is not None:
                return False
            self._reason = reason
        self._event.set()
        return True

    def is_set(self) -> bool:
        """Return True once a shutdown has been requested."""
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        """Reason given by the first producer, if any."""
        return self._reason

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the signal fires or the timeout elapses."""
        return self._event.wait(timeout)


class ServerLifecycle:
    """Manages lifecycle state and tracks worker threads and their sockets."""

    def __init__(self, shutdown_signal: Optional[ShutdownSignal] = None) -> None:
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._workers: dict[threading.Thread, Optional[socket.socket]] = {}
        self._state = LifecycleState.CONFIGURED
        self.shutdown_signal = shutdown_signal or ShutdownSignal()

    @property
    def state(self) -> LifecycleState:
        """Current lifecycle state."""
        with self._lock:
            return self._state

    def transition(self, state: LifecycleState) -> None:
        """Move to ``state``, logging the change."""
        with self._lock:
            self._state = state
        LIFECYCLE_LOGGER.debug(
            "Lifecycle state changed",
            extra={"event": "state_changed", "state": state.value},
        )

    def should_stop(self) -> bool:
        """Check if the server should stop accepting new connections."""
        return self._stop_event.is_set()

    def is_draining(self) -> bool:
        """Check if the server is shutting down."""
        return self._stop_event.is_set()

    def register_worker(
        self, thread: threading.Thread, client_socket: Optional[socket.socket] = None
    ) -> None:
        """Register a worker thread and the socket it serves."""
        with self._lock:
            self._workers[thread] = client_socket

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
        """Stop accepting connections and let in-flight requests finish."""
        if self._stop_event.is_set():
            return
        self._stop_event.set()
        self.transition(LifecycleState.SHUTTING_DOWN)
        LIFECYCLE_LOGGER.info(
            "Beginning graceful shutdown", extra={"event": "shutdown_started"}
        )

    def wait_for_workers(self, timeout: float) -> bool:
        """Wait for all worker threads to complete within the timeout."""
        deadline = time.monotonic() + timeout
        while True:
            with self._lock:
                self._workers = {
                    w: s for w, s in self._workers.items() if w.is_alive()
                }
                active_workers = list(self._workers)
            if not active_workers:
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                LIFECYCLE_LOGGER.warning(
                    "Shutdown timeout exceeded",
                    extra={
                        "event": "shutdown_timeout",
                        "remaining_workers": len(active_workers),
                    },
                )
                return False
            for worker in active_workers:
                worker.join(timeout=min(0.1, remaining))
                if time.monotonic() >= deadline:
                    break

    def force_close(self) -> int:
        """Close every tracked client socket; return how many were closed."""
        with self._lock:
            sockets = [s for s in self._workers.values() if s is not None]
        for client_socket in sockets:
            try:
                client_socket.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            client_socket.close()
        return len(sockets)
