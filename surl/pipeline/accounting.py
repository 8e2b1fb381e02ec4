"""Served-request accounting and the count-triggered shutdown."""

import logging
import threading

from surl.domain.correlation_id import CorrelationLoggerAdapter
from surl.lifecycle.state import ShutdownSignal

ACCOUNTING_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("surl.pipeline.accounting"), {}
)


class RequestCounter:
    """Thread-safe monotonically increasing request counter."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0

    def increment(self) -> int:
        """Add one and return the new value as a single atomic step."""
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        """Current count."""
        with self._lock:
            return self._value


class RequestAccountant:
    """Counts served requests and requests shutdown at the threshold."""

    def __init__(
        self, counter: RequestCounter, threshold: int, shutdown_signal: ShutdownSignal
    ) -> None:
        self.counter = counter
        self.threshold = max(0, threshold)
        self._shutdown_signal = shutdown_signal

    def record(self) -> int:
        """Count one served request; fire the shutdown signal on the threshold."""
        count = self.counter.increment()
        if self.threshold and count == self.threshold:
            ACCOUNTING_LOGGER.info(
                "Response count reached, shutting down",
                extra={"event": "count_reached", "count": count},
            )
            self._shutdown_signal.request_shutdown("count_reached")
        return count
