"""Throttled operator alerts on top of a notification sink."""

import logging
import threading
import time
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def send_message(self, text: str) -> bool: ...


class ThrottledAlerter:
    """Forwards alerts to a sink at most once per interval.

    Alerts raised inside the interval are dropped (and counted), so a burst
    of dead-lettered reminders produces a single message.
    """

    def __init__(
        self,
        sink: NotificationSink,
        interval_seconds: float = 600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.sink = sink
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._last_sent_at: float | None = None
        self.suppressed = 0
        self._lock = threading.Lock()

    def alert(self, text: str) -> bool:
        """Send the alert unless one went out within the interval."""
        with self._lock:
            now = self._clock()
            if self._last_sent_at is not None and now - self._last_sent_at < self.interval_seconds:
                self.suppressed += 1
                logger.debug("Alert suppressed by throttle", extra={"suppressed": self.suppressed})
                return False
            self._last_sent_at = now
            suppressed, self.suppressed = self.suppressed, 0

        if suppressed:
            text = f"{text}\n\n_{suppressed} earlier alert(s) suppressed_"
        return self.sink.send_message(text)
