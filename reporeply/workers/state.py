"""Mutable state owned by one scheduler instance.

Holds the health bookkeeping, in-flight counter, circuit breakers and the
token cache. The scheduler creates one SchedulerState and hands it to the
components that need it, so several schedulers can coexist in one process.
"""

import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from typing import Any

from reporeply.config import Settings
from reporeply.delivery.token_cache import TokenCache
from reporeply.resilience.circuit_breaker import KNOWN_SERVICES, CircuitBreakerRegistry


class HealthStatus(str, Enum):
    """Scheduler health derived from the consecutive failure streak."""

    STARTING = "starting"
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class SchedulerState:
    """In-process scheduler state, safe to read from another thread."""

    def __init__(
        self,
        breakers: CircuitBreakerRegistry | None = None,
        token_cache: TokenCache | None = None,
        unhealthy_after_failures: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.breakers = (
            breakers if breakers is not None else CircuitBreakerRegistry(services=KNOWN_SERVICES)
        )
        self.token_cache = token_cache if token_cache is not None else TokenCache()
        self.unhealthy_after_failures = unhealthy_after_failures
        self._clock = clock
        self._started_at = clock()
        self._lock = threading.Lock()

        self.is_shutting_down = False
        self.active_processing = 0

        self.status = HealthStatus.STARTING
        self.last_run: datetime | None = None
        self.last_success: datetime | None = None
        self.consecutive_failures = 0
        self.processed_total = 0

        self.last_status_broadcast: datetime | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "SchedulerState":
        return cls(
            breakers=CircuitBreakerRegistry(
                threshold=settings.CIRCUIT_BREAKER_THRESHOLD,
                cooldown_seconds=settings.CIRCUIT_BREAKER_COOLDOWN_SECONDS,
                services=KNOWN_SERVICES,
            ),
            token_cache=TokenCache(ttl_seconds=settings.TOKEN_CACHE_TTL_SECONDS),
            unhealthy_after_failures=settings.SCHEDULER_UNHEALTHY_AFTER_FAILURES,
        )

    @contextmanager
    def processing(self) -> Iterator[None]:
        """Count one reminder as in flight for the duration of the block."""
        with self._lock:
            self.active_processing += 1
        try:
            yield
        finally:
            with self._lock:
                self.active_processing -= 1

    def record_cycle(self, success: bool, processed: int, now: datetime | None = None) -> None:
        """Update health after a scheduler cycle."""
        now = now or datetime.utcnow()
        with self._lock:
            self.last_run = now
            self.processed_total += processed
            if success:
                self.last_success = now
                self.consecutive_failures = 0
            else:
                self.consecutive_failures += 1
            self.status = self._derive_status()

    def _derive_status(self) -> HealthStatus:
        if self.consecutive_failures == 0:
            return HealthStatus.HEALTHY
        if self.consecutive_failures < self.unhealthy_after_failures:
            return HealthStatus.DEGRADED
        return HealthStatus.UNHEALTHY

    def uptime_seconds(self) -> float:
        return self._clock() - self._started_at

    def health_status(self) -> dict[str, Any]:
        """Snapshot for monitoring."""
        with self._lock:
            snapshot = {
                "status": self.status.value,
                "last_run": self.last_run.isoformat() if self.last_run else None,
                "last_success": self.last_success.isoformat() if self.last_success else None,
                "consecutive_failures": self.consecutive_failures,
                "processed_total": self.processed_total,
                "active_processing": self.active_processing,
                "shutting_down": self.is_shutting_down,
            }
        snapshot["uptime"] = round(self.uptime_seconds(), 1)
        snapshot["circuit_breakers"] = self.breakers.snapshot()
        return snapshot
