"""Circuit breakers for the external services the scheduler depends on.

States per service:
- CLOSED: Normal operation, calls pass through
- OPEN: Tripped, calls fail fast with CircuitOpenError
- HALF_OPEN: Cooldown elapsed; the next check closes the breaker again

Transitions:
- CLOSED -> OPEN: After `threshold` failures without a success in between
- OPEN -> HALF_OPEN: After `cooldown_seconds` since the last failure
- HALF_OPEN -> CLOSED: On the next check()
"""

import logging
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum

from reporeply.delivery.errors import CircuitOpenError

logger = logging.getLogger(__name__)

KNOWN_SERVICES = ("github", "gitlab", "telegram")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class BreakerState:
    """Failure bookkeeping for one service."""

    failures: int = 0
    last_failure: float | None = None
    is_open: bool = False


class CircuitBreakerRegistry:
    """Thread-safe per-service circuit breakers.

    Usage:
        breakers = CircuitBreakerRegistry()

        breakers.check("github")  # raises CircuitOpenError while open
        try:
            result = make_call()
            breakers.record_success("github")
        except Exception:
            breakers.record_failure("github")
            raise
    """

    def __init__(
        self,
        threshold: int = 5,
        cooldown_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
        services: Iterable[str] = (),
    ) -> None:
        self.threshold = threshold
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._breakers: dict[str, BreakerState] = {
            service: BreakerState() for service in services
        }
        self._lock = threading.Lock()

    def _get(self, service: str) -> BreakerState:
        breaker = self._breakers.get(service)
        if breaker is None:
            breaker = BreakerState()
            self._breakers[service] = breaker
        return breaker

    def _cooling_down(self, breaker: BreakerState) -> bool:
        return (
            breaker.last_failure is not None
            and self._clock() - breaker.last_failure < self.cooldown_seconds
        )

    def check(self, service: str) -> None:
        """Fail fast if the service's breaker is open and still cooling down.

        Raises:
            CircuitOpenError: If the breaker is open
        """
        with self._lock:
            breaker = self._get(service)
            if not breaker.is_open:
                return

            if self._cooling_down(breaker):
                raise CircuitOpenError(service)

            breaker.is_open = False
            breaker.failures = 0

        logger.info(f"Circuit breaker [{service}]: cooldown elapsed, closed again")

    def record_success(self, service: str) -> None:
        """Record a successful call."""
        with self._lock:
            self._get(service).failures = 0

    def record_failure(self, service: str) -> None:
        """Record a failed call, opening the breaker at the threshold."""
        with self._lock:
            breaker = self._get(service)
            breaker.failures += 1
            breaker.last_failure = self._clock()
            tripped = not breaker.is_open and breaker.failures >= self.threshold
            if breaker.failures >= self.threshold:
                breaker.is_open = True
            failures = breaker.failures

        if tripped:
            logger.error(
                f"Circuit breaker [{service}]: OPENED after {failures} failures",
                extra={"service": service, "failures": failures},
            )

    def state(self, service: str) -> CircuitState:
        """Current state of a service's breaker."""
        with self._lock:
            breaker = self._get(service)
            if not breaker.is_open:
                return CircuitState.CLOSED
            if self._cooling_down(breaker):
                return CircuitState.OPEN
            return CircuitState.HALF_OPEN

    def reset(self, service: str) -> None:
        """Forget all failures for a service."""
        with self._lock:
            self._breakers[service] = BreakerState()

    def snapshot(self) -> dict[str, str]:
        """State of every known breaker, for health reporting."""
        with self._lock:
            services = list(self._breakers)
        return {service: self.state(service).value for service in services}
