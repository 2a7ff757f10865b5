"""Tests for the circuit breaker registry."""

import pytest

from reporeply.delivery.errors import CircuitOpenError
from reporeply.resilience.circuit_breaker import (
    KNOWN_SERVICES,
    CircuitBreakerRegistry,
    CircuitState,
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def breakers(clock):
    return CircuitBreakerRegistry(threshold=5, cooldown_seconds=60, clock=clock)


# ============================================================================
# Tripping Tests
# ============================================================================

class TestTripping:
    """Breaker opens after consecutive failures."""

    def test_closed_by_default(self, breakers):
        breakers.check("github")
        assert breakers.state("github") == CircuitState.CLOSED

    def test_stays_closed_below_threshold(self, breakers):
        for _ in range(4):
            breakers.record_failure("github")

        breakers.check("github")
        assert breakers.state("github") == CircuitState.CLOSED

    def test_opens_at_threshold(self, breakers):
        for _ in range(5):
            breakers.record_failure("github")

        assert breakers.state("github") == CircuitState.OPEN
        with pytest.raises(CircuitOpenError) as exc_info:
            breakers.check("github")
        assert exc_info.value.is_permanent
        assert "github circuit breaker is open" in str(exc_info.value)

    def test_success_resets_failure_streak(self, breakers):
        for _ in range(4):
            breakers.record_failure("github")
        breakers.record_success("github")
        for _ in range(4):
            breakers.record_failure("github")

        assert breakers.state("github") == CircuitState.CLOSED

    def test_services_are_independent(self, breakers):
        for _ in range(5):
            breakers.record_failure("telegram")

        breakers.check("github")
        with pytest.raises(CircuitOpenError):
            breakers.check("telegram")


# ============================================================================
# Cooldown Tests
# ============================================================================

class TestCooldown:
    """Breaker closes again once the cooldown has elapsed."""

    def test_half_open_after_cooldown(self, breakers, clock):
        for _ in range(5):
            breakers.record_failure("github")

        clock.advance(61)

        assert breakers.state("github") == CircuitState.HALF_OPEN

    def test_check_after_cooldown_closes(self, breakers, clock):
        for _ in range(5):
            breakers.record_failure("github")

        clock.advance(61)
        breakers.check("github")

        assert breakers.state("github") == CircuitState.CLOSED

    def test_still_open_within_cooldown(self, breakers, clock):
        for _ in range(5):
            breakers.record_failure("github")

        clock.advance(30)

        with pytest.raises(CircuitOpenError):
            breakers.check("github")

    def test_snapshot_and_reset(self, breakers):
        for _ in range(5):
            breakers.record_failure("github")
        breakers.record_failure("gitlab")

        assert breakers.snapshot() == {"github": "open", "gitlab": "closed"}

        breakers.reset("github")
        assert breakers.snapshot()["github"] == "closed"

    def test_registered_services_reported_before_first_call(self, clock):
        breakers = CircuitBreakerRegistry(clock=clock, services=KNOWN_SERVICES)

        assert breakers.snapshot() == {
            "github": "closed",
            "gitlab": "closed",
            "telegram": "closed",
        }
