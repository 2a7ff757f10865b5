"""Protective policies around unreliable external calls."""

from reporeply.resilience.circuit_breaker import CircuitBreakerRegistry, CircuitState
from reporeply.resilience.retry import RetryPolicy

__all__ = [
    "CircuitBreakerRegistry",
    "CircuitState",
    "RetryPolicy",
]
