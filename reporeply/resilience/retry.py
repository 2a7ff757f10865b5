"""Retry policy with stepped backoff and dead-letter criteria.

Pure functions of the retry count; no I/O.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta

DEFAULT_RETRY_DELAYS_MINUTES = [5, 15, 30, 60, 120]
DEFAULT_MAX_RETRIES = 5
DEFAULT_PERMANENT_DEAD_AFTER = 3


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff schedule and dead-letter rule for reminder delivery.

    Attributes:
        delays_minutes: Delay per attempt, the last entry repeats
        max_retries: Attempts after which any reminder is dead
        permanent_dead_after: Attempts after which a permanent error is dead
    """

    delays_minutes: list[int] = field(default_factory=lambda: list(DEFAULT_RETRY_DELAYS_MINUTES))
    max_retries: int = DEFAULT_MAX_RETRIES
    permanent_dead_after: int = DEFAULT_PERMANENT_DEAD_AFTER

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            delays_minutes=list(settings.SCHEDULER_RETRY_DELAYS_MINUTES),
            max_retries=settings.SCHEDULER_MAX_RETRIES,
            permanent_dead_after=settings.SCHEDULER_PERMANENT_DEAD_AFTER,
        )

    def next_delay(self, retry_count: int) -> int:
        """Backoff in minutes for the given retry count (capped at the last step)."""
        index = min(max(retry_count, 0), len(self.delays_minutes) - 1)
        return self.delays_minutes[index]

    def is_dead(self, retry_count: int, is_permanent_error: bool) -> bool:
        """Whether a reminder with this many attempts should be dead-lettered."""
        if retry_count >= self.max_retries:
            return True
        return is_permanent_error and retry_count >= self.permanent_dead_after

    def next_scheduled_at(
        self,
        retry_count: int,
        is_dead: bool,
        now: datetime | None = None,
    ) -> datetime | None:
        """When to attempt again, or None for a dead reminder."""
        if is_dead:
            return None
        now = now or datetime.utcnow()
        return now + timedelta(minutes=self.next_delay(retry_count))
