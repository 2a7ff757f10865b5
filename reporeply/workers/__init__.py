"""Background scheduler for reminder delivery.

This module provides the in-process scheduler:
- Reminder delivery worker (claim, deliver, retry, dead-letter)
- Stale-lock reaper
- Daily metrics and status broadcasts

The scheduler can be started via:
- run_scheduler_once(): Single processing cycle
- run_scheduler_loop(): Continuous processing until interrupted
- ReminderScheduler.start(): Background thread
"""

from reporeply.workers.base import (
    WorkerBase,
    WorkerResult,
    WorkerStatus,
)
from reporeply.workers.cleanup import cleanup_stale_locks
from reporeply.workers.metrics import send_daily_metrics_if_needed
from reporeply.workers.reminder_worker import ReminderWorker
from reporeply.workers.runner import (
    CycleResult,
    ReminderScheduler,
    configure_logging,
    run_scheduler_loop,
    run_scheduler_once,
)
from reporeply.workers.state import HealthStatus, SchedulerState

__all__ = [
    # Base classes
    "WorkerBase",
    "WorkerResult",
    "WorkerStatus",
    # Workers
    "ReminderWorker",
    "cleanup_stale_locks",
    "send_daily_metrics_if_needed",
    # State
    "HealthStatus",
    "SchedulerState",
    # Runner
    "ReminderScheduler",
    "CycleResult",
    "run_scheduler_once",
    "run_scheduler_loop",
    "configure_logging",
]
