"""Reminder scheduler runner.

Provides easy-to-use entry points for running the scheduler:
- run_scheduler_once(): Single processing cycle
- run_scheduler_loop(): Continuous processing until interrupted
- ReminderScheduler.start()/stop(): Background thread inside the API process

Each cycle: reap stale locks -> deliver due reminders -> daily metrics ->
status broadcast -> update health. The next cycle is scheduled only after the
current one finishes, so cycles never overlap within one instance.
"""

import logging
import signal
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlmodel import Session

from reporeply.config import Settings, get_settings
from reporeply.db.session import engine
from reporeply.delivery.client import DeliveryClient
from reporeply.notifications.alerts import NotificationSink, ThrottledAlerter
from reporeply.notifications.telegram import TelegramNotifier
from reporeply.resilience.retry import RetryPolicy
from reporeply.workers.base import WorkerResult
from reporeply.workers.cleanup import cleanup_stale_locks
from reporeply.workers.metrics import (
    send_daily_metrics_if_needed,
    send_startup_message,
    send_status_update_if_due,
)
from reporeply.workers.reminder_worker import ReminderWorker
from reporeply.workers.state import SchedulerState

logger = logging.getLogger(__name__)


@dataclass
class CycleResult:
    """Result of one scheduler cycle.

    Attributes:
        started_at: When the cycle started
        completed_at: When the cycle completed
        released_locks: Stale claims returned to pending
        worker_result: Outcome of the delivery batch
        metrics_sent: Whether the daily summary went out in this cycle
        errors: Bookkeeping errors (these count against health)
    """

    started_at: datetime
    completed_at: datetime | None = None
    released_locks: int = 0
    worker_result: WorkerResult | None = None
    metrics_sent: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def total_processed(self) -> int:
        return self.worker_result.processed_count if self.worker_result else 0

    @property
    def total_failed(self) -> int:
        return self.worker_result.failed_count if self.worker_result else 0

    @property
    def succeeded(self) -> bool:
        """False when the cycle itself broke, not when single reminders failed."""
        if self.errors:
            return False
        if self.worker_result is None:
            return False
        return self.worker_result.metadata.get("stage") != "fetch"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": (
                (self.completed_at - self.started_at).total_seconds() * 1000
                if self.completed_at
                else None
            ),
            "released_locks": self.released_locks,
            "total_processed": self.total_processed,
            "total_failed": self.total_failed,
            "metrics_sent": self.metrics_sent,
            "errors": self.errors,
        }


class ReminderScheduler:
    """Polls for due reminders and delivers them.

    Usage:
        scheduler = ReminderScheduler()
        result = scheduler.run_once()

        scheduler.start()   # background thread
        scheduler.stop()    # drain in-flight work, then join
    """

    def __init__(
        self,
        settings: Settings | None = None,
        state: SchedulerState | None = None,
        delivery: DeliveryClient | None = None,
        notifier: NotificationSink | None = None,
        session_factory: Callable[[], Session] | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            settings: Configuration (default from environment)
            state: Scheduler state (created from settings if not provided)
            delivery: Delivery client (created from settings if not provided)
            notifier: Notification sink (Telegram if not provided)
            session_factory: Creates a database session per cycle
        """
        self.settings = settings or get_settings()
        self.state = state or SchedulerState.from_settings(self.settings)
        self.delivery = delivery or DeliveryClient.from_settings(
            self.settings, self.state.breakers, self.state.token_cache
        )
        self.notifier = notifier or TelegramNotifier.from_settings(self.settings, self.state.breakers)
        self.session_factory = session_factory or (lambda: Session(engine))

        self.worker = ReminderWorker(
            delivery=self.delivery,
            state=self.state,
            settings=self.settings,
            retry_policy=RetryPolicy.from_settings(self.settings),
            alerter=ThrottledAlerter(
                self.notifier,
                interval_seconds=self.settings.FAILURE_ALERT_THROTTLE_SECONDS,
            ),
        )

        self._logger = logging.getLogger(self.__class__.__name__)
        self._wakeup = threading.Event()
        self._run_lock = threading.Lock()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self, session: Session | None = None) -> CycleResult:
        """Execute one complete scheduler cycle.

        Args:
            session: Optional database session (creates new if not provided)

        Returns:
            CycleResult with statistics
        """
        with self._run_lock:
            return self._run_cycle(session)

    def _run_cycle(self, session: Session | None) -> CycleResult:
        result = CycleResult(started_at=datetime.utcnow())

        own_session = session is None
        if own_session:
            session = self.session_factory()

        try:
            try:
                result.released_locks = cleanup_stale_locks(
                    session,
                    timeout_seconds=self.settings.SCHEDULER_PROCESSING_TIMEOUT_SECONDS,
                )
            except Exception as e:
                session.rollback()
                self._record_error(result, "Stale lock cleanup failed", e)

            result.worker_result = self.worker.run(session)

            try:
                result.metrics_sent = send_daily_metrics_if_needed(session, self.notifier)
            except Exception as e:
                session.rollback()
                self._record_error(result, "Daily metrics failed", e)

            try:
                send_status_update_if_due(
                    session,
                    self.notifier,
                    self.state,
                    interval_seconds=self.settings.STATUS_BROADCAST_INTERVAL_SECONDS,
                )
            except Exception as e:
                session.rollback()
                self._record_error(result, "Status broadcast failed", e)

        except Exception as e:
            self._record_error(result, "Scheduler cycle failed", e)

        finally:
            if own_session:
                session.close()

        result.completed_at = datetime.utcnow()
        self.state.record_cycle(
            success=result.succeeded,
            processed=result.total_processed,
            now=result.completed_at,
        )

        self._logger.info("Scheduler cycle completed", extra=result.to_dict())
        return result

    def _record_error(self, result: CycleResult, message: str, error: Exception) -> None:
        result.errors.append(f"{message}: {error}")
        self._logger.error(message, extra={"error": str(error)}, exc_info=True)

    def run_loop(self, max_iterations: int | None = None) -> None:
        """Run cycles until shutdown is requested.

        Waits the startup delay, announces the start on the notification
        sink, then sleeps the poll interval after each finished cycle.

        Args:
            max_iterations: Max cycles to run (None for infinite)
        """
        interval = self.settings.SCHEDULER_POLL_INTERVAL_SECONDS
        iterations = 0

        self._logger.info(
            "Starting scheduler loop",
            extra={
                "interval_seconds": interval,
                "startup_delay_seconds": self.settings.SCHEDULER_STARTUP_DELAY_SECONDS,
                "max_iterations": max_iterations,
            },
        )

        if self._wakeup.wait(self.settings.SCHEDULER_STARTUP_DELAY_SECONDS):
            self._logger.info("Shutdown requested before first cycle")
            return

        send_startup_message(self.notifier)

        while not self.state.is_shutting_down:
            if max_iterations is not None and iterations >= max_iterations:
                self._logger.info(f"Reached max iterations ({max_iterations}), stopping")
                break

            result = self.run_once()
            iterations += 1

            self._logger.info(
                f"Iteration {iterations} complete",
                extra={
                    "processed": result.total_processed,
                    "failed": result.total_failed,
                },
            )

            if max_iterations is not None and iterations >= max_iterations:
                continue

            self._logger.debug(f"Sleeping for {interval} seconds")
            self._wakeup.wait(interval)

        self._logger.info(
            "Scheduler loop stopped",
            extra={"total_iterations": iterations},
        )

    def start(self) -> None:
        """Run the loop in a daemon thread."""
        if self.is_running:
            return
        self.state.is_shutting_down = False
        self._wakeup.clear()
        self._thread = threading.Thread(
            target=self.run_loop,
            name="reminder-scheduler",
            daemon=True,
        )
        self._thread.start()

    def request_shutdown(self) -> None:
        """Stop taking new work and wake the loop."""
        self.state.is_shutting_down = True
        self._wakeup.set()

    def stop(self, grace_seconds: float | None = None, poll_seconds: float = 1.0) -> bool:
        """Request shutdown and wait for in-flight reminders.

        Returns:
            True if all in-flight work finished within the grace period
        """
        grace = (
            grace_seconds
            if grace_seconds is not None
            else self.settings.SCHEDULER_SHUTDOWN_GRACE_SECONDS
        )
        deadline = time.monotonic() + grace
        self.request_shutdown()

        drained = self._wait_for_in_flight(deadline, poll_seconds)
        if not drained:
            self._logger.warning(
                f"Forced shutdown with {self.state.active_processing} reminder(s) in flight",
                extra={"active_processing": self.state.active_processing},
            )

        if self._thread is not None:
            self._thread.join(timeout=max(0.0, deadline - time.monotonic()))
            self._thread = None

        self.close()
        self._logger.info("Scheduler stopped", extra={"drained": drained})
        return drained

    def _wait_for_in_flight(self, deadline: float, poll_seconds: float) -> bool:
        while self.state.active_processing > 0:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            time.sleep(min(poll_seconds, remaining))
        return True

    def serve(self, max_iterations: int | None = None) -> None:
        """Run the loop in the foreground until SIGINT/SIGTERM."""
        self._setup_signal_handlers()
        try:
            self.run_loop(max_iterations=max_iterations)
        except KeyboardInterrupt:
            self._logger.info("Keyboard interrupt received, shutting down")
        finally:
            self.stop()

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        def handle_signal(signum, frame):
            self._logger.info(f"Received signal {signum}, requesting shutdown")
            self.request_shutdown()

        signal.signal(signal.SIGINT, handle_signal)
        signal.signal(signal.SIGTERM, handle_signal)

    def health_status(self) -> dict[str, Any]:
        return self.state.health_status()

    def close(self) -> None:
        """Close HTTP clients."""
        self.delivery.close()
        close = getattr(self.notifier, "close", None)
        if close is not None:
            close()


# Convenience functions for easy usage


def run_scheduler_once() -> CycleResult:
    """Run one scheduler cycle and return results.

    Example:
        >>> from reporeply.workers import run_scheduler_once
        >>> result = run_scheduler_once()
        >>> print(f"Processed: {result.total_processed}")
    """
    scheduler = ReminderScheduler()
    try:
        return scheduler.run_once()
    finally:
        scheduler.close()


def run_scheduler_loop(max_iterations: int | None = None) -> None:
    """Run the scheduler in the foreground until interrupted (Ctrl+C)."""
    ReminderScheduler().serve(max_iterations=max_iterations)


def configure_logging(level: int = logging.INFO) -> None:
    """Configure logging for scheduler processes.

    Args:
        level: Logging level (default: INFO)
    """
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logging.getLogger("reporeply").setLevel(level)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
