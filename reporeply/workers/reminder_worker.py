"""Reminder delivery worker.

Processes due Reminder records:
1. Claims each due reminder with a conditional status update
2. Verifies the target repository is still active
3. Posts the reminder comment through the delivery client
4. Marks the reminder SENT, or schedules a retry, or dead-letters it
"""

import logging
from contextlib import AbstractContextManager
from datetime import datetime

from sqlmodel import Session

from reporeply.config import Settings
from reporeply.delivery.client import DeliveryClient
from reporeply.delivery.errors import (
    ErrorKind,
    InactiveRepositoryError,
    classify_error,
    is_terminal,
)
from reporeply.models.audit_log import AuditAction
from reporeply.models.reminder import RETRY_ELIGIBLE_STATUSES, Reminder, ReminderStatus
from reporeply.notifications.alerts import ThrottledAlerter
from reporeply.resilience.retry import RetryPolicy
from reporeply.services.audit import append_audit_log
from reporeply.services.reminders import (
    claim_reminder,
    find_due_reminders,
    find_repository,
    update_reminder,
)
from reporeply.workers.base import WorkerBase
from reporeply.workers.state import SchedulerState

logger = logging.getLogger(__name__)


class ReminderWorker(WorkerBase[Reminder]):
    """Worker delivering due reminders as issue comments.

    Several instances (threads or processes) may run against the same
    database; the claim in mark_processing() guarantees each reminder is
    delivered by at most one of them per attempt.
    """

    def __init__(
        self,
        delivery: DeliveryClient,
        state: SchedulerState,
        settings: Settings,
        retry_policy: RetryPolicy | None = None,
        alerter: ThrottledAlerter | None = None,
    ) -> None:
        super().__init__(
            batch_size=settings.SCHEDULER_BATCH_SIZE,
            error_max_length=settings.ERROR_MESSAGE_MAX_LENGTH,
        )
        self.delivery = delivery
        self.state = state
        self.settings = settings
        self.retry_policy = retry_policy or RetryPolicy.from_settings(settings)
        self.alerter = alerter

    @property
    def worker_name(self) -> str:
        return "ReminderWorker"

    def fetch_pending(self, session: Session) -> list[Reminder]:
        """Fetch reminders whose scheduled time has passed."""
        return find_due_reminders(
            session,
            now=datetime.utcnow(),
            limit=self.batch_size,
            max_retries=self.retry_policy.max_retries,
        )

    def mark_processing(self, session: Session, item: Reminder) -> bool:
        """Claim the reminder in the status it was last seen in."""
        # Earlier commits in this batch expire item, so status is re-read here.
        if item.status not in RETRY_ELIGIBLE_STATUSES:
            return False
        return claim_reminder(session, item.id, expected_status=item.status)

    def stop_requested(self) -> bool:
        return self.state.is_shutting_down

    def in_flight(self) -> AbstractContextManager:
        return self.state.processing()

    def process_item(self, session: Session, item: Reminder) -> None:
        """Deliver the reminder comment.

        Raises:
            InactiveRepositoryError: Repository missing or deactivated
            DeliveryError: Classified delivery failure
        """
        repository = find_repository(session, item.repo_id)
        if repository is None or not repository.is_active:
            raise InactiveRepositoryError(item.repo_id)

        message = item.message or self.settings.DEFAULT_REMINDER_MESSAGE
        self.delivery.post_comment(repository, item.issue_number, message)

    def mark_completed(self, session: Session, item: Reminder) -> None:
        now = datetime.utcnow()
        update_reminder(
            session,
            item,
            status=ReminderStatus.SENT,
            sent_at=now,
            error=None,
            locked_at=None,
            updated_at=now,
        )
        append_audit_log(
            session,
            AuditAction.REMINDER_SENT,
            repo_id=item.repo_id,
            entity_id=item.id,
            details={
                "reminder_id": item.id,
                "issue_number": item.issue_number,
                "retry_count": item.retry_count,
            },
        )

    def mark_failed(self, session: Session, item: Reminder, error: Exception) -> None:
        """Schedule the next attempt or dead-letter the reminder."""
        now = datetime.utcnow()
        error_msg = str(error)[: self.error_max_length]

        if is_terminal(error):
            reason = getattr(error, "message", error_msg)[: self.error_max_length]
            self._dead_letter(session, item, reason, now)
            return

        retry_count = item.retry_count + 1
        is_permanent = classify_error(error) == ErrorKind.PERMANENT
        dead = self.retry_policy.is_dead(retry_count, is_permanent)
        next_retry_at = self.retry_policy.next_scheduled_at(item.retry_count, dead, now=now)

        fields = {
            "retry_count": retry_count,
            "error": error_msg,
            "last_retry_at": now,
            "locked_at": None,
            "updated_at": now,
        }
        if dead:
            fields["status"] = ReminderStatus.DEAD
        else:
            fields["status"] = ReminderStatus.FAILED
            fields["scheduled_at"] = next_retry_at
        update_reminder(session, item, **fields)

        append_audit_log(
            session,
            AuditAction.REMINDER_DEAD if dead else AuditAction.REMINDER_FAILED,
            repo_id=item.repo_id,
            entity_id=item.id,
            details={
                "reminder_id": item.id,
                "issue_number": item.issue_number,
                "retry": retry_count,
                "error": error_msg,
                "next_retry_in": (
                    None if dead else f"{self.retry_policy.next_delay(retry_count - 1)} minutes"
                ),
                "next_retry_at": next_retry_at.isoformat() if next_retry_at else None,
            },
        )

        if dead:
            logger.error(
                f"Reminder {item.id} is dead after {retry_count} attempts",
                extra={"reminder_id": item.id, "error": error_msg},
            )
            self._alert_dead(item, error_msg)
        else:
            logger.warning(
                f"Reminder {item.id} failed, retry {retry_count} at {next_retry_at.isoformat()}",
                extra={"reminder_id": item.id, "retry": retry_count},
            )

    def _dead_letter(self, session: Session, item: Reminder, error_msg: str, now: datetime) -> None:
        update_reminder(
            session,
            item,
            status=ReminderStatus.DEAD,
            error=error_msg,
            locked_at=None,
            updated_at=now,
        )
        append_audit_log(
            session,
            AuditAction.REMINDER_DEAD,
            repo_id=item.repo_id,
            entity_id=item.id,
            details={
                "reminder_id": item.id,
                "issue_number": item.issue_number,
                "retry": item.retry_count,
                "error": error_msg,
                "next_retry_in": None,
                "next_retry_at": None,
            },
        )
        logger.warning(
            f"Reminder {item.id} dead-lettered: {error_msg}",
            extra={"reminder_id": item.id, "repo_id": item.repo_id},
        )
        self._alert_dead(item, error_msg)

    def _alert_dead(self, item: Reminder, error_msg: str) -> None:
        if self.alerter is None:
            return
        self.alerter.alert(
            f"☠️ *Reminder dead-lettered*\n\n"
            f"Repo: `{item.repo_id}`\nIssue: #{item.issue_number}\nError: {error_msg}"
        )

    def get_item_id(self, item: Reminder) -> str:
        return item.id
