"""Tests for the reminder delivery worker.

Tests cover:
- Fetching due reminders (pending and failed awaiting retry)
- Successful delivery
- Failure handling: backoff, permanent errors, dead-lettering
- Inactive and missing repositories
- Claim races and shutdown
"""

from datetime import datetime, timedelta
from unittest.mock import Mock

import pytest
from sqlmodel import Session, select

from reporeply.delivery.errors import DeliveryError, ErrorKind
from reporeply.models.audit_log import AuditAction, AuditLog
from reporeply.models.reminder import ReminderStatus
from reporeply.models.repository import Repository
from reporeply.services.reminders import claim_reminder
from reporeply.workers.base import WorkerStatus
from reporeply.workers.reminder_worker import ReminderWorker
from reporeply.workers.state import SchedulerState


def _not_found() -> DeliveryError:
    return DeliveryError("Issue not found (404)", kind=ErrorKind.PERMANENT, status_code=404)


def _audit_actions(session: Session) -> list[str]:
    return [entry.action for entry in session.exec(select(AuditLog)).all()]


@pytest.fixture
def delivery():
    return Mock()


@pytest.fixture
def state():
    return SchedulerState()


@pytest.fixture
def alerter():
    return Mock()


@pytest.fixture
def worker(delivery, state, settings, alerter):
    return ReminderWorker(delivery=delivery, state=state, settings=settings, alerter=alerter)


# ============================================================================
# Fetch Tests
# ============================================================================

class TestFetchPending:
    """Tests for ReminderWorker.fetch_pending."""

    def test_worker_name(self, worker):
        assert worker.worker_name == "ReminderWorker"

    def test_returns_due_reminders_only(self, worker, db_session, repository, make_reminder):
        due = make_reminder()
        make_reminder(scheduled_at=datetime.utcnow() + timedelta(hours=1))

        reminders = worker.fetch_pending(db_session)

        assert [r.id for r in reminders] == [due.id]

    def test_includes_failed_awaiting_retry(self, worker, db_session, repository, make_reminder):
        retry = make_reminder(status=ReminderStatus.FAILED, retry_count=2)

        assert [r.id for r in worker.fetch_pending(db_session)] == [retry.id]

    def test_excludes_terminal_and_claimed(self, worker, db_session, repository, make_reminder):
        make_reminder(status=ReminderStatus.SENT, sent_at=datetime.utcnow())
        make_reminder(status=ReminderStatus.DEAD)
        make_reminder(status=ReminderStatus.PROCESSING, locked_at=datetime.utcnow())

        assert worker.fetch_pending(db_session) == []

    def test_excludes_exhausted_retries(self, worker, db_session, repository, make_reminder):
        make_reminder(status=ReminderStatus.FAILED, retry_count=5)

        assert worker.fetch_pending(db_session) == []

    def test_oldest_first_and_batch_limit(self, worker, db_session, repository, make_reminder):
        now = datetime.utcnow()
        newer = make_reminder(scheduled_at=now - timedelta(minutes=1))
        oldest = make_reminder(scheduled_at=now - timedelta(minutes=30))
        make_reminder(scheduled_at=now - timedelta(seconds=10))
        worker.batch_size = 2

        reminders = worker.fetch_pending(db_session)

        assert [r.id for r in reminders] == [oldest.id, newer.id]


# ============================================================================
# Delivery Tests
# ============================================================================

class TestDelivery:
    """Successful delivery path."""

    def test_due_reminder_is_sent(self, worker, delivery, db_session, repository, make_reminder):
        reminder = make_reminder()

        result = worker.run(db_session)

        assert result.status == WorkerStatus.SUCCESS
        assert result.processed_count == 1
        db_session.refresh(reminder)
        assert reminder.status == ReminderStatus.SENT
        assert reminder.sent_at is not None
        assert reminder.locked_at is None
        assert _audit_actions(db_session) == [AuditAction.REMINDER_SENT.value]

        repo_arg, issue_arg, message_arg = delivery.post_comment.call_args.args
        assert repo_arg.id == "octo/widgets"
        assert issue_arg == 7
        assert message_arg == "Check the flaky test"

    def test_default_message(self, worker, delivery, db_session, repository, make_reminder):
        make_reminder(message=None)

        worker.run(db_session)

        assert delivery.post_comment.call_args.args[2] == "🔔 Reminder"

    def test_failed_reminder_is_retried(self, worker, db_session, repository, make_reminder):
        reminder = make_reminder(status=ReminderStatus.FAILED, retry_count=1, error="TEMPORARY: boom")

        worker.run(db_session)

        db_session.refresh(reminder)
        assert reminder.status == ReminderStatus.SENT
        assert reminder.error is None
        assert reminder.retry_count == 1

    def test_counts_in_flight_during_delivery(self, worker, delivery, state, db_session, repository, make_reminder):
        seen = []
        delivery.post_comment.side_effect = lambda *args: seen.append(state.active_processing)
        make_reminder()

        worker.run(db_session)

        assert seen == [1]
        assert state.active_processing == 0


# ============================================================================
# Failure Tests
# ============================================================================

class TestFailures:
    """Failed deliveries are rescheduled or dead-lettered."""

    def test_not_found_first_attempt_is_rescheduled(self, worker, delivery, db_session, repository, make_reminder):
        delivery.post_comment.side_effect = _not_found()
        reminder = make_reminder()
        before = datetime.utcnow()

        result = worker.run(db_session)

        after = datetime.utcnow()
        assert result.status == WorkerStatus.FAILED
        db_session.refresh(reminder)
        assert reminder.status == ReminderStatus.FAILED
        assert reminder.retry_count == 1
        assert reminder.error == "PERMANENT: Issue not found (404)"
        assert before + timedelta(minutes=5) <= reminder.scheduled_at <= after + timedelta(minutes=5)
        assert reminder.last_retry_at is not None
        assert reminder.sent_at is None

        entry = db_session.exec(select(AuditLog)).one()
        assert entry.action == AuditAction.REMINDER_FAILED.value
        assert entry.details["retry"] == 1
        assert entry.details["next_retry_in"] == "5 minutes"

    def test_permanent_error_at_third_attempt_is_dead(
        self, worker, delivery, alerter, db_session, repository, make_reminder
    ):
        delivery.post_comment.side_effect = _not_found()
        reminder = make_reminder(status=ReminderStatus.FAILED, retry_count=2)

        worker.run(db_session)

        db_session.refresh(reminder)
        assert reminder.status == ReminderStatus.DEAD
        assert reminder.retry_count == 3
        assert _audit_actions(db_session) == [AuditAction.REMINDER_DEAD.value]
        alerter.alert.assert_called_once()

    def test_transient_error_uses_backoff_step(self, worker, delivery, db_session, repository, make_reminder):
        delivery.post_comment.side_effect = ConnectionError("connection reset")
        reminder = make_reminder(status=ReminderStatus.FAILED, retry_count=2)
        before = datetime.utcnow()

        worker.run(db_session)

        db_session.refresh(reminder)
        assert reminder.status == ReminderStatus.FAILED
        assert reminder.retry_count == 3
        assert reminder.scheduled_at >= before + timedelta(minutes=30)

    def test_transient_error_dead_at_max_retries(self, worker, delivery, db_session, repository, make_reminder):
        delivery.post_comment.side_effect = ConnectionError("connection reset")
        reminder = make_reminder(status=ReminderStatus.FAILED, retry_count=4)

        worker.run(db_session)

        db_session.refresh(reminder)
        assert reminder.status == ReminderStatus.DEAD
        assert reminder.retry_count == 5

    def test_error_is_truncated(self, worker, delivery, db_session, repository, make_reminder):
        delivery.post_comment.side_effect = RuntimeError("x" * 2000)
        reminder = make_reminder()

        worker.run(db_session)

        db_session.refresh(reminder)
        assert len(reminder.error) == 500

    def test_one_failure_does_not_stop_batch(self, worker, delivery, db_session, repository, make_reminder):
        delivery.post_comment.side_effect = [_not_found(), None]
        first = make_reminder(scheduled_at=datetime.utcnow() - timedelta(hours=2))
        second = make_reminder()

        result = worker.run(db_session)

        assert result.status == WorkerStatus.PARTIAL
        db_session.refresh(first)
        db_session.refresh(second)
        assert first.status == ReminderStatus.FAILED
        assert second.status == ReminderStatus.SENT


# ============================================================================
# Repository Validation Tests
# ============================================================================

class TestRepositoryValidation:
    """Inactive or missing repositories dead-letter immediately."""

    def test_inactive_repository_is_dead(self, worker, delivery, alerter, db_session, make_reminder):
        db_session.add(Repository(id="octo/archived", is_active=False, installation_id="1"))
        db_session.commit()
        reminder = make_reminder(repo_id="octo/archived", status=ReminderStatus.FAILED, retry_count=1)

        worker.run(db_session)

        db_session.refresh(reminder)
        assert reminder.status == ReminderStatus.DEAD
        assert reminder.error == "Repository is inactive or deleted"
        assert reminder.retry_count == 1
        delivery.post_comment.assert_not_called()
        assert _audit_actions(db_session) == [AuditAction.REMINDER_DEAD.value]
        alerter.alert.assert_called_once()

    def test_missing_repository_is_dead(self, worker, delivery, db_session, make_reminder):
        reminder = make_reminder(repo_id="octo/deleted")

        worker.run(db_session)

        db_session.refresh(reminder)
        assert reminder.status == ReminderStatus.DEAD
        assert reminder.retry_count == 0
        delivery.post_comment.assert_not_called()


# ============================================================================
# Claim and Shutdown Tests
# ============================================================================

class TestClaimAndShutdown:
    """Claim races and stop requests."""

    def test_claimed_elsewhere_is_skipped(self, worker, db_session, repository, make_reminder):
        reminder = make_reminder()
        items = worker.fetch_pending(db_session)

        assert claim_reminder(db_session, reminder.id) is True
        assert worker.mark_processing(db_session, items[0]) is False

    def test_run_counts_skipped_claims(self, worker, delivery, db_session, repository, make_reminder):
        make_reminder()
        worker.mark_processing = Mock(return_value=False)

        result = worker.run(db_session)

        assert result.skipped_count == 1
        assert result.processed_count == 0
        delivery.post_comment.assert_not_called()

    def test_stop_requested_leaves_batch(self, worker, delivery, state, db_session, repository, make_reminder):
        reminder = make_reminder()
        state.is_shutting_down = True

        result = worker.run(db_session)

        assert result.processed_count == 0
        delivery.post_comment.assert_not_called()
        db_session.refresh(reminder)
        assert reminder.status == ReminderStatus.PENDING
