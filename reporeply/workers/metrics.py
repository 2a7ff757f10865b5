"""Daily metrics, status broadcasts and the startup message.

All three go to the notification sink and are best effort: the sink never
raises, and a failed send leaves no audit entry, so the daily summary is
simply attempted again on the next cycle.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlmodel import Session

from reporeply.models.audit_log import AuditAction
from reporeply.models.reminder import ReminderStatus
from reporeply.notifications.alerts import NotificationSink
from reporeply.services.audit import append_audit_log, find_audit_entry_since
from reporeply.services.reminders import count_reminders, get_latest_reminders
from reporeply.workers.state import SchedulerState

logger = logging.getLogger(__name__)


@dataclass
class DailyMetrics:
    """Reminder counts for one UTC day (pending is all-time)."""

    sent: int = 0
    failed: int = 0
    dead: int = 0
    pending: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "sent": self.sent,
            "failed": self.failed,
            "dead": self.dead,
            "pending": self.pending,
        }


def start_of_day(now: datetime) -> datetime:
    """Midnight UTC of the day containing now."""
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def collect_daily_metrics(session: Session, now: datetime | None = None) -> DailyMetrics:
    today = start_of_day(now or datetime.utcnow())
    return DailyMetrics(
        sent=count_reminders(session, ReminderStatus.SENT, sent_since=today),
        failed=count_reminders(session, ReminderStatus.FAILED, updated_since=today),
        dead=count_reminders(session, ReminderStatus.DEAD, updated_since=today),
        pending=count_reminders(session, ReminderStatus.PENDING),
    )


def format_metrics_summary(metrics: DailyMetrics) -> str:
    return (
        "📊 *RepoReply Daily Metrics*\n\n"
        f"✅ Sent: {metrics.sent}\n"
        f"⚠️ Failed: {metrics.failed}\n"
        f"☠️ Dead: {metrics.dead}\n"
        f"⏳ Pending: {metrics.pending}"
    )


def send_daily_metrics_if_needed(
    session: Session,
    notifier: NotificationSink,
    now: datetime | None = None,
) -> bool:
    """Send today's summary unless it already went out.

    Safe to call every cycle. The notification sink is best-effort, so the
    day is recorded as done whether or not the message was delivered. Two
    instances racing past the audit check may both send; that duplicate is
    accepted.

    Returns:
        True if a summary was delivered by this call
    """
    now = now or datetime.utcnow()
    if find_audit_entry_since(session, AuditAction.DAILY_METRICS_SENT, start_of_day(now)):
        return False

    metrics = collect_daily_metrics(session, now)
    delivered = notifier.send_message(format_metrics_summary(metrics))

    append_audit_log(
        session,
        AuditAction.DAILY_METRICS_SENT,
        details={
            "date": start_of_day(now).date().isoformat(),
            "delivered": delivered,
            **metrics.to_dict(),
        },
    )
    session.commit()

    if delivered:
        logger.info("Daily metrics sent", extra=metrics.to_dict())
    else:
        logger.warning("Daily metrics not delivered", extra=metrics.to_dict())
    return delivered


def format_status_update(session: Session, state: SchedulerState, latest: int = 5) -> str:
    reminders = get_latest_reminders(session, limit=latest)
    pending = sum(1 for r in reminders if r.status == ReminderStatus.PENDING)
    sent = sum(1 for r in reminders if r.status == ReminderStatus.SENT)
    health = state.health_status()
    return (
        "🤖 *RepoReply Status*\n\n"
        f"Health: {health['status']}\n"
        f"Processed: {health['processed_total']}\n"
        f"Latest {len(reminders)} reminders: {pending} pending, {sent} sent"
    )


def send_status_update_if_due(
    session: Session,
    notifier: NotificationSink,
    state: SchedulerState,
    interval_seconds: int,
    now: datetime | None = None,
) -> bool:
    """Broadcast a status message once per interval (0 disables)."""
    if interval_seconds <= 0:
        return False

    now = now or datetime.utcnow()
    last = state.last_status_broadcast
    if last is not None and now - last < timedelta(seconds=interval_seconds):
        return False

    state.last_status_broadcast = now
    return notifier.send_message(format_status_update(session, state))


def send_startup_message(notifier: NotificationSink, now: datetime | None = None) -> bool:
    now = now or datetime.utcnow()
    return notifier.send_message(
        "🚀 *RepoReply scheduler started*\n\n" f"Time: {now.strftime('%Y-%m-%d %H:%M:%S')} UTC"
    )
