"""Reminder persistence operations.

Every cross-instance coordination point of the scheduler is expressed here
as a query or a conditional write against the reminder store:

- find_due_reminders(): the due batch, oldest first
- claim_reminder(): atomic compare-and-set of status -> processing
- release_stale_claims(): crash recovery for abandoned claims
- count_reminders(): aggregates for metrics and status broadcasts

The command handler that turns issue comments into reminders uses
create_reminder() and has_recent_reminder().
"""

import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import update
from sqlmodel import Session, func, select

from reporeply.models.reminder import (
    RETRY_ELIGIBLE_STATUSES,
    Reminder,
    ReminderCreate,
    ReminderStatus,
)
from reporeply.models.repository import Repository

logger = logging.getLogger(__name__)


def create_reminder(session: Session, reminder_data: ReminderCreate) -> Reminder:
    """Persist a new pending reminder."""
    reminder = Reminder(
        repo_id=reminder_data.repo_id,
        issue_number=reminder_data.issue_number,
        message=reminder_data.message,
        created_by=reminder_data.created_by,
        scheduled_at=reminder_data.scheduled_at,
        status=ReminderStatus.PENDING,
    )
    session.add(reminder)
    session.commit()
    session.refresh(reminder)

    logger.info(
        f"Created reminder {reminder.id}",
        extra={
            "reminder_id": reminder.id,
            "repo_id": reminder.repo_id,
            "issue_number": reminder.issue_number,
            "scheduled_at": reminder.scheduled_at.isoformat(),
        },
    )
    return reminder


def has_recent_reminder(
    session: Session,
    repo_id: str,
    issue_number: int,
    created_by: str,
    minutes: int = 5,
) -> bool:
    """Check whether the same user asked for a reminder on this issue recently."""
    cutoff = datetime.utcnow() - timedelta(minutes=minutes)
    existing = session.exec(
        select(Reminder.id)
        .where(Reminder.repo_id == repo_id)
        .where(Reminder.issue_number == issue_number)
        .where(Reminder.created_by == created_by)
        .where(Reminder.created_at >= cutoff)
        .limit(1)
    ).first()
    return existing is not None


def find_due_reminders(
    session: Session,
    now: datetime,
    limit: int,
    max_retries: int,
) -> list[Reminder]:
    """Fetch reminders that are due for delivery.

    Due means: pending or failed (awaiting retry), scheduled at or before
    now, not yet sent, and below the retry cap. Ordered oldest-due first.
    """
    reminders = session.exec(
        select(Reminder)
        .where(Reminder.status.in_(RETRY_ELIGIBLE_STATUSES))
        .where(Reminder.scheduled_at <= now)
        .where(Reminder.sent_at == None)  # noqa: E711
        .where(Reminder.retry_count < max_retries)
        .order_by(Reminder.scheduled_at)
        .limit(limit)
    ).all()
    return list(reminders)


def claim_reminder(
    session: Session,
    reminder_id: str,
    expected_status: ReminderStatus = ReminderStatus.PENDING,
    now: datetime | None = None,
) -> bool:
    """Atomically move a reminder from expected_status to processing.

    The conditional UPDATE is the lock: of any number of concurrent
    callers, exactly one sees a single affected row. The claim is
    committed before returning so other instances observe it.

    Returns:
        True if this caller now owns the reminder, False otherwise
    """
    now = now or datetime.utcnow()
    statement = (
        update(Reminder)
        .where(Reminder.id == reminder_id)
        .where(Reminder.status == expected_status)
        .values(
            status=ReminderStatus.PROCESSING,
            locked_at=now,
            updated_at=now,
        )
    )
    result = session.connection().execute(statement)
    session.commit()
    return result.rowcount == 1


def update_reminder(session: Session, reminder: Reminder, **fields: Any) -> Reminder:
    """Apply field changes to a reminder and stage it for commit."""
    for name, value in fields.items():
        setattr(reminder, name, value)
    if "updated_at" not in fields:
        reminder.updated_at = datetime.utcnow()
    session.add(reminder)
    return reminder


def release_stale_claims(session: Session, claimed_before: datetime) -> int:
    """Reset processing reminders claimed before the cutoff back to pending.

    Returns:
        Number of reminders released
    """
    statement = (
        update(Reminder)
        .where(Reminder.status == ReminderStatus.PROCESSING)
        .where(Reminder.locked_at < claimed_before)
        .values(
            status=ReminderStatus.PENDING,
            locked_at=None,
            updated_at=datetime.utcnow(),
        )
    )
    result = session.connection().execute(statement)
    session.commit()
    return result.rowcount


def find_repository(session: Session, repo_id: str) -> Repository | None:
    """Look up the delivery target of a reminder."""
    return session.get(Repository, repo_id)


def count_reminders(
    session: Session,
    status: ReminderStatus,
    updated_since: datetime | None = None,
    sent_since: datetime | None = None,
) -> int:
    """Count reminders in a status, optionally bounded by update/send time."""
    query = select(func.count()).select_from(Reminder).where(Reminder.status == status)
    if updated_since is not None:
        query = query.where(Reminder.updated_at >= updated_since)
    if sent_since is not None:
        query = query.where(Reminder.sent_at >= sent_since)
    return session.exec(query).one()


def get_latest_reminders(session: Session, limit: int = 5) -> list[Reminder]:
    """Most recently created reminders, newest first."""
    return list(
        session.exec(
            select(Reminder).order_by(Reminder.created_at.desc()).limit(limit)
        ).all()
    )
