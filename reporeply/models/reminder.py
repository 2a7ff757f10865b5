"""Reminder entity model."""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from sqlmodel import Field, SQLModel


class ReminderStatus(str, Enum):
    """Reminder lifecycle states.

    pending -> processing -> sent | failed | dead
    failed reminders stay retry-eligible until they are sent or dead.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"
    DEAD = "dead"


# States picked up by the due-reminder query
RETRY_ELIGIBLE_STATUSES = (ReminderStatus.PENDING, ReminderStatus.FAILED)


def _new_reminder_id() -> str:
    return str(uuid4())


class Reminder(SQLModel, table=True):
    """Reminder database model."""

    __tablename__ = "reminders"

    id: str = Field(default_factory=_new_reminder_id, primary_key=True, max_length=64)
    repo_id: str = Field(foreign_key="repositories.id", index=True, max_length=255)
    issue_number: int
    message: str | None = Field(default=None)
    created_by: str | None = Field(default=None, max_length=255)

    status: ReminderStatus = Field(default=ReminderStatus.PENDING, index=True)
    scheduled_at: datetime = Field(index=True)
    retry_count: int = Field(default=0)
    error: str | None = Field(default=None, max_length=500)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    sent_at: datetime | None = Field(default=None)
    last_retry_at: datetime | None = Field(default=None)
    locked_at: datetime | None = Field(default=None)


class ReminderCreate(SQLModel):
    """Schema for reminder creation."""

    repo_id: str = Field(max_length=255)
    issue_number: int = Field(ge=1)
    scheduled_at: datetime
    message: str | None = None
    created_by: str | None = None


class ReminderMetricsResponse(SQLModel):
    """Schema for today's reminder counts."""

    date: str
    sent: int
    failed: int
    dead: int
    pending: int
