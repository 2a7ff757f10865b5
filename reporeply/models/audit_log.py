"""AuditLog entity model for reminder state transitions."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Column, Field, SQLModel


class AuditAction(str, Enum):
    """Audited actions."""

    REMINDER_SENT = "REMINDER_SENT"
    REMINDER_FAILED = "REMINDER_FAILED"
    REMINDER_DEAD = "REMINDER_DEAD"
    DAILY_METRICS_SENT = "DAILY_METRICS_SENT"


class AuditLog(SQLModel, table=True):
    """Audit log database model for immutable activity records."""

    __tablename__ = "audit_logs"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    repo_id: str | None = Field(default=None, max_length=255, index=True)
    action: str = Field(max_length=50, index=True)
    entity_id: str | None = Field(default=None, max_length=64, index=True)
    details: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSON().with_variant(JSONB(), "postgresql")),
    )
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
