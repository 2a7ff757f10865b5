"""SQLModel entities for the reminder scheduler."""

from reporeply.models.audit_log import AuditAction, AuditLog
from reporeply.models.reminder import (
    Reminder,
    ReminderCreate,
    ReminderMetricsResponse,
    ReminderStatus,
)
from reporeply.models.repository import Provider, Repository

__all__ = [
    "AuditAction",
    "AuditLog",
    "Provider",
    "Reminder",
    "ReminderCreate",
    "ReminderMetricsResponse",
    "ReminderStatus",
    "Repository",
]
