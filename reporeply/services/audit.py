"""Append-only audit log operations."""

from datetime import datetime
from typing import Any

from sqlmodel import Session, select

from reporeply.models.audit_log import AuditAction, AuditLog


def append_audit_log(
    session: Session,
    action: AuditAction,
    repo_id: str | None = None,
    entity_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> AuditLog:
    """Stage an audit entry; the caller owns the transaction."""
    entry = AuditLog(
        repo_id=repo_id,
        action=action.value,
        entity_id=entity_id,
        details=details,
    )
    session.add(entry)
    return entry


def find_audit_entry_since(
    session: Session,
    action: AuditAction,
    since: datetime,
) -> AuditLog | None:
    """Return the first audit entry for an action created at or after since."""
    return session.exec(
        select(AuditLog)
        .where(AuditLog.action == action.value)
        .where(AuditLog.created_at >= since)
        .limit(1)
    ).first()
