"""Persistence services for the reminder scheduler.

Services:
- reminders.py: due-reminder queries, the atomic claim, reminder creation
- audit.py: append-only audit log
"""

from reporeply.services.audit import append_audit_log, find_audit_entry_since
from reporeply.services.reminders import (
    claim_reminder,
    count_reminders,
    create_reminder,
    find_due_reminders,
    find_repository,
    has_recent_reminder,
    release_stale_claims,
    update_reminder,
)

__all__ = [
    "append_audit_log",
    "find_audit_entry_since",
    "claim_reminder",
    "count_reminders",
    "create_reminder",
    "find_due_reminders",
    "find_repository",
    "has_recent_reminder",
    "release_stale_claims",
    "update_reminder",
]
