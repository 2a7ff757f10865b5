"""Stale-lock reaper.

A reminder left in PROCESSING by a crashed or killed instance would never be
picked up again. Each scheduler cycle starts by returning such reminders to
PENDING once their claim is older than the processing timeout.
"""

import logging
from datetime import datetime, timedelta

from sqlmodel import Session

from reporeply.services.reminders import release_stale_claims

logger = logging.getLogger(__name__)


def cleanup_stale_locks(
    session: Session,
    timeout_seconds: int = 300,
    now: datetime | None = None,
) -> int:
    """Release claims older than timeout_seconds.

    Returns:
        Number of reminders returned to PENDING
    """
    now = now or datetime.utcnow()
    released = release_stale_claims(session, claimed_before=now - timedelta(seconds=timeout_seconds))

    if released:
        logger.warning(
            f"Released {released} stale reminder lock(s)",
            extra={"released": released, "timeout_seconds": timeout_seconds},
        )
    return released
