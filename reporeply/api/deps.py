"""API dependencies for dependency injection."""

from collections.abc import Generator
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlmodel import Session

from reporeply.db.session import get_session
from reporeply.workers.runner import ReminderScheduler


def get_db_session() -> Generator[Session, None, None]:
    """Get database session dependency."""
    yield from get_session()


DBSession = Annotated[Session, Depends(get_db_session)]


def get_scheduler(request: Request) -> ReminderScheduler:
    """Get the scheduler started by the application lifespan."""
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scheduler is disabled",
        )
    return scheduler


Scheduler = Annotated[ReminderScheduler, Depends(get_scheduler)]
