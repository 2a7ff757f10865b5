"""Shared pytest fixtures."""

from datetime import datetime, timedelta

import pytest
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from reporeply.config import Settings
from reporeply.models.reminder import Reminder, ReminderStatus
from reporeply.models.repository import Provider, Repository


@pytest.fixture
def db_engine():
    """In-memory SQLite engine shared by every session of a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Import all models to register them
    from reporeply.models import AuditLog, Reminder, Repository  # noqa: F401

    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """Create a test database session."""
    with Session(db_engine) as session:
        yield session


@pytest.fixture
def settings():
    """Settings with test-friendly timings and no Telegram."""
    settings = Settings()
    settings.DATABASE_URL = "sqlite://"
    settings.SCHEDULER_STARTUP_DELAY_SECONDS = 0
    settings.SCHEDULER_POLL_INTERVAL_SECONDS = 0
    settings.SCHEDULER_SHUTDOWN_GRACE_SECONDS = 1
    settings.STATUS_BROADCAST_INTERVAL_SECONDS = 0
    settings.TELEGRAM_BOT_TOKEN = ""
    settings.TELEGRAM_CHAT_ID = ""
    return settings


@pytest.fixture
def repository(db_session: Session):
    """Create an active GitHub repository."""
    repo = Repository(
        id="octo/widgets",
        provider=Provider.GITHUB,
        is_active=True,
        installation_id="4242",
    )
    db_session.add(repo)
    db_session.commit()
    db_session.refresh(repo)
    return repo


@pytest.fixture
def make_reminder(db_session: Session):
    """Factory for persisted reminders, due an hour ago by default."""

    def _make(repo_id: str = "octo/widgets", **fields) -> Reminder:
        values = {
            "repo_id": repo_id,
            "issue_number": 7,
            "message": "Check the flaky test",
            "created_by": "alice",
            "scheduled_at": datetime.utcnow() - timedelta(hours=1),
            "status": ReminderStatus.PENDING,
        }
        values.update(fields)
        reminder = Reminder(**values)
        db_session.add(reminder)
        db_session.commit()
        db_session.refresh(reminder)
        return reminder

    return _make
