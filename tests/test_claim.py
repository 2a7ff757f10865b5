"""Tests for claim exclusivity under concurrent claimers."""

import threading
from datetime import datetime, timedelta

from sqlmodel import Session, SQLModel, create_engine

from reporeply.models.reminder import Reminder, ReminderStatus
from reporeply.models.repository import Repository
from reporeply.services.reminders import claim_reminder


class TestClaimExclusivity:
    """Exactly one of N concurrent claimers wins."""

    def test_single_winner_across_sessions(self, tmp_path):
        engine = create_engine(
            f"sqlite:///{tmp_path / 'claim.db'}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        SQLModel.metadata.create_all(engine)

        with Session(engine) as session:
            session.add(Repository(id="octo/widgets", installation_id="1"))
            reminder = Reminder(
                repo_id="octo/widgets",
                issue_number=1,
                scheduled_at=datetime.utcnow() - timedelta(minutes=1),
            )
            session.add(reminder)
            session.commit()
            reminder_id = reminder.id

        claimers = 8
        barrier = threading.Barrier(claimers)
        results: list[bool] = []
        results_lock = threading.Lock()

        def claim() -> None:
            with Session(engine) as session:
                barrier.wait()
                won = claim_reminder(session, reminder_id)
            with results_lock:
                results.append(won)

        threads = [threading.Thread(target=claim) for _ in range(claimers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == claimers
        assert results.count(True) == 1

        with Session(engine) as session:
            stored = session.get(Reminder, reminder_id)
            assert stored.status == ReminderStatus.PROCESSING
            assert stored.locked_at is not None

        engine.dispose()

    def test_wrong_expected_status_does_not_claim(self, db_session, repository, make_reminder):
        reminder = make_reminder(status=ReminderStatus.FAILED)

        assert claim_reminder(db_session, reminder.id, ReminderStatus.PENDING) is False
        assert claim_reminder(db_session, reminder.id, ReminderStatus.FAILED) is True

    def test_second_claim_fails(self, db_session, repository, make_reminder):
        reminder = make_reminder()

        assert claim_reminder(db_session, reminder.id) is True
        assert claim_reminder(db_session, reminder.id) is False
