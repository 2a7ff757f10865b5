"""Tests for the health and metrics endpoints."""

import threading
from unittest.mock import Mock, patch

import pytest
from fastapi.testclient import TestClient

from reporeply.api.deps import get_db_session
from reporeply.main import app
from reporeply.models.reminder import ReminderStatus


@pytest.fixture
def client(db_session):
    def _override_session():
        yield db_session

    app.dependency_overrides[get_db_session] = _override_session
    app.state.scheduler = None
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.state.scheduler = None


class TestHealthEndpoints:
    """Tests for /health and /health/scheduler."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_scheduler_disabled(self, client):
        response = client.get("/health/scheduler")

        assert response.status_code == 503

    def test_scheduler_snapshot(self, client):
        scheduler = Mock()
        scheduler.health_status.return_value = {"status": "healthy", "processed_total": 4}
        app.state.scheduler = scheduler

        response = client.get("/health/scheduler")

        assert response.status_code == 200
        assert response.json()["processed_total"] == 4

    def test_unhealthy_scheduler_is_503(self, client):
        scheduler = Mock()
        scheduler.health_status.return_value = {"status": "unhealthy"}
        app.state.scheduler = scheduler

        response = client.get("/health/scheduler")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"


class TestMetricsEndpoint:
    """Tests for /api/metrics/reminders."""

    def test_counts(self, client, repository, make_reminder):
        make_reminder()
        make_reminder(status=ReminderStatus.DEAD)

        response = client.get("/api/metrics/reminders")

        assert response.status_code == 200
        body = response.json()
        assert body["pending"] == 1
        assert body["dead"] == 1
        assert body["sent"] == 0
        assert "date" in body


class TestLifespan:
    """The app starts the scheduler and stops it without blocking the event loop."""

    def test_scheduler_stopped_in_worker_thread(self, db_engine, settings):
        settings.SCHEDULER_ENABLED = True
        threads = {}
        scheduler = Mock()
        scheduler.start.side_effect = lambda: threads.update(start=threading.current_thread())
        scheduler.stop.side_effect = lambda: threads.update(stop=threading.current_thread())

        with (
            patch("reporeply.main.settings", settings),
            patch("reporeply.main.engine", db_engine),
            patch("reporeply.main.ReminderScheduler", return_value=scheduler),
        ):
            with TestClient(app):
                scheduler.start.assert_called_once()

        scheduler.stop.assert_called_once()
        assert threads["stop"] is not threads["start"]
        app.state.scheduler = None
