"""Reminder metrics endpoints."""

from datetime import datetime

from fastapi import APIRouter

from reporeply.api.deps import DBSession
from reporeply.models.reminder import ReminderMetricsResponse
from reporeply.workers.metrics import collect_daily_metrics, start_of_day

router = APIRouter(prefix="/api/metrics", tags=["Metrics"])


@router.get("/reminders", response_model=ReminderMetricsResponse)
def reminder_metrics(session: DBSession) -> ReminderMetricsResponse:
    """Counts for the current UTC day (pending is all-time)."""
    now = datetime.utcnow()
    metrics = collect_daily_metrics(session, now)
    return ReminderMetricsResponse(
        date=start_of_day(now).date().isoformat(),
        **metrics.to_dict(),
    )
