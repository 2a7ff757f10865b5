"""FastAPI application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlmodel import SQLModel

from reporeply.api.health import router as health_router
from reporeply.api.metrics import router as metrics_router
from reporeply.config import get_settings
from reporeply.db.session import engine
from reporeply.workers.runner import ReminderScheduler, configure_logging

settings = get_settings()
configure_logging(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create database tables and run the scheduler for the app's lifetime."""
    # Import models to register them with SQLModel
    from reporeply.models import AuditLog, Reminder, Repository  # noqa: F401
    SQLModel.metadata.create_all(engine)

    app.state.scheduler = None
    if settings.SCHEDULER_ENABLED:
        settings.validate()
        app.state.scheduler = ReminderScheduler(settings=settings)
        app.state.scheduler.start()
        logger.info("Reminder scheduler started")
    else:
        logger.info("Reminder scheduler disabled (SCHEDULER_ENABLED=false)")

    yield

    if app.state.scheduler is not None:
        # stop() blocks while draining in-flight reminders.
        await asyncio.to_thread(app.state.scheduler.stop)

app = FastAPI(
    title="RepoReply Reminder API",
    description="Health and metrics for the RepoReply reminder scheduler",
    version="1.0.0",
    lifespan=lifespan,
)

# Register routers
app.include_router(health_router)
app.include_router(metrics_router)
