"""Health endpoints."""

from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from reporeply.api.deps import Scheduler
from reporeply.workers.state import HealthStatus

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict[str, str]:
    """Liveness check."""
    return {"status": "healthy"}


@router.get("/health/scheduler")
def scheduler_health(scheduler: Scheduler) -> Any:
    """Scheduler health snapshot; 503 while unhealthy."""
    snapshot = scheduler.health_status()
    if snapshot["status"] == HealthStatus.UNHEALTHY.value:
        return JSONResponse(status_code=503, content=snapshot)
    return snapshot
