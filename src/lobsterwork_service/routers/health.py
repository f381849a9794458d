"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter
from starlette.concurrency import run_in_threadpool

from lobsterwork_service.core.state import get_app_state
from lobsterwork_service.schemas import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check service health and return marketplace statistics."""
    state = get_app_state()
    total_tasks = 0
    total_bids = 0
    tasks_by_status: dict[str, int] = {}
    if state.lifecycle is not None:
        stats = await run_in_threadpool(state.lifecycle.get_stats)
        total_tasks = stats["total_tasks"]
        total_bids = stats["total_bids"]
        tasks_by_status = stats["tasks_by_status"]
    return HealthResponse(
        status="ok",
        uptime_seconds=state.uptime_seconds,
        started_at=state.started_at,
        total_tasks=total_tasks,
        total_bids=total_bids,
        tasks_by_status=tasks_by_status,
    )
