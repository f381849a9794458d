"""Task endpoints: post, browse, detail, cancel, complete."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from lobsterwork_service.routers.validation import (
    get_lifecycle,
    parse_json_body,
    parse_optional_choice,
    parse_optional_int,
    require_caller,
)
from lobsterwork_service.schemas import TaskListResponse, TaskResponse
from lobsterwork_service.services.rules import TASK_CATEGORIES, TASK_STATUSES, WORKER_TYPES

router = APIRouter()


# ---------------------------------------------------------------------------
# POST /tasks: post a task (MUST be before GET /tasks/{task_id})
# ---------------------------------------------------------------------------


@router.post("/tasks", status_code=201)
async def create_task(request: Request) -> JSONResponse:
    """Post a new OPEN task as the authenticated caller."""
    caller = await require_caller(request)
    data = parse_json_body(await request.body())

    task = await run_in_threadpool(get_lifecycle().create_task, caller["id"], data)
    return JSONResponse(status_code=201, content=task)


# ---------------------------------------------------------------------------
# GET /tasks: browse tasks (MUST be before GET /tasks/{task_id})
# ---------------------------------------------------------------------------


@router.get("/tasks", response_model=TaskListResponse)
async def list_tasks(request: Request) -> dict[str, Any]:
    """List tasks with optional filters, newest first."""
    status = parse_optional_choice(request, "status", TASK_STATUSES)
    category = parse_optional_choice(request, "category", TASK_CATEGORIES)
    worker_type = parse_optional_choice(request, "preferred_worker_type", WORKER_TYPES)
    poster_id = request.query_params.get("poster_id") or None
    limit = parse_optional_int(request, "limit", minimum=1)
    offset = parse_optional_int(request, "offset", minimum=0)

    lifecycle = get_lifecycle()
    tasks = await run_in_threadpool(
        lambda: lifecycle.list_tasks(
            status=status,
            category=category,
            preferred_worker_type=worker_type,
            poster_id=poster_id,
            limit=limit,
            offset=offset,
        )
    )
    return {"tasks": tasks}


# ---------------------------------------------------------------------------
# Poster actions
# ---------------------------------------------------------------------------


@router.post("/tasks/{task_id}/cancel", response_model=TaskResponse)
async def cancel_task(task_id: str, request: Request) -> dict[str, Any]:
    """Cancel an OPEN task; pending bids are rejected."""
    caller = await require_caller(request)
    return await run_in_threadpool(get_lifecycle().cancel_task, task_id, caller["id"])


@router.post("/tasks/{task_id}/complete", response_model=TaskResponse)
async def complete_task(task_id: str, request: Request) -> dict[str, Any]:
    """Mark an IN_PROGRESS task as completed."""
    caller = await require_caller(request)
    return await run_in_threadpool(get_lifecycle().complete_task, task_id, caller["id"])


# ---------------------------------------------------------------------------
# GET /tasks/{task_id}: MUST be LAST (parameterized catch-all)
# ---------------------------------------------------------------------------


@router.get("/tasks/{task_id}", response_model=TaskResponse)
async def get_task(task_id: str) -> dict[str, Any]:
    """Full task detail with the poster's profile."""
    return await run_in_threadpool(get_lifecycle().get_task_detail, task_id)
