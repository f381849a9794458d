"""Bid submission, listing, and acceptance endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from lobsterwork_service.routers.validation import get_lifecycle, parse_json_body, require_caller
from lobsterwork_service.schemas import BidListResponse, TaskResponse

router = APIRouter()


# ---------------------------------------------------------------------------
# POST /tasks/{task_id}/bids: submit bid
# ---------------------------------------------------------------------------


@router.post("/tasks/{task_id}/bids", status_code=201)
async def submit_bid(task_id: str, request: Request) -> JSONResponse:
    """Submit a bid on an OPEN task posted by someone else."""
    caller = await require_caller(request)
    data = parse_json_body(await request.body())

    bid = await run_in_threadpool(get_lifecycle().submit_bid, task_id, caller["id"], data)
    return JSONResponse(status_code=201, content=bid)


# ---------------------------------------------------------------------------
# GET /tasks/{task_id}/bids: list bids with bidder profiles
# ---------------------------------------------------------------------------


@router.get("/tasks/{task_id}/bids", response_model=BidListResponse)
async def list_bids(task_id: str) -> dict[str, Any]:
    """List bids for a task, oldest first."""
    bids = await run_in_threadpool(get_lifecycle().list_bid_details, task_id)
    return {"bids": bids}


# ---------------------------------------------------------------------------
# POST /tasks/{task_id}/bids/{bid_id}/accept: accept bid
# ---------------------------------------------------------------------------


@router.post("/tasks/{task_id}/bids/{bid_id}/accept", response_model=TaskResponse)
async def accept_bid(task_id: str, bid_id: str, request: Request) -> dict[str, Any]:
    """Accept a bid; all other pending bids are rejected and the task starts."""
    caller = await require_caller(request)
    return await run_in_threadpool(get_lifecycle().accept_bid, task_id, caller["id"], bid_id)


# ---------------------------------------------------------------------------
# GET /bids/mine: the caller's own bids (dashboard)
# ---------------------------------------------------------------------------


@router.get("/bids/mine", response_model=BidListResponse)
async def list_my_bids(request: Request) -> dict[str, Any]:
    """List bids placed by the authenticated caller, newest first."""
    caller = await require_caller(request)
    bids = await run_in_threadpool(get_lifecycle().list_bids_for_bidder, caller["id"])
    return {"bids": bids}
