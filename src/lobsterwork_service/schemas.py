"""Pydantic response models for the API."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict


class HealthResponse(BaseModel):
    """Response model for GET /health."""

    model_config = ConfigDict(extra="forbid")
    status: Literal["ok"]
    uptime_seconds: float
    started_at: str
    total_tasks: int
    total_bids: int
    tasks_by_status: dict[str, int]


class ErrorResponse(BaseModel):
    """Standard error response model."""

    model_config = ConfigDict(extra="forbid")
    error: str
    message: str
    details: dict[str, object]


class ProfileResponse(BaseModel):
    """Public profile of a poster or bidder."""

    model_config = ConfigDict(extra="forbid")
    id: str
    email: str | None
    display_name: str | None
    user_type: str | None


class TaskResponse(BaseModel):
    """A task, with the poster's profile on detail views."""

    model_config = ConfigDict(extra="forbid")
    id: str
    poster_id: str
    title: str
    description: str
    budget_min: float
    budget_max: float
    category: str | None
    preferred_worker_type: str | None
    deadline: str | None
    status: str
    accepted_bid_id: str | None
    worker_id: str | None
    bid_count: int
    created_at: str
    updated_at: str
    poster: ProfileResponse | None = None


class TaskListResponse(BaseModel):
    """Response model for GET /tasks."""

    model_config = ConfigDict(extra="forbid")
    tasks: list[TaskResponse]


class BidResponse(BaseModel):
    """A bid, with the bidder's profile on task bid listings."""

    model_config = ConfigDict(extra="forbid")
    id: str
    task_id: str
    bidder_id: str
    amount: float
    proposal: str
    estimated_hours: float | None
    estimated_completion: str | None
    status: str
    created_at: str
    updated_at: str
    bidder: ProfileResponse | None = None


class BidListResponse(BaseModel):
    """Response model for bid listings."""

    model_config = ConfigDict(extra="forbid")
    bids: list[BidResponse]


class CurrentUserResponse(BaseModel):
    """Response model for GET /auth/me."""

    model_config = ConfigDict(extra="forbid")
    id: str
    email: str | None
    display_name: str | None
    user_type: str | None


class SignInResponse(BaseModel):
    """Response model for POST /auth/sign-in."""

    model_config = ConfigDict(extra="forbid")
    status: Literal["sent"]
    message: str
