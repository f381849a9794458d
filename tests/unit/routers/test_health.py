"""Health endpoint tests."""

from __future__ import annotations

import pytest

from tests.helpers import create_task, submit_bid
from tests.unit.routers.conftest import ALICE_TOKEN, BOB_TOKEN


@pytest.mark.unit
async def test_health_empty(client):
    response = await client.get("/health")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "ok"
    assert data["uptime_seconds"] >= 0
    assert data["started_at"].endswith("Z")
    assert data["total_tasks"] == 0
    assert data["total_bids"] == 0
    assert data["tasks_by_status"] == {
        "OPEN": 0,
        "IN_PROGRESS": 0,
        "COMPLETED": 0,
        "CANCELLED": 0,
    }


@pytest.mark.unit
async def test_health_counts(client):
    task = (await create_task(client, ALICE_TOKEN)).json()
    await submit_bid(client, BOB_TOKEN, task["id"])

    data = (await client.get("/health")).json()
    assert data["total_tasks"] == 1
    assert data["total_bids"] == 1
    assert data["tasks_by_status"]["OPEN"] == 1


@pytest.mark.unit
async def test_health_post_not_allowed(client):
    response = await client.post("/health")
    assert response.status_code == 405
    assert response.json()["error"] == "METHOD_NOT_ALLOWED"
