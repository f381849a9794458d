"""Shared test helpers: config rendering, identity users, and API shortcuts."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from httpx import AsyncClient, Response


def render_config(
    db_path: str,
    log_directory: str,
    *,
    max_body_size: int = 1048576,
    max_title_length: int = 200,
) -> str:
    """Render a complete service config.yaml for tests."""
    return f"""\
service:
  name: "lobsterwork"
  version: "0.1.0"
server:
  host: "0.0.0.0"
  port: 8010
  log_level: "info"
logging:
  level: "WARNING"
  directory: "{log_directory}"
database:
  path: "{db_path}"
identity:
  base_url: "http://identity.test"
  api_key: "anon-test-key"
  user_path: "/auth/v1/user"
  otp_path: "/auth/v1/otp"
  timeout_seconds: 5
request:
  max_body_size: {max_body_size}
limits:
  max_title_length: {max_title_length}
  max_description_length: 10000
  max_proposal_length: 5000
"""


def make_user(
    user_id: str,
    email: str,
    display_name: str | None = None,
    user_type: str | None = None,
) -> dict[str, Any]:
    """An identity as returned by IdentityClient.get_current_user."""
    metadata: dict[str, Any] = {}
    if display_name is not None:
        metadata["display_name"] = display_name
    if user_type is not None:
        metadata["user_type"] = user_type
    return {"id": user_id, "email": email, "metadata": metadata}


def task_fields(**overrides: Any) -> dict[str, Any]:
    """A valid task payload."""
    fields: dict[str, Any] = {
        "title": "Scrape site",
        "description": "Collect product prices from an e-commerce site",
        "budget_min": 50,
        "budget_max": 200,
    }
    fields.update(overrides)
    return fields


def bid_fields(**overrides: Any) -> dict[str, Any]:
    """A valid bid payload."""
    fields: dict[str, Any] = {"amount": 100, "proposal": "I can do this"}
    fields.update(overrides)
    return fields


def bearer(token: str) -> dict[str, str]:
    """Authorization header for an access token."""
    return {"Authorization": f"Bearer {token}"}


async def create_task(client: AsyncClient, token: str, **overrides: Any) -> Response:
    """POST /tasks as the owner of ``token``."""
    return await client.post("/tasks", json=task_fields(**overrides), headers=bearer(token))


async def submit_bid(client: AsyncClient, token: str, task_id: str, **overrides: Any) -> Response:
    """POST /tasks/{task_id}/bids as the owner of ``token``."""
    return await client.post(
        f"/tasks/{task_id}/bids", json=bid_fields(**overrides), headers=bearer(token)
    )


async def accept_bid(client: AsyncClient, token: str, task_id: str, bid_id: str) -> Response:
    """POST /tasks/{task_id}/bids/{bid_id}/accept as the owner of ``token``."""
    return await client.post(f"/tasks/{task_id}/bids/{bid_id}/accept", headers=bearer(token))
