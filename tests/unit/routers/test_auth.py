"""Sign-in, current-user, and bearer authentication tests."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from lobsterwork_service.core.exceptions import ServiceError
from tests.helpers import bearer, task_fields
from tests.unit.routers.conftest import ALICE_TOKEN, CAROL_TOKEN


class TestSignIn:
    @pytest.mark.unit
    async def test_sign_in_sends_magic_link(self, client, identity_mock):
        response = await client.post(
            "/auth/sign-in",
            json={
                "email": "dana@example.com",
                "redirect_url": "https://lobsterwork.test/marketplace",
                "display_name": "  Dana ",
                "user_type": "AGENT",
            },
        )

        assert response.status_code == 200
        assert response.json() == {
            "status": "sent",
            "message": "Check your email for the magic link!",
        }
        identity_mock.request_sign_in.assert_awaited_once_with(
            "dana@example.com",
            "https://lobsterwork.test/marketplace",
            {"display_name": "Dana", "user_type": "AGENT"},
        )

    @pytest.mark.unit
    async def test_sign_in_without_metadata(self, client, identity_mock):
        response = await client.post(
            "/auth/sign-in",
            json={"email": "dana@example.com", "redirect_url": "http://localhost:3000/"},
        )
        assert response.status_code == 200
        identity_mock.request_sign_in.assert_awaited_once_with(
            "dana@example.com", "http://localhost:3000/", None
        )

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("body", "error"),
        [
            ({"redirect_url": "https://x.test/"}, "INVALID_EMAIL"),
            ({"email": "not-an-email", "redirect_url": "https://x.test/"}, "INVALID_EMAIL"),
            ({"email": "a@b.co"}, "INVALID_REDIRECT_URL"),
            ({"email": "a@b.co", "redirect_url": "javascript:alert(1)"}, "INVALID_REDIRECT_URL"),
            (
                {"email": "a@b.co", "redirect_url": "https://x.test/", "user_type": "ROBOT"},
                "INVALID_FIELD",
            ),
            (
                {"email": "a@b.co", "redirect_url": "https://x.test/", "display_name": 7},
                "INVALID_FIELD",
            ),
        ],
    )
    async def test_sign_in_validation(self, client, identity_mock, body, error):
        response = await client.post("/auth/sign-in", json=body)
        assert response.status_code == 400
        assert response.json()["error"] == error
        identity_mock.request_sign_in.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("field", "error"),
        [("display_name", "INVALID_FIELD"), ("email", "INVALID_EMAIL")],
    )
    async def test_sign_in_rejects_lone_surrogate(self, client, identity_mock, field, error):
        body = {"email": "dana@example.com", "redirect_url": "https://x.test/"}
        body[field] = "dana\ud800@example.com"

        response = await client.post(
            "/auth/sign-in",
            content=json.dumps(body).encode(),
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == error
        identity_mock.request_sign_in.assert_not_awaited()

    @pytest.mark.unit
    async def test_sign_in_rate_limited(self, client, identity_mock):
        identity_mock.request_sign_in = AsyncMock(
            side_effect=ServiceError("SIGN_IN_RATE_LIMITED", "Too many requests", 429, {})
        )
        response = await client.post(
            "/auth/sign-in",
            json={"email": "dana@example.com", "redirect_url": "https://x.test/"},
        )
        assert response.status_code == 429
        assert response.json()["error"] == "SIGN_IN_RATE_LIMITED"


class TestCurrentUser:
    @pytest.mark.unit
    async def test_me(self, client):
        response = await client.get("/auth/me", headers=bearer(ALICE_TOKEN))
        assert response.status_code == 200
        assert response.json() == {
            "id": "u-alice",
            "email": "alice@example.com",
            "display_name": "Alice",
            "user_type": "HUMAN",
        }

    @pytest.mark.unit
    async def test_me_without_metadata(self, client):
        response = await client.get("/auth/me", headers=bearer(CAROL_TOKEN))
        assert response.json()["display_name"] is None
        assert response.json()["user_type"] is None


class TestBearerAuth:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "headers",
        [
            {},
            {"Authorization": "Basic dXNlcjpwYXNz"},
            {"Authorization": "Bearer token-nobody"},
        ],
    )
    async def test_unauthorized(self, client, headers):
        response = await client.post("/tasks", json=task_fields(), headers=headers)
        assert response.status_code == 401
        assert response.json()["error"] == "UNAUTHORIZED"

        me = await client.get("/auth/me", headers=headers)
        assert me.status_code == 401

    @pytest.mark.unit
    async def test_identity_provider_down(self, client, identity_mock):
        identity_mock.get_current_user = AsyncMock(
            side_effect=ServiceError(
                "IDENTITY_SERVICE_UNAVAILABLE", "Cannot connect to identity provider", 502, {}
            )
        )
        response = await client.post("/tasks", json=task_fields(), headers=bearer(ALICE_TOKEN))
        assert response.status_code == 502
        assert response.json()["error"] == "IDENTITY_SERVICE_UNAVAILABLE"

        listing = await client.get("/tasks")
        assert listing.status_code == 200
        assert listing.json()["tasks"] == []
