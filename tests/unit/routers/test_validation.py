"""Request parsing helpers and request validation middleware."""

from __future__ import annotations

import json

import pytest

from lobsterwork_service.core.exceptions import ServiceError
from lobsterwork_service.routers.validation import extract_bearer_token, parse_json_body
from tests.helpers import bearer, create_task, task_fields
from tests.unit.routers.conftest import ALICE_TOKEN


class TestParseJsonBody:
    @pytest.mark.unit
    def test_valid_object(self) -> None:
        assert parse_json_body(b'{"title":"abc"}') == {"title": "abc"}

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", [b"{", b'["not", "object"]', b"", b"\xff\xfe"])
    def test_invalid(self, raw) -> None:
        with pytest.raises(ServiceError) as exc_info:
            parse_json_body(raw)
        assert exc_info.value.error == "INVALID_JSON"
        assert exc_info.value.status_code == 400


class TestExtractBearerToken:
    @pytest.mark.unit
    def test_valid(self) -> None:
        assert extract_bearer_token("Bearer abc.def") == "abc.def"

    @pytest.mark.unit
    @pytest.mark.parametrize("header", [None, "", "Token abc", "Bearer", "Bearer    "])
    def test_invalid(self, header) -> None:
        with pytest.raises(ServiceError) as exc_info:
            extract_bearer_token(header)
        assert exc_info.value.error == "UNAUTHORIZED"
        assert exc_info.value.status_code == 401


class TestMiddleware:
    @pytest.mark.unit
    async def test_wrong_content_type(self, client):
        response = await client.post(
            "/tasks",
            content=json.dumps(task_fields()),
            headers={**bearer(ALICE_TOKEN), "Content-Type": "text/plain"},
        )
        assert response.status_code == 415
        assert response.json()["error"] == "UNSUPPORTED_MEDIA_TYPE"

    @pytest.mark.unit
    async def test_content_type_with_charset(self, client):
        response = await client.post(
            "/tasks",
            content=json.dumps(task_fields()),
            headers={**bearer(ALICE_TOKEN), "Content-Type": "application/json; charset=utf-8"},
        )
        assert response.status_code == 201

    @pytest.mark.unit
    async def test_body_too_large(self, client):
        response = await create_task(client, ALICE_TOKEN, description="x" * (1024 * 1024 + 1))
        assert response.status_code == 413
        assert response.json()["error"] == "PAYLOAD_TOO_LARGE"

    @pytest.mark.unit
    async def test_action_with_form_body_rejected(self, client):
        task = (await create_task(client, ALICE_TOKEN)).json()
        response = await client.post(
            f"/tasks/{task['id']}/cancel",
            content=b"reason=none",
            headers={**bearer(ALICE_TOKEN), "Content-Type": "application/x-www-form-urlencoded"},
        )
        assert response.status_code == 415

    @pytest.mark.unit
    async def test_sign_in_wrong_content_type(self, client):
        response = await client.post(
            "/auth/sign-in", content=b"email=a@b.co", headers={"Content-Type": "text/plain"}
        )
        assert response.status_code == 415


class TestRouting:
    @pytest.mark.unit
    async def test_unknown_path(self, client):
        response = await client.get("/nowhere")
        assert response.status_code == 404
        assert response.json() == {
            "error": "NOT_FOUND",
            "message": "Resource not found",
            "details": {},
        }

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("method", "path"),
        [
            ("DELETE", "/tasks"),
            ("PUT", "/tasks/t-1"),
            ("GET", "/tasks/t-1/cancel"),
            ("GET", "/tasks/t-1/complete"),
            ("GET", "/tasks/t-1/bids/bid-1/accept"),
            ("POST", "/bids/mine"),
        ],
    )
    async def test_method_not_allowed(self, client, method, path):
        response = await client.request(method, path)
        assert response.status_code == 405
        assert response.json()["error"] == "METHOD_NOT_ALLOWED"
