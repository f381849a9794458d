"""Shared request parsing and caller resolution for routers."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from starlette.concurrency import run_in_threadpool

from lobsterwork_service.core.exceptions import ServiceError, ValidationError
from lobsterwork_service.core.state import get_app_state

if TYPE_CHECKING:
    from fastapi import Request

    from lobsterwork_service.services.lifecycle import LifecycleService

# Largest value SQLite can bind as an INTEGER
_MAX_QUERY_INT = 2**63 - 1


def parse_json_body(raw_body: bytes) -> dict[str, Any]:
    """Parse JSON body, raising ServiceError on failure."""
    try:
        data = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ServiceError(
            "INVALID_JSON",
            "Request body is not valid JSON",
            400,
            {},
        ) from exc

    if not isinstance(data, dict):
        raise ServiceError(
            "INVALID_JSON",
            "Request body must be a JSON object",
            400,
            {},
        )

    return data


def extract_bearer_token(authorization: str | None) -> str:
    """Extract the access token from an Authorization header."""
    if authorization is None:
        raise ServiceError("UNAUTHORIZED", "Missing Authorization header", 401, {})

    if not authorization.startswith("Bearer "):
        raise ServiceError(
            "UNAUTHORIZED",
            "Authorization header must use Bearer scheme",
            401,
            {},
        )

    token = authorization[len("Bearer ") :].strip()
    if not token:
        raise ServiceError("UNAUTHORIZED", "Bearer token must not be empty", 401, {})

    return token


def get_lifecycle() -> LifecycleService:
    """The lifecycle service from application state."""
    state = get_app_state()
    if state.lifecycle is None:
        msg = "LifecycleService not initialized"
        raise RuntimeError(msg)
    return state.lifecycle


async def require_caller(request: Request) -> dict[str, Any]:
    """
    Resolve the authenticated caller via the identity provider.

    Returns ``{"id", "email", "metadata"}`` and refreshes the caller's
    cached profile.

    Raises:
        ServiceError: UNAUTHORIZED (401) for a missing or rejected token,
            IDENTITY_SERVICE_UNAVAILABLE (502) when the provider is down.
    """
    token = extract_bearer_token(request.headers.get("authorization"))

    state = get_app_state()
    if state.identity_client is None:
        msg = "IdentityClient not initialized"
        raise RuntimeError(msg)

    user = await state.identity_client.get_current_user(token)
    if user is None:
        raise ServiceError("UNAUTHORIZED", "Access token is invalid or expired", 401, {})

    await run_in_threadpool(get_lifecycle().record_identity, user)
    return user


def parse_optional_int(request: Request, name: str, *, minimum: int) -> int | None:
    """Integer query parameter within SQLite INTEGER range, or None when absent."""
    raw = request.query_params.get(name)
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValidationError("INVALID_QUERY", f"{name} must be an integer") from exc
    if value < minimum:
        raise ValidationError("INVALID_QUERY", f"{name} must be >= {minimum}")
    if value > _MAX_QUERY_INT:
        raise ValidationError("INVALID_QUERY", f"{name} must be <= {_MAX_QUERY_INT}")
    return value


def parse_optional_choice(
    request: Request,
    name: str,
    choices: frozenset[str] | tuple[str, ...],
) -> str | None:
    """Enumerated query parameter, or None when absent or empty."""
    raw = request.query_params.get(name)
    if raw is None or raw == "":
        return None
    if raw not in choices:
        raise ValidationError("INVALID_QUERY", f"{name} must be one of {sorted(choices)}")
    return raw
