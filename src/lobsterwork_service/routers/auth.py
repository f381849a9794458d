"""Magic-link sign-in and current-user endpoints."""

from __future__ import annotations

import re
from typing import Any

from fastapi import APIRouter, Request

from lobsterwork_service.core.exceptions import ValidationError
from lobsterwork_service.core.state import get_app_state
from lobsterwork_service.routers.validation import parse_json_body, require_caller
from lobsterwork_service.schemas import CurrentUserResponse, SignInResponse
from lobsterwork_service.services.rules import WORKER_TYPES, is_encodable

router = APIRouter()

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _sign_in_metadata(data: dict[str, Any]) -> dict[str, Any]:
    """Sign-up extras stored on the identity: display_name and user_type."""
    metadata: dict[str, Any] = {}

    display_name = data.get("display_name")
    if display_name is not None:
        if not isinstance(display_name, str) or not is_encodable(display_name):
            raise ValidationError("INVALID_FIELD", "display_name must be valid UTF-8 text")
        if display_name.strip():
            metadata["display_name"] = display_name.strip()

    user_type = data.get("user_type")
    if user_type is not None:
        if user_type not in WORKER_TYPES:
            raise ValidationError(
                "INVALID_FIELD", f"user_type must be one of {sorted(WORKER_TYPES)}"
            )
        metadata["user_type"] = user_type

    return metadata


@router.post("/auth/sign-in", response_model=SignInResponse)
async def sign_in(request: Request) -> dict[str, Any]:
    """Email a magic sign-in link; also used for sign-up with profile metadata."""
    data = parse_json_body(await request.body())

    email = data.get("email")
    if (
        not isinstance(email, str)
        or not is_encodable(email)
        or not _EMAIL_RE.match(email.strip())
    ):
        raise ValidationError("INVALID_EMAIL", "A valid email address is required")

    redirect_url = data.get("redirect_url")
    if not isinstance(redirect_url, str) or not redirect_url.startswith(("http://", "https://")):
        raise ValidationError("INVALID_REDIRECT_URL", "redirect_url must be an http(s) URL")

    metadata = _sign_in_metadata(data)

    state = get_app_state()
    if state.identity_client is None:
        msg = "IdentityClient not initialized"
        raise RuntimeError(msg)

    await state.identity_client.request_sign_in(email.strip(), redirect_url, metadata or None)
    return {"status": "sent", "message": "Check your email for the magic link!"}


@router.get("/auth/me", response_model=CurrentUserResponse)
async def current_user(request: Request) -> dict[str, Any]:
    """The authenticated caller as reported by the identity provider."""
    caller = await require_caller(request)
    metadata = caller.get("metadata") or {}
    user_type = metadata.get("user_type")
    return {
        "id": caller["id"],
        "email": caller.get("email"),
        "display_name": metadata.get("display_name"),
        "user_type": user_type if user_type in WORKER_TYPES else None,
    }
