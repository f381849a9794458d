"""Async HTTP client for the hosted identity provider."""

from __future__ import annotations

from typing import Any

import httpx

from lobsterwork_service.core.exceptions import ServiceError
from lobsterwork_service.logging import get_logger


class IdentityClient:
    """
    Client for the passwordless (magic-link) identity provider.

    The service never stores credentials or issues tokens. It only asks the
    provider who owns an access token, and asks it to email a sign-in link.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        user_path: str,
        otp_path: str,
        timeout_seconds: int,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url
        self._user_path = user_path
        self._otp_path = otp_path
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
            headers={"apikey": api_key},
            transport=transport,
        )

    def _unavailable(self, message: str, exc: Exception | None = None) -> ServiceError:
        get_logger(__name__).warning(
            message,
            extra={"error": str(exc) if exc is not None else None, "base_url": self._base_url},
        )
        return ServiceError(
            error="IDENTITY_SERVICE_UNAVAILABLE",
            message=message,
            status_code=502,
            details={},
        )

    async def get_current_user(self, access_token: str) -> dict[str, Any] | None:
        """
        Resolve the identity behind an access token.

        Returns:
            ``{"id", "email", "metadata"}``, or None when the provider rejects
            the token.

        Raises:
            ServiceError: IDENTITY_SERVICE_UNAVAILABLE (502) on connection,
                timeout or unexpected responses.
        """
        try:
            response = await self._client.get(
                self._user_path,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.TimeoutException as exc:
            raise self._unavailable("Identity provider timed out", exc) from exc
        except httpx.HTTPError as exc:
            raise self._unavailable("Cannot connect to identity provider", exc) from exc

        if response.status_code in (401, 403):
            return None
        if response.status_code != 200:
            raise self._unavailable(
                f"Identity provider returned unexpected status {response.status_code}"
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise self._unavailable("Identity provider returned invalid JSON", exc) from exc

        user_id = body.get("id") if isinstance(body, dict) else None
        if not isinstance(user_id, str) or user_id == "":
            raise self._unavailable("Identity provider response is missing the user id")

        metadata = body.get("user_metadata")
        return {
            "id": user_id,
            "email": body.get("email"),
            "metadata": metadata if isinstance(metadata, dict) else {},
        }

    async def request_sign_in(
        self,
        email: str,
        redirect_url: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """
        Ask the provider to email a magic sign-in link.

        ``metadata`` (display name, user type) is stored on the identity by
        the provider when the link creates a new account.

        Raises:
            ServiceError: SIGN_IN_RATE_LIMITED (429), SIGN_IN_FAILED (400) when
                the provider refuses, IDENTITY_SERVICE_UNAVAILABLE (502) otherwise.
        """
        try:
            response = await self._client.post(
                self._otp_path,
                params={"redirect_to": redirect_url},
                json={"email": email, "create_user": True, "data": metadata or {}},
            )
        except httpx.TimeoutException as exc:
            raise self._unavailable("Identity provider timed out", exc) from exc
        except httpx.HTTPError as exc:
            raise self._unavailable("Cannot connect to identity provider", exc) from exc

        if response.status_code == 200:
            return
        if response.status_code == 429:
            raise ServiceError(
                error="SIGN_IN_RATE_LIMITED",
                message="Too many sign-in requests, try again later",
                status_code=429,
                details={},
            )
        if 400 <= response.status_code < 500:
            raise ServiceError(
                error="SIGN_IN_FAILED",
                message=_provider_message(response) or "Failed to send magic link",
                status_code=400,
                details={},
            )
        raise self._unavailable(
            f"Identity provider returned unexpected status {response.status_code}"
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()


def _provider_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    for key in ("msg", "error_description", "message"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    return None
