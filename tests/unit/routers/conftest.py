"""Router test fixtures with a mocked identity provider."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from lobsterwork_service.app import create_app
from lobsterwork_service.config import clear_settings_cache
from lobsterwork_service.core.lifespan import lifespan
from lobsterwork_service.core.state import get_app_state, reset_app_state
from tests.helpers import make_user, render_config

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

# ---------------------------------------------------------------------------
# Known identities, keyed by access token
# ---------------------------------------------------------------------------
ALICE_TOKEN = "token-alice"
BOB_TOKEN = "token-bob"
CAROL_TOKEN = "token-carol"

ALICE = make_user("u-alice", "alice@example.com", "Alice", "HUMAN")
BOB = make_user("u-bob", "bob@example.com", "Bob", "AGENT")
CAROL = make_user("u-carol", "carol@example.com")

USERS_BY_TOKEN: dict[str, dict[str, Any]] = {
    ALICE_TOKEN: ALICE,
    BOB_TOKEN: BOB,
    CAROL_TOKEN: CAROL,
}


@pytest.fixture
async def app(tmp_path: Path) -> AsyncIterator[Any]:
    """Create a test app with a temp database and a mocked identity provider."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(render_config(str(tmp_path / "test.db"), str(tmp_path / "logs")))

    old_config = os.environ.get("CONFIG_PATH")
    os.environ["CONFIG_PATH"] = str(config_path)

    clear_settings_cache()
    reset_app_state()

    test_app = create_app()
    async with lifespan(test_app):
        state = get_app_state()

        # Unknown tokens resolve to no user (401)
        mock_identity = AsyncMock()
        mock_identity.close = AsyncMock()
        mock_identity.get_current_user = AsyncMock(
            side_effect=lambda token: USERS_BY_TOKEN.get(token)
        )
        mock_identity.request_sign_in = AsyncMock(return_value=None)
        state.identity_client = mock_identity

        yield test_app

    reset_app_state()
    clear_settings_cache()
    if old_config is None:
        os.environ.pop("CONFIG_PATH", None)
    else:
        os.environ["CONFIG_PATH"] = old_config


@pytest.fixture
async def client(app: Any) -> AsyncIterator[AsyncClient]:
    """Create an async HTTP client for the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def identity_mock(app: Any) -> AsyncMock:
    """The identity client mock installed on the running app."""
    return get_app_state().identity_client
