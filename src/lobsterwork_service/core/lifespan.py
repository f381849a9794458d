"""Application lifecycle management."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from lobsterwork_service.clients.identity_client import IdentityClient
from lobsterwork_service.config import get_settings
from lobsterwork_service.core.state import init_app_state
from lobsterwork_service.logging import get_logger, setup_logging
from lobsterwork_service.services.bid_store import BidStore
from lobsterwork_service.services.database import Database
from lobsterwork_service.services.lifecycle import LifecycleService
from lobsterwork_service.services.profile_store import ProfileStore
from lobsterwork_service.services.task_store import TaskStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle."""
    # === STARTUP ===
    settings = get_settings()

    setup_logging(settings.logging.level, settings.service.name, settings.logging.directory)
    logger = get_logger(__name__)

    state = init_app_state()

    database = Database(db_path=settings.database.path)
    state.database = database

    # Tasks first: the bids table references it.
    tasks = TaskStore(
        database,
        max_title_length=settings.limits.max_title_length,
        max_description_length=settings.limits.max_description_length,
    )
    bids = BidStore(database, max_proposal_length=settings.limits.max_proposal_length)
    profiles = ProfileStore(database)
    state.lifecycle = LifecycleService(database, tasks, bids, profiles)

    identity_client = IdentityClient(
        base_url=settings.identity.base_url,
        api_key=settings.identity.api_key,
        user_path=settings.identity.user_path,
        otp_path=settings.identity.otp_path,
        timeout_seconds=settings.identity.timeout_seconds,
    )
    state.identity_client = identity_client

    logger.info(
        "Service starting",
        extra={
            "service": settings.service.name,
            "version": settings.service.version,
            "port": settings.server.port,
            "db_path": settings.database.path,
            "identity_base_url": settings.identity.base_url,
        },
    )

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Service shutting down", extra={"uptime_seconds": state.uptime_seconds})

    await identity_client.close()
    database.close()
