"""Unit test fixtures: cache clearing and temp-file stores."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from lobsterwork_service.config import clear_settings_cache
from lobsterwork_service.core.state import reset_app_state
from lobsterwork_service.services.bid_store import BidStore
from lobsterwork_service.services.database import Database
from lobsterwork_service.services.lifecycle import LifecycleService
from lobsterwork_service.services.profile_store import ProfileStore
from lobsterwork_service.services.task_store import TaskStore

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _clear_caches():
    """Clear settings cache and app state between tests."""
    clear_settings_cache()
    reset_app_state()
    yield
    clear_settings_cache()
    reset_app_state()


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "lobsterwork.db")


@pytest.fixture
def database(db_path: str) -> Iterator[Database]:
    db = Database(db_path)
    yield db
    db.close()


@pytest.fixture
def task_store(database: Database) -> TaskStore:
    store = TaskStore(database, max_title_length=200, max_description_length=10000)
    # bid_count is read from the bids table
    BidStore(database, max_proposal_length=5000)
    return store


@pytest.fixture
def bid_store(database: Database, task_store: TaskStore) -> BidStore:
    return BidStore(database, max_proposal_length=5000)


@pytest.fixture
def profile_store(database: Database) -> ProfileStore:
    return ProfileStore(database)


@pytest.fixture
def lifecycle(
    database: Database,
    task_store: TaskStore,
    bid_store: BidStore,
    profile_store: ProfileStore,
) -> LifecycleService:
    return LifecycleService(database, task_store, bid_store, profile_store)
