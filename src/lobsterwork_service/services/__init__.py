"""Service layer components."""

from lobsterwork_service.services.bid_store import BidStore
from lobsterwork_service.services.database import Database
from lobsterwork_service.services.lifecycle import LifecycleService
from lobsterwork_service.services.profile_store import ProfileStore
from lobsterwork_service.services.task_store import TaskStore

__all__ = [
    "BidStore",
    "Database",
    "LifecycleService",
    "ProfileStore",
    "TaskStore",
]
