"""API routers."""

from lobsterwork_service.routers import auth, bids, health, tasks

__all__ = ["auth", "bids", "health", "tasks"]
