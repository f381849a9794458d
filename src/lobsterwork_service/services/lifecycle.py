"""Task/bid lifecycle: every cross-entity state transition lives here."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from lobsterwork_service.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
)
from lobsterwork_service.logging import get_logger
from lobsterwork_service.services.rules import (
    BID_ACCEPTED,
    BID_PENDING,
    TASK_CANCELLED,
    TASK_COMPLETED,
    TASK_IN_PROGRESS,
    TASK_OPEN,
)

if TYPE_CHECKING:
    from lobsterwork_service.services.bid_store import BidStore
    from lobsterwork_service.services.database import Database
    from lobsterwork_service.services.profile_store import ProfileStore
    from lobsterwork_service.services.task_store import TaskStore


class LifecycleService:
    """
    Orchestrates the rules coupling tasks and bids.

    Owns no data. Every transition runs inside a single database transaction
    and re-reads the rows it checks, so the read-check-write sequence is
    atomic per task. Caller identity is always passed in explicitly.
    """

    def __init__(
        self,
        database: Database,
        tasks: TaskStore,
        bids: BidStore,
        profiles: ProfileStore,
    ) -> None:
        self._database = database
        self._tasks = tasks
        self._bids = bids
        self._profiles = profiles
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def create_task(self, poster_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Post a new OPEN task on behalf of ``poster_id``."""
        task = self._tasks.create_task(poster_id, fields)
        self._logger.info(
            "Task created",
            extra={"task_id": task["id"], "poster_id": poster_id},
        )
        return task

    def get_task(self, task_id: str) -> dict[str, Any]:
        """Raises NotFoundError when missing."""
        return self._tasks.get_task(task_id)

    def list_tasks(
        self,
        *,
        status: str | None = None,
        category: str | None = None,
        preferred_worker_type: str | None = None,
        poster_id: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict[str, Any]]:
        return self._tasks.list_tasks(
            status=status,
            category=category,
            preferred_worker_type=preferred_worker_type,
            poster_id=poster_id,
            limit=limit,
            offset=offset,
        )

    def cancel_task(self, task_id: str, user_id: str) -> dict[str, Any]:
        """
        Withdraw an OPEN task. Every PENDING bid on it is rejected.

        Error precedence: TASK_NOT_FOUND, FORBIDDEN (not the poster),
        INVALID_STATUS (not OPEN).
        """
        with self._database.transaction():
            task = self._tasks.get_task(task_id)
            if user_id != task["poster_id"]:
                raise ForbiddenError("FORBIDDEN", "Only the poster can cancel this task")
            if task["status"] != TASK_OPEN:
                raise ConflictError(
                    "INVALID_STATUS",
                    f"Cannot cancel task in '{task['status']}' status, must be 'OPEN'",
                    {"current_status": task["status"]},
                )
            if self._tasks.set_status(task_id, TASK_CANCELLED, expected_status=TASK_OPEN) == 0:
                raise ConflictError("INVALID_STATUS", "Task is no longer OPEN")
            rejected = self._bids.reject_pending_bids(task_id)

        self._logger.info(
            "Task cancelled",
            extra={"task_id": task_id, "poster_id": user_id, "rejected_bids": rejected},
        )
        return self._tasks.get_task(task_id)

    def complete_task(self, task_id: str, user_id: str) -> dict[str, Any]:
        """
        Mark an IN_PROGRESS task as done. Only the poster may do this.

        Error precedence: TASK_NOT_FOUND, FORBIDDEN (not the poster),
        INVALID_STATUS (not IN_PROGRESS).
        """
        with self._database.transaction():
            task = self._tasks.get_task(task_id)
            if user_id != task["poster_id"]:
                raise ForbiddenError("FORBIDDEN", "Only the poster can complete this task")
            if task["status"] != TASK_IN_PROGRESS:
                raise ConflictError(
                    "INVALID_STATUS",
                    f"Cannot complete task in '{task['status']}' status, must be 'IN_PROGRESS'",
                    {"current_status": task["status"]},
                )
            changed = self._tasks.set_status(
                task_id, TASK_COMPLETED, expected_status=TASK_IN_PROGRESS
            )
            if changed == 0:
                raise ConflictError("INVALID_STATUS", "Task is no longer IN_PROGRESS")

        self._logger.info("Task completed", extra={"task_id": task_id, "poster_id": user_id})
        return self._tasks.get_task(task_id)

    # ------------------------------------------------------------------
    # Bids
    # ------------------------------------------------------------------

    def submit_bid(self, task_id: str, bidder_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """
        Place a PENDING bid.

        The bid store checks the bidding rules (task OPEN, bidder is not the
        poster) inside the same transaction as the insert.
        """
        bid = self._bids.create_bid(bidder_id, task_id, fields)
        self._logger.info(
            "Bid submitted",
            extra={"task_id": task_id, "bid_id": bid["id"], "bidder_id": bidder_id},
        )
        return bid

    def list_bids_for_task(self, task_id: str) -> list[dict[str, Any]]:
        """Bids on a task, oldest first. Raises NotFoundError for unknown tasks."""
        self._tasks.get_task(task_id)
        return self._bids.list_bids_for_task(task_id)

    def list_bids_for_bidder(self, bidder_id: str) -> list[dict[str, Any]]:
        return self._bids.list_bids_for_bidder(bidder_id)

    def accept_bid(self, task_id: str, accepting_user_id: str, bid_id: str) -> dict[str, Any]:
        """
        Accept one bid, reject its PENDING siblings, and start the task.

        Error precedence:
        1. TASK_NOT_FOUND
        2. FORBIDDEN: caller is not the poster
        3. INVALID_STATUS: task is not OPEN
        4. BID_NOT_FOUND: bid missing or attached to another task
        5. INVALID_BID_STATUS: bid is not PENDING

        The three writes share one transaction and the task write is a
        compare-and-swap on OPEN, so a second acceptance on the same task
        always fails with ConflictError.
        """
        with self._database.transaction():
            task = self._tasks.get_task(task_id)
            if accepting_user_id != task["poster_id"]:
                raise ForbiddenError("FORBIDDEN", "Only the poster can accept bids")
            if task["status"] != TASK_OPEN:
                raise ConflictError(
                    "INVALID_STATUS",
                    f"Cannot accept bid on task in '{task['status']}' status, must be 'OPEN'",
                    {"current_status": task["status"]},
                )

            bid = self._bids.find_bid(bid_id)
            if bid is None or bid["task_id"] != task_id:
                raise NotFoundError("BID_NOT_FOUND", "Bid not found", {"bid_id": bid_id})
            if bid["status"] != BID_PENDING:
                raise ConflictError(
                    "INVALID_BID_STATUS",
                    f"Cannot accept bid in '{bid['status']}' status, must be 'PENDING'",
                    {"current_status": bid["status"]},
                )

            swapped = self._tasks.set_status(
                task_id,
                TASK_IN_PROGRESS,
                expected_status=TASK_OPEN,
                assignments={"accepted_bid_id": bid_id, "worker_id": bid["bidder_id"]},
            )
            if swapped == 0:
                raise ConflictError("INVALID_STATUS", "Task is no longer OPEN")
            if self._bids.set_status(bid_id, BID_ACCEPTED, expected_status=BID_PENDING) == 0:
                raise ConflictError("INVALID_BID_STATUS", "Bid is no longer PENDING")
            rejected = self._bids.reject_pending_bids(task_id, exclude_bid_id=bid_id)

        self._logger.info(
            "Bid accepted",
            extra={
                "task_id": task_id,
                "bid_id": bid_id,
                "worker_id": bid["bidder_id"],
                "rejected_bids": rejected,
            },
        )
        return self._tasks.get_task(task_id)

    # ------------------------------------------------------------------
    # Views with profiles (presentation helpers)
    # ------------------------------------------------------------------

    def get_task_detail(self, task_id: str) -> dict[str, Any]:
        """Task plus the poster's profile, if one is known."""
        task = self._tasks.get_task(task_id)
        profiles = self._profiles.get_profiles([task["poster_id"]])
        return {**task, "poster": profiles.get(task["poster_id"])}

    def list_bid_details(self, task_id: str) -> list[dict[str, Any]]:
        """Bids on a task, each with the bidder's profile, if one is known."""
        bids = self.list_bids_for_task(task_id)
        profiles = self._profiles.get_profiles(bid["bidder_id"] for bid in bids)
        return [{**bid, "bidder": profiles.get(bid["bidder_id"])} for bid in bids]

    def record_identity(self, user: dict[str, Any]) -> dict[str, Any]:
        """Refresh the cached profile for a resolved caller."""
        return self._profiles.upsert_profile(user)

    def get_stats(self) -> dict[str, Any]:
        """Task counts for the health endpoint."""
        return {
            "total_tasks": self._tasks.count_tasks(),
            "tasks_by_status": self._tasks.count_tasks_by_status(),
            "total_bids": self._bids.count_bids(),
        }
