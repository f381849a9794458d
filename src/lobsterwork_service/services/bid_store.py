"""SQLite-backed bid storage."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from lobsterwork_service.core.exceptions import NotFoundError
from lobsterwork_service.services.rules import (
    BID_PENDING,
    BID_REJECTED,
    ensure_bid_eligible,
    ensure_bid_transition,
    now_iso,
    optional_date,
    optional_non_negative,
    require_non_negative,
    require_text,
)

if TYPE_CHECKING:
    import sqlite3

    from lobsterwork_service.services.database import Database


class BidStore:
    """Owns the ``bids`` table and its invariants."""

    _BID_COLUMNS: tuple[str, ...] = (
        "id",
        "task_id",
        "bidder_id",
        "amount",
        "proposal",
        "estimated_hours",
        "estimated_completion",
        "status",
        "created_at",
        "updated_at",
    )
    _BID_INSERT_SQL = (
        "INSERT INTO bids ("
        "id, task_id, bidder_id, amount, proposal, estimated_hours, "
        "estimated_completion, status, created_at, updated_at"
        ") VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
    )
    _BID_SELECT_BASE_SQL = (
        "SELECT id, task_id, bidder_id, amount, proposal, estimated_hours, "
        "estimated_completion, status, created_at, updated_at FROM bids"
    )

    def __init__(self, database: Database, *, max_proposal_length: int) -> None:
        self._database = database
        self._max_proposal_length = max_proposal_length
        self._init_schema()

    def _init_schema(self) -> None:
        # The partial unique index makes a second ACCEPTED bid on one task
        # impossible at the storage level.
        self._database.execute_script(
            """
            CREATE TABLE IF NOT EXISTS bids (
                id TEXT PRIMARY KEY,
                task_id TEXT NOT NULL REFERENCES tasks(id),
                bidder_id TEXT NOT NULL,
                amount REAL NOT NULL CHECK (amount >= 0),
                proposal TEXT NOT NULL,
                estimated_hours REAL CHECK (estimated_hours IS NULL OR estimated_hours >= 0),
                estimated_completion TEXT,
                status TEXT NOT NULL DEFAULT 'PENDING',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS ix_bids_task_created
                ON bids(task_id, created_at);

            CREATE INDEX IF NOT EXISTS ix_bids_bidder
                ON bids(bidder_id);

            CREATE UNIQUE INDEX IF NOT EXISTS ux_accepted_bid_per_task
                ON bids(task_id)
                WHERE status = 'ACCEPTED';
            """
        )

    def _row_to_bid(self, row: sqlite3.Row) -> dict[str, Any]:
        return {column: row[column] for column in self._BID_COLUMNS}

    def _validate_fields(self, fields: dict[str, Any]) -> dict[str, Any]:
        return {
            "amount": require_non_negative(fields, "amount"),
            "proposal": require_text(fields, "proposal", self._max_proposal_length),
            "estimated_hours": optional_non_negative(fields, "estimated_hours"),
            "estimated_completion": optional_date(fields, "estimated_completion"),
        }

    def create_bid(self, bidder_id: str, task_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """
        Validate and insert a PENDING bid.

        The task lookup, eligibility check and insert share one transaction,
        so a task that leaves OPEN concurrently cannot receive the bid.

        Raises:
            ValidationError: empty proposal, negative/non-numeric amount or hours,
                malformed estimated_completion.
            NotFoundError: the task does not exist.
            ForbiddenError: the task is not OPEN, or the bidder posted it.
        """
        values = self._validate_fields(fields)
        created_at = now_iso()
        bid: dict[str, Any] = {
            "id": f"bid-{uuid.uuid4()}",
            "task_id": task_id,
            "bidder_id": bidder_id,
            **values,
            "status": BID_PENDING,
            "created_at": created_at,
            "updated_at": created_at,
        }

        with self._database.transaction() as db:
            row = db.execute(
                "SELECT id, poster_id, status FROM tasks WHERE id = ?",
                (task_id,),
            ).fetchone()
            if row is None:
                raise NotFoundError("TASK_NOT_FOUND", "Task not found", {"task_id": task_id})
            ensure_bid_eligible(
                {"id": row["id"], "poster_id": row["poster_id"], "status": row["status"]},
                bidder_id,
            )
            db.execute(self._BID_INSERT_SQL, tuple(bid[column] for column in self._BID_COLUMNS))

        return bid

    def find_bid(self, bid_id: str) -> dict[str, Any] | None:
        """Fetch a bid by ID, or None."""
        row = self._database.fetch_one(self._BID_SELECT_BASE_SQL + " WHERE id = ?", (bid_id,))
        if row is None:
            return None
        return self._row_to_bid(row)

    def get_bid(self, bid_id: str) -> dict[str, Any]:
        """Fetch a bid by ID. Raises NotFoundError when missing."""
        bid = self.find_bid(bid_id)
        if bid is None:
            raise NotFoundError("BID_NOT_FOUND", "Bid not found", {"bid_id": bid_id})
        return bid

    def list_bids_for_task(self, task_id: str) -> list[dict[str, Any]]:
        """All bids on a task, oldest first."""
        rows = self._database.fetch_all(
            self._BID_SELECT_BASE_SQL + " WHERE task_id = ? ORDER BY created_at, rowid",
            (task_id,),
        )
        return [self._row_to_bid(row) for row in rows]

    def list_bids_for_bidder(self, bidder_id: str) -> list[dict[str, Any]]:
        """All bids placed by one user, newest first."""
        rows = self._database.fetch_all(
            self._BID_SELECT_BASE_SQL
            + " WHERE bidder_id = ? ORDER BY created_at DESC, rowid DESC",
            (bidder_id,),
        )
        return [self._row_to_bid(row) for row in rows]

    def set_status(
        self,
        bid_id: str,
        new_status: str,
        *,
        expected_status: str | None = None,
    ) -> int:
        """
        Move a bid to ``new_status``. Internal: only the lifecycle service calls this.

        Returns the number of rows changed (0 on a lost compare-and-swap).

        Raises:
            ConflictError: the transition is not allowed by the state machine.
        """
        with self._database.transaction() as db:
            row = db.execute("SELECT status FROM bids WHERE id = ?", (bid_id,)).fetchone()
            if row is None:
                return 0
            current = str(row["status"])
            if expected_status is not None and current != expected_status:
                return 0
            ensure_bid_transition(current, new_status)
            cursor = db.execute(
                "UPDATE bids SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
                (new_status, now_iso(), bid_id, current),
            )
        return int(cursor.rowcount)

    def reject_pending_bids(self, task_id: str, *, exclude_bid_id: str | None = None) -> int:
        """Reject every PENDING bid on a task in one statement. Returns rows changed."""
        query = "UPDATE bids SET status = ?, updated_at = ? WHERE task_id = ? AND status = ?"
        params: list[object] = [BID_REJECTED, now_iso(), task_id, BID_PENDING]
        if exclude_bid_id is not None:
            query += " AND id != ?"
            params.append(exclude_bid_id)

        with self._database.transaction() as db:
            cursor = db.execute(query, params)
        return int(cursor.rowcount)

    def count_bids(self) -> int:
        """Count total bids."""
        row = self._database.fetch_one("SELECT COUNT(*) FROM bids")
        return int(row[0]) if row is not None else 0
