"""SQLite-backed task storage."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from lobsterwork_service.core.exceptions import NotFoundError, ValidationError
from lobsterwork_service.services.rules import (
    TASK_CATEGORIES,
    TASK_OPEN,
    TASK_STATUSES,
    WORKER_TYPES,
    ensure_task_transition,
    now_iso,
    optional_choice,
    optional_date,
    require_non_negative,
    require_text,
)

if TYPE_CHECKING:
    import sqlite3

    from lobsterwork_service.services.database import Database


class TaskStore:
    """Owns the ``tasks`` table and its invariants."""

    _TASK_COLUMNS: tuple[str, ...] = (
        "id",
        "poster_id",
        "title",
        "description",
        "budget_min",
        "budget_max",
        "category",
        "preferred_worker_type",
        "deadline",
        "status",
        "accepted_bid_id",
        "worker_id",
        "created_at",
        "updated_at",
    )
    _TASK_INSERT_SQL = (
        "INSERT INTO tasks ("
        "id, poster_id, title, description, budget_min, budget_max, category, "
        "preferred_worker_type, deadline, status, accepted_bid_id, worker_id, "
        "created_at, updated_at"
        ") VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
    )
    _TASK_SELECT_BASE_SQL = (
        "SELECT id, poster_id, title, description, budget_min, budget_max, category, "
        "preferred_worker_type, deadline, status, accepted_bid_id, worker_id, "
        "created_at, updated_at, "
        "(SELECT COUNT(*) FROM bids WHERE bids.task_id = tasks.id) AS bid_count "
        "FROM tasks"
    )
    # Columns a status transition may set alongside the status itself.
    _TRANSITION_COLUMNS = frozenset({"accepted_bid_id", "worker_id"})

    def __init__(
        self,
        database: Database,
        *,
        max_title_length: int,
        max_description_length: int,
    ) -> None:
        self._database = database
        self._max_title_length = max_title_length
        self._max_description_length = max_description_length
        self._init_schema()

    def _init_schema(self) -> None:
        self._database.execute_script(
            """
            CREATE TABLE IF NOT EXISTS tasks (
                id TEXT PRIMARY KEY,
                poster_id TEXT NOT NULL,
                title TEXT NOT NULL,
                description TEXT NOT NULL,
                budget_min REAL NOT NULL CHECK (budget_min >= 0),
                budget_max REAL NOT NULL CHECK (budget_max >= budget_min),
                category TEXT,
                preferred_worker_type TEXT,
                deadline TEXT,
                status TEXT NOT NULL DEFAULT 'OPEN',
                accepted_bid_id TEXT,
                worker_id TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS ix_tasks_status_created
                ON tasks(status, created_at);

            CREATE INDEX IF NOT EXISTS ix_tasks_poster
                ON tasks(poster_id);
            """
        )

    def _row_to_task(self, row: sqlite3.Row) -> dict[str, Any]:
        task = {column: row[column] for column in self._TASK_COLUMNS}
        task["bid_count"] = int(row["bid_count"])
        return task

    def _validate_fields(self, fields: dict[str, Any]) -> dict[str, Any]:
        title = require_text(fields, "title", self._max_title_length)
        description = require_text(fields, "description", self._max_description_length)
        budget_min = require_non_negative(fields, "budget_min")
        budget_max = require_non_negative(fields, "budget_max")
        if budget_min > budget_max:
            raise ValidationError(
                "INVALID_BUDGET",
                "budget_min must not exceed budget_max",
                {"budget_min": budget_min, "budget_max": budget_max},
            )
        return {
            "title": title,
            "description": description,
            "budget_min": budget_min,
            "budget_max": budget_max,
            "category": optional_choice(fields, "category", TASK_CATEGORIES),
            "preferred_worker_type": optional_choice(
                fields, "preferred_worker_type", WORKER_TYPES
            ),
            "deadline": optional_date(fields, "deadline"),
        }

    def create_task(self, poster_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """
        Validate and insert a new OPEN task.

        Raises:
            ValidationError: empty title/description, bad budgets, unknown
                category or worker type, malformed deadline.
        """
        values = self._validate_fields(fields)
        created_at = now_iso()
        task: dict[str, Any] = {
            "id": f"t-{uuid.uuid4()}",
            "poster_id": poster_id,
            **values,
            "status": TASK_OPEN,
            "accepted_bid_id": None,
            "worker_id": None,
            "created_at": created_at,
            "updated_at": created_at,
        }

        with self._database.transaction() as db:
            db.execute(
                self._TASK_INSERT_SQL,
                tuple(task[column] for column in self._TASK_COLUMNS),
            )

        task["bid_count"] = 0
        return task

    def find_task(self, task_id: str) -> dict[str, Any] | None:
        """Fetch a task by ID, or None."""
        row = self._database.fetch_one(self._TASK_SELECT_BASE_SQL + " WHERE id = ?", (task_id,))
        if row is None:
            return None
        return self._row_to_task(row)

    def get_task(self, task_id: str) -> dict[str, Any]:
        """Fetch a task by ID. Raises NotFoundError when missing."""
        task = self.find_task(task_id)
        if task is None:
            raise NotFoundError("TASK_NOT_FOUND", "Task not found", {"task_id": task_id})
        return task

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
        """List tasks, newest first. All filters use AND logic."""
        query = self._TASK_SELECT_BASE_SQL
        clauses: list[str] = []
        params: list[object] = []

        if status is not None:
            clauses.append("status = ?")
            params.append(status)
        if category is not None:
            clauses.append("category = ?")
            params.append(category)
        if preferred_worker_type is not None:
            clauses.append("preferred_worker_type = ?")
            params.append(preferred_worker_type)
        if poster_id is not None:
            clauses.append("poster_id = ?")
            params.append(poster_id)

        if len(clauses) > 0:
            query += " WHERE " + " AND ".join(clauses)

        query += " ORDER BY created_at DESC, rowid DESC"

        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
            if offset is not None:
                query += " OFFSET ?"
                params.append(offset)
        elif offset is not None:
            query += " LIMIT -1 OFFSET ?"
            params.append(offset)

        rows = self._database.fetch_all(query, params)
        return [self._row_to_task(row) for row in rows]

    def set_status(
        self,
        task_id: str,
        new_status: str,
        *,
        expected_status: str | None = None,
        assignments: dict[str, Any] | None = None,
    ) -> int:
        """
        Move a task to ``new_status``. Internal: only the lifecycle service calls this.

        With ``expected_status`` this is a compare-and-swap: nothing changes
        (and 0 is returned) unless the task currently holds that status.
        Returns the number of rows changed.

        Raises:
            ConflictError: the transition is not allowed by the state machine.
        """
        updates = dict(assignments or {})
        if any(column not in self._TRANSITION_COLUMNS for column in updates):
            msg = "Attempted to update a task column outside a status transition"
            raise ValueError(msg)

        with self._database.transaction() as db:
            row = db.execute("SELECT status FROM tasks WHERE id = ?", (task_id,)).fetchone()
            if row is None:
                return 0
            current = str(row["status"])
            if expected_status is not None and current != expected_status:
                return 0
            ensure_task_transition(current, new_status)

            updates["status"] = new_status
            updates["updated_at"] = now_iso()
            set_clause = ", ".join(f"{column} = ?" for column in updates)
            query = "UPDATE tasks SET " + set_clause + " WHERE id = ? AND status = ?"  # nosec B608
            cursor = db.execute(query, [*updates.values(), task_id, current])
        return int(cursor.rowcount)

    def count_tasks(self) -> int:
        """Count total tasks."""
        row = self._database.fetch_one("SELECT COUNT(*) FROM tasks")
        return int(row[0]) if row is not None else 0

    def count_tasks_by_status(self) -> dict[str, int]:
        """Count tasks grouped by status, zero-filled for every known status."""
        counts = dict.fromkeys(TASK_STATUSES, 0)
        rows = self._database.fetch_all("SELECT status, COUNT(*) FROM tasks GROUP BY status")
        for row in rows:
            counts[str(row[0])] = int(row[1])
        return counts
