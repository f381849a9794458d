"""Display profiles for identities seen by the service."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from lobsterwork_service.services.rules import WORKER_TYPES, is_encodable, now_iso

if TYPE_CHECKING:
    from collections.abc import Iterable

    from lobsterwork_service.services.database import Database


class ProfileStore:
    """
    Caches ``{id, email, display_name, user_type}`` per user.

    Rows are refreshed from the identity provider every time a caller is
    resolved; sign-up metadata (display name, HUMAN/AGENT) arrives that way.
    """

    def __init__(self, database: Database) -> None:
        self._database = database
        self._init_schema()

    def _init_schema(self) -> None:
        self._database.execute_script(
            """
            CREATE TABLE IF NOT EXISTS profiles (
                id TEXT PRIMARY KEY,
                email TEXT,
                display_name TEXT,
                user_type TEXT,
                updated_at TEXT NOT NULL
            );
            """
        )

    def upsert_profile(self, user: dict[str, Any]) -> dict[str, Any]:
        """Store the identity's email and metadata; keep known values the provider omits."""
        metadata = user.get("metadata") or {}
        display_name = metadata.get("display_name")
        if (
            not isinstance(display_name, str)
            or display_name.strip() == ""
            or not is_encodable(display_name)
        ):
            display_name = None
        user_type = metadata.get("user_type")
        if user_type not in WORKER_TYPES:
            user_type = None

        with self._database.transaction() as db:
            db.execute(
                """
                INSERT INTO profiles (id, email, display_name, user_type, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    email = COALESCE(excluded.email, profiles.email),
                    display_name = COALESCE(excluded.display_name, profiles.display_name),
                    user_type = COALESCE(excluded.user_type, profiles.user_type),
                    updated_at = excluded.updated_at
                """,
                (user["id"], user.get("email"), display_name, user_type, now_iso()),
            )

        profile = self.get_profiles([user["id"]]).get(user["id"])
        if profile is None:
            msg = f"Profile {user['id']} not found after upsert"
            raise RuntimeError(msg)
        return profile

    def get_profiles(self, user_ids: Iterable[str]) -> dict[str, dict[str, Any]]:
        """Profiles keyed by user id; unknown ids are absent."""
        unique_ids = sorted(set(user_ids))
        if not unique_ids:
            return {}
        placeholders = ", ".join("?" for _ in unique_ids)
        rows = self._database.fetch_all(
            "SELECT id, email, display_name, user_type FROM profiles "
            f"WHERE id IN ({placeholders})",  # nosec B608
            unique_ids,
        )
        return {
            str(row["id"]): {
                "id": row["id"],
                "email": row["email"],
                "display_name": row["display_name"],
                "user_type": row["user_type"],
            }
            for row in rows
        }
