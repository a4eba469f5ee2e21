"""Read-only user queries used for recipient selection."""

import logging
from typing import Any

from src.storage.database import Database
from src.users.schemas import User

logger = logging.getLogger(__name__)


class UserRepository:
    """Lookups against the ``users`` table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def get_by_id(self, user_id: str) -> User | None:
        row = await self._db.fetchrow("SELECT * FROM users WHERE id = $1", user_id)
        if row is None:
            return None
        return _row_to_user(row)

    async def get_active_by_roles(self, roles: list[str]) -> list[User]:
        """Active users whose role is in ``roles``.

        Args:
            roles: Role names to include.

        Returns:
            Users ordered by creation time (oldest first), so fan-out
            order is stable between calls.
        """
        if not roles:
            return []
        sql = """
            SELECT * FROM users
            WHERE role = ANY($1::text[]) AND is_active = TRUE
            ORDER BY created_at
        """
        rows = await self._db.fetch(sql, list(roles))
        return [_row_to_user(row) for row in rows]


def _row_to_user(row: Any) -> User:
    """Convert an asyncpg Record to a User."""
    return User(
        user_id=row["id"],
        email=row["email"],
        full_name=row["full_name"],
        phone=row.get("phone"),
        role=row["role"],
        is_active=row.get("is_active", True),
        created_at=row["created_at"],
    )
