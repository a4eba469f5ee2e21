"""Tests for the user schema and repository."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from src.users.repository import UserRepository
from src.users.schemas import User

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _user_row(**overrides):
    row = {
        "id": "user-1",
        "email": "casey@example.com",
        "full_name": "Casey",
        "phone": None,
        "role": "collector",
        "is_active": True,
        "created_at": NOW,
    }
    row.update(overrides)
    return row


class TestUser:

    def test_invalid_role(self):
        with pytest.raises(ValueError, match="role"):
            User(email="a@example.com", full_name="A", role="janitor")

    def test_to_dict(self):
        d = User(email="a@example.com", full_name="A", user_id="u1").to_dict()
        assert d["id"] == "u1"
        assert d["is_active"] is True


class TestUserRepository:

    @pytest.mark.asyncio
    async def test_get_by_id(self):
        db = AsyncMock()
        db.fetchrow.return_value = _user_row(phone="+15550001111")
        user = await UserRepository(db).get_by_id("user-1")
        assert user.phone == "+15550001111"

    @pytest.mark.asyncio
    async def test_get_active_by_roles(self):
        db = AsyncMock()
        db.fetch.return_value = [_user_row(), _user_row(id="user-2", role="admin")]

        users = await UserRepository(db).get_active_by_roles(["admin", "collector"])

        sql, roles = db.fetch.call_args.args
        assert "is_active = TRUE" in sql
        assert roles == ["admin", "collector"]
        assert [u.user_id for u in users] == ["user-1", "user-2"]

    @pytest.mark.asyncio
    async def test_no_roles_skips_query(self):
        db = AsyncMock()
        assert await UserRepository(db).get_active_by_roles([]) == []
        db.fetch.assert_not_called()
