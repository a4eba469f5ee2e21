"""Tests for AlertRepository with mocked Database."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from src.alerts.repository import AlertRepository, _affected_rows, _row_to_alert
from src.alerts.schemas import Alert


@pytest.fixture
def mock_db():
    db = AsyncMock()
    return db


@pytest.fixture
def repo(mock_db):
    return AlertRepository(mock_db)


def _make_db_row(**overrides):
    """Create a mock asyncpg Record as a dict."""
    row = {
        "id": "alert-1",
        "bin_id": "bin-1",
        "alert_type": "fill_critical",
        "severity": "high",
        "message": "Bin is 85% full, approaching capacity.",
        "resolved": False,
        "resolved_by": None,
        "resolved_at": None,
        "created_at": datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc),
    }
    row.update(overrides)
    return row


def _alert(alert_id: str, **kwargs) -> Alert:
    defaults = {
        "bin_id": "bin-1",
        "alert_type": "fill_critical",
        "severity": "high",
        "message": "msg",
    }
    defaults.update(kwargs)
    return Alert(alert_id=alert_id, **defaults)


class TestRowToAlert:

    def test_basic_conversion(self):
        alert = _row_to_alert(_make_db_row())
        assert alert.alert_id == "alert-1"
        assert alert.bin_id == "bin-1"
        assert alert.resolved is False

    def test_resolved_row(self):
        resolved_at = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
        alert = _row_to_alert(
            _make_db_row(resolved=True, resolved_by="user-1", resolved_at=resolved_at)
        )
        assert alert.resolved_by == "user-1"
        assert alert.resolved_at == resolved_at


class TestAffectedRows:

    def test_parses_update_tag(self):
        assert _affected_rows("UPDATE 3") == 3

    def test_zero(self):
        assert _affected_rows("UPDATE 0") == 0

    def test_garbage(self):
        assert _affected_rows("") == 0
        assert _affected_rows(None) == 0


class TestCreateBatch:

    @pytest.mark.asyncio
    async def test_empty_batch_skips_db(self, repo, mock_db):
        assert await repo.create_batch([]) == []
        mock_db.fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_single_statement_for_batch(self, repo, mock_db):
        alerts = [_alert("a1"), _alert("a2", alert_type="gas_detected", severity="critical")]
        mock_db.fetch.return_value = [
            _make_db_row(id="a1"),
            _make_db_row(id="a2", alert_type="gas_detected", severity="critical"),
        ]

        result = await repo.create_batch(alerts)

        mock_db.fetch.assert_called_once()
        sql, ids, bin_ids, types, severities, messages, created = mock_db.fetch.call_args.args
        assert "unnest" in sql
        assert ids == ["a1", "a2"]
        assert types == ["fill_critical", "gas_detected"]
        assert [a.alert_id for a in result] == ["a1", "a2"]

    @pytest.mark.asyncio
    async def test_preserves_input_order(self, repo, mock_db):
        alerts = [_alert("a1"), _alert("a2")]
        mock_db.fetch.return_value = [_make_db_row(id="a2"), _make_db_row(id="a1")]

        result = await repo.create_batch(alerts)
        assert [a.alert_id for a in result] == ["a1", "a2"]

    @pytest.mark.asyncio
    async def test_failure_propagates(self, repo, mock_db):
        mock_db.fetch.side_effect = RuntimeError("connection lost")
        with pytest.raises(RuntimeError):
            await repo.create_batch([_alert("a1")])


class TestGetRecent:

    @pytest.mark.asyncio
    async def test_no_filters(self, repo, mock_db):
        mock_db.fetch.return_value = [_make_db_row()]
        alerts = await repo.get_recent()

        sql = mock_db.fetch.call_args.args[0]
        assert "WHERE" not in sql
        assert mock_db.fetch.call_args.args[1:] == (50, 0)
        assert len(alerts) == 1

    @pytest.mark.asyncio
    async def test_filters_are_parameterized(self, repo, mock_db):
        mock_db.fetch.return_value = []
        await repo.get_recent(bin_id="bin-1", resolved=False, severity="critical", limit=10)

        args = mock_db.fetch.call_args.args
        sql = args[0]
        assert "bin_id = $1" in sql
        assert "resolved = $2" in sql
        assert "severity = $3" in sql
        assert "LIMIT $4 OFFSET $5" in sql
        assert args[1:] == ("bin-1", False, "critical", 10, 0)


class TestResolution:

    @pytest.mark.asyncio
    async def test_resolve_open_for_bin_counts(self, repo, mock_db):
        mock_db.execute.return_value = "UPDATE 2"
        count = await repo.resolve_open_for_bin("bin-1", resolved_by="user-1")

        assert count == 2
        sql, bin_id, resolved_at, resolved_by = mock_db.execute.call_args.args
        assert "resolved = FALSE" in sql
        assert bin_id == "bin-1"
        assert resolved_at.tzinfo is not None
        assert resolved_by == "user-1"

    @pytest.mark.asyncio
    async def test_resolve_open_for_bin_nothing_open(self, repo, mock_db):
        mock_db.execute.return_value = "UPDATE 0"
        assert await repo.resolve_open_for_bin("bin-1") == 0

    @pytest.mark.asyncio
    async def test_set_resolution_resolve(self, repo, mock_db):
        mock_db.fetchrow.return_value = _make_db_row(
            resolved=True,
            resolved_by="user-1",
            resolved_at=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
        )
        alert = await repo.set_resolution("alert-1", True, "user-1")
        assert alert.resolved is True
        assert mock_db.fetchrow.call_args.args[1:] == ("alert-1", "user-1")

    @pytest.mark.asyncio
    async def test_set_resolution_reopen_clears_fields(self, repo, mock_db):
        mock_db.fetchrow.return_value = _make_db_row()
        alert = await repo.set_resolution("alert-1", False)

        sql = mock_db.fetchrow.call_args.args[0]
        assert "resolved_at = NULL" in sql
        assert "resolved_by = NULL" in sql
        assert alert.resolved is False

    @pytest.mark.asyncio
    async def test_set_resolution_without_resolver_keeps_existing_credit(self, repo, mock_db):
        mock_db.fetchrow.return_value = _make_db_row(
            resolved=True,
            resolved_by="user-1",
            resolved_at=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
        )
        alert = await repo.set_resolution("alert-1", True, None)

        sql = mock_db.fetchrow.call_args.args[0]
        assert "COALESCE($2, resolved_by)" in sql
        assert mock_db.fetchrow.call_args.args[1:] == ("alert-1", None)
        assert alert.resolved_by == "user-1"

    @pytest.mark.asyncio
    async def test_set_resolution_missing(self, repo, mock_db):
        mock_db.fetchrow.return_value = None
        assert await repo.set_resolution("nope", True) is None


class TestDelete:

    @pytest.mark.asyncio
    async def test_deleted(self, repo, mock_db):
        mock_db.execute.return_value = "DELETE 1"
        assert await repo.delete("alert-1") is True
        sql, alert_id = mock_db.execute.call_args.args
        assert sql.startswith("DELETE FROM alerts")
        assert alert_id == "alert-1"

    @pytest.mark.asyncio
    async def test_missing(self, repo, mock_db):
        mock_db.execute.return_value = "DELETE 0"
        assert await repo.delete("nope") is False


class TestStats:

    @pytest.mark.asyncio
    async def test_get_stats(self, repo, mock_db):
        mock_db.fetchrow.return_value = {"total": 7, "unresolved": 3}
        mock_db.fetch.side_effect = [
            [{"severity": "high", "count": 4}, {"severity": "critical", "count": 3}],
            [{"alert_type": "fill_critical", "count": 7}],
        ]

        stats = await repo.get_stats()
        assert stats == {
            "total": 7,
            "unresolved": 3,
            "by_severity": {"high": 4, "critical": 3},
            "by_type": {"fill_critical": 7},
        }
