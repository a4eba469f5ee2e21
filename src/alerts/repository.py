"""Alert repository for persistence, resolution and dashboard queries.

Follows the BinRepository pattern with asyncpg. Batch inserts are a
single statement so a batch is stored entirely or not at all.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from src.alerts.schemas import Alert
from src.storage.database import Database

logger = logging.getLogger(__name__)


def _affected_rows(status: str) -> int:
    """Parse the row count from an asyncpg command tag like ``UPDATE 3``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


class AlertRepository:
    """Repository for alert persistence and querying.

    Provides create, read, resolve, and stats operations for Alert
    records stored in the ``alerts`` table.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_batch(self, alerts: list[Alert]) -> list[Alert]:
        """Insert alerts atomically via ``unnest``.

        Args:
            alerts: Alerts to persist.

        Returns:
            The created alerts with DB-assigned defaults, in input order.

        Raises:
            asyncpg.PostgresError: If the insert fails. Nothing is stored.
        """
        if not alerts:
            return []

        sql = """
            INSERT INTO alerts (
                id, bin_id, alert_type, severity, message, resolved, created_at
            )
            SELECT id, bin_id, alert_type, severity, message, FALSE, created_at
            FROM unnest(
                $1::text[], $2::text[], $3::text[], $4::text[], $5::text[],
                $6::timestamptz[]
            ) AS t(id, bin_id, alert_type, severity, message, created_at)
            RETURNING *
        """
        rows = await self._db.fetch(
            sql,
            [a.alert_id for a in alerts],
            [a.bin_id for a in alerts],
            [a.alert_type for a in alerts],
            [a.severity for a in alerts],
            [a.message for a in alerts],
            [a.created_at for a in alerts],
        )
        by_id = {row["id"]: _row_to_alert(row) for row in rows}
        return [by_id[a.alert_id] for a in alerts if a.alert_id in by_id]

    async def get_by_id(self, alert_id: str) -> Alert | None:
        """Get an alert by ID.

        Args:
            alert_id: Alert identifier.

        Returns:
            Alert or None if not found.
        """
        row = await self._db.fetchrow("SELECT * FROM alerts WHERE id = $1", alert_id)
        if row is None:
            return None
        return _row_to_alert(row)

    async def get_recent(
        self,
        *,
        bin_id: str | None = None,
        resolved: bool | None = None,
        severity: str | None = None,
        alert_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Alert]:
        """Get recent alerts with optional filtering.

        Args:
            bin_id: Filter by bin.
            resolved: Filter by resolution state.
            severity: Filter by severity level.
            alert_type: Filter by alert type.
            limit: Maximum alerts to return.
            offset: Offset for pagination.

        Returns:
            List of alerts ordered by created_at descending.
        """
        conditions: list[str] = []
        params: list[Any] = []
        param_idx = 1

        for column, value in (
            ("bin_id", bin_id),
            ("resolved", resolved),
            ("severity", severity),
            ("alert_type", alert_type),
        ):
            if value is not None:
                conditions.append(f"{column} = ${param_idx}")
                params.append(value)
                param_idx += 1

        where_clause = ""
        if conditions:
            where_clause = "WHERE " + " AND ".join(conditions)

        sql = f"""
            SELECT * FROM alerts
            {where_clause}
            ORDER BY created_at DESC
            LIMIT ${param_idx} OFFSET ${param_idx + 1}
        """
        params.extend([limit, offset])

        rows = await self._db.fetch(sql, *params)
        return [_row_to_alert(row) for row in rows]

    async def resolve_open_for_bin(
        self,
        bin_id: str,
        resolved_by: str | None = None,
        resolved_at: datetime | None = None,
    ) -> int:
        """Resolve every open alert on a bin in one statement.

        Already-resolved alerts are untouched.

        Returns:
            Number of alerts transitioned to resolved.
        """
        resolved_at = resolved_at or datetime.now(timezone.utc)
        sql = """
            UPDATE alerts
            SET resolved = TRUE, resolved_at = $2, resolved_by = $3
            WHERE bin_id = $1 AND resolved = FALSE
        """
        status = await self._db.execute(sql, bin_id, resolved_at, resolved_by)
        return _affected_rows(status)

    async def set_resolution(
        self,
        alert_id: str,
        resolved: bool,
        resolved_by: str | None = None,
    ) -> Alert | None:
        """Explicitly resolve or reopen a single alert.

        Resolving without ``resolved_by`` keeps whoever was already
        credited (e.g. the collector of an earlier collection).
        Reopening clears ``resolved_at`` and ``resolved_by``.

        Returns:
            The updated Alert, or None if no alert has this ID.
        """
        if resolved:
            sql = """
                UPDATE alerts
                SET resolved = TRUE, resolved_at = NOW(),
                    resolved_by = COALESCE($2, resolved_by)
                WHERE id = $1
                RETURNING *
            """
            row = await self._db.fetchrow(sql, alert_id, resolved_by)
        else:
            sql = """
                UPDATE alerts
                SET resolved = FALSE, resolved_at = NULL, resolved_by = NULL
                WHERE id = $1
                RETURNING *
            """
            row = await self._db.fetchrow(sql, alert_id)
        if row is None:
            return None
        return _row_to_alert(row)

    async def delete(self, alert_id: str) -> bool:
        """Delete one alert. Its notifications keep their rows with
        ``alert_id`` set to NULL.

        Returns:
            True if a row was deleted.
        """
        status = await self._db.execute("DELETE FROM alerts WHERE id = $1", alert_id)
        return _affected_rows(status) > 0

    async def get_stats(self) -> dict[str, Any]:
        """Dashboard overview: totals plus breakdowns by severity and type."""
        totals = await self._db.fetchrow(
            """
            SELECT
                COUNT(*) AS total,
                COUNT(*) FILTER (WHERE resolved = FALSE) AS unresolved
            FROM alerts
            """
        )
        severity_rows = await self._db.fetch(
            "SELECT severity, COUNT(*) AS count FROM alerts GROUP BY severity"
        )
        type_rows = await self._db.fetch(
            "SELECT alert_type, COUNT(*) AS count FROM alerts GROUP BY alert_type"
        )
        return {
            "total": totals["total"] or 0,
            "unresolved": totals["unresolved"] or 0,
            "by_severity": {r["severity"]: r["count"] for r in severity_rows},
            "by_type": {r["alert_type"]: r["count"] for r in type_rows},
        }


def _row_to_alert(row: Any) -> Alert:
    """Convert an asyncpg Record to an Alert."""
    return Alert(
        alert_id=row["id"],
        bin_id=row["bin_id"],
        alert_type=row["alert_type"],
        severity=row["severity"],
        message=row["message"],
        resolved=row["resolved"],
        resolved_by=row.get("resolved_by"),
        resolved_at=row.get("resolved_at"),
        created_at=row["created_at"],
    )
