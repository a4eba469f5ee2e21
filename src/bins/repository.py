"""Repositories for bins, sensor readings and collection logs.

Follows the AlertRepository pattern with asyncpg: module-level row
converters, dynamic WHERE builders with incremental ``param_idx``, and
``LIMIT/OFFSET`` pagination ordered newest first.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from src.bins.schemas import Bin, CollectionLog, Reading
from src.storage.database import Database

logger = logging.getLogger(__name__)

# Upper bounds of the dashboard fill brackets (exclusive)
FILL_BRACKETS: tuple[tuple[str, int, int], ...] = (
    ("empty", 0, 25),
    ("low", 25, 50),
    ("medium", 50, 80),
    ("high", 80, 95),
    ("critical", 95, 101),
)


def _build_where(filters: list[tuple[str, Any]]) -> tuple[str, list[Any], int]:
    """Build a WHERE clause from (column, value) pairs, skipping None values.

    Returns:
        (where_clause, params, next_param_idx)
    """
    conditions: list[str] = []
    params: list[Any] = []
    param_idx = 1

    for column, value in filters:
        if value is None:
            continue
        conditions.append(f"{column} = ${param_idx}")
        params.append(value)
        param_idx += 1

    where_clause = ""
    if conditions:
        where_clause = "WHERE " + " AND ".join(conditions)
    return where_clause, params, param_idx


class BinRepository:
    """Repository for the ``bins`` table.

    Only the fill/emptied columns are mutated by the core; registration
    exists so bins can be provisioned from the CLI.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create(self, bin_: Bin) -> Bin:
        """Insert a new bin.

        Raises:
            asyncpg.UniqueViolationError: If ``bin_code`` is taken.
        """
        sql = """
            INSERT INTO bins (
                id, bin_code, location, latitude, longitude,
                bin_type, status, fill_level, created_at, updated_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
            RETURNING *
        """
        row = await self._db.fetchrow(
            sql,
            bin_.bin_id,
            bin_.bin_code,
            bin_.location,
            bin_.latitude,
            bin_.longitude,
            bin_.bin_type,
            bin_.status,
            bin_.fill_level,
            bin_.created_at,
            bin_.updated_at,
        )
        return _row_to_bin(row)

    async def get_by_id(self, bin_id: str) -> Bin | None:
        row = await self._db.fetchrow("SELECT * FROM bins WHERE id = $1", bin_id)
        if row is None:
            return None
        return _row_to_bin(row)

    async def get_by_code(self, bin_code: str) -> Bin | None:
        row = await self._db.fetchrow(
            "SELECT * FROM bins WHERE bin_code = $1", bin_code,
        )
        if row is None:
            return None
        return _row_to_bin(row)

    async def get_all(
        self,
        *,
        status: str | None = None,
        bin_type: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Bin]:
        """List bins with optional status / category filters."""
        where_clause, params, param_idx = _build_where([
            ("status", status),
            ("bin_type", bin_type),
        ])
        sql = f"""
            SELECT * FROM bins
            {where_clause}
            ORDER BY created_at DESC
            LIMIT ${param_idx} OFFSET ${param_idx + 1}
        """
        params.extend([limit, offset])
        rows = await self._db.fetch(sql, *params)
        return [_row_to_bin(row) for row in rows]

    async def update_fill_level(self, bin_id: str, fill_level: int) -> Bin | None:
        """Set the bin's current fill. Last write wins.

        Returns:
            The updated Bin, or None if the bin no longer exists.
        """
        sql = """
            UPDATE bins SET fill_level = $2, updated_at = NOW()
            WHERE id = $1
            RETURNING *
        """
        row = await self._db.fetchrow(sql, bin_id, fill_level)
        if row is None:
            return None
        return _row_to_bin(row)

    async def mark_emptied(
        self,
        bin_id: str,
        emptied_at: datetime | None = None,
    ) -> Bin | None:
        """Reset fill to 0 and stamp ``last_emptied``.

        Returns:
            The updated Bin, or None if the bin no longer exists.
        """
        emptied_at = emptied_at or datetime.now(timezone.utc)
        sql = """
            UPDATE bins
            SET fill_level = 0, last_emptied = $2, updated_at = NOW()
            WHERE id = $1
            RETURNING *
        """
        row = await self._db.fetchrow(sql, bin_id, emptied_at)
        if row is None:
            return None
        return _row_to_bin(row)

    async def get_stats(self) -> dict[str, Any]:
        """Dashboard overview: totals, average fill, status and fill brackets."""
        bracket_columns = ",\n".join(
            f"COUNT(*) FILTER (WHERE fill_level >= {low} AND fill_level < {high}) AS {name}"
            for name, low, high in FILL_BRACKETS
        )
        totals_sql = f"""
            SELECT
                COUNT(*) AS total,
                COALESCE(ROUND(AVG(fill_level)), 0)::int AS avg_fill,
                {bracket_columns}
            FROM bins
        """
        totals = await self._db.fetchrow(totals_sql)
        status_rows = await self._db.fetch(
            "SELECT status, COUNT(*) AS count FROM bins GROUP BY status"
        )
        return {
            "total_bins": totals["total"] or 0,
            "avg_fill_level": totals["avg_fill"] or 0,
            "by_status": {r["status"]: r["count"] for r in status_rows},
            "fill_brackets": {
                name: totals[name] or 0 for name, _, _ in FILL_BRACKETS
            },
        }


class ReadingRepository:
    """Append-only repository for ``sensor_readings``."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create(self, reading: Reading) -> Reading:
        sql = """
            INSERT INTO sensor_readings (
                id, bin_id, fill_level, waste_type, weight, gas_level,
                temperature, moisture, battery_level, created_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
            RETURNING *
        """
        row = await self._db.fetchrow(
            sql,
            reading.reading_id,
            reading.bin_id,
            reading.fill_level,
            reading.waste_type,
            reading.weight,
            reading.gas_level,
            reading.temperature,
            reading.moisture,
            reading.battery_level,
            reading.created_at,
        )
        return _row_to_reading(row)

    async def get_by_id(self, reading_id: str) -> Reading | None:
        row = await self._db.fetchrow(
            "SELECT * FROM sensor_readings WHERE id = $1", reading_id,
        )
        if row is None:
            return None
        return _row_to_reading(row)

    async def get_recent(
        self,
        *,
        bin_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Reading]:
        """List readings, newest first, optionally for one bin."""
        where_clause, params, param_idx = _build_where([("bin_id", bin_id)])
        sql = f"""
            SELECT * FROM sensor_readings
            {where_clause}
            ORDER BY created_at DESC
            LIMIT ${param_idx} OFFSET ${param_idx + 1}
        """
        params.extend([limit, offset])
        rows = await self._db.fetch(sql, *params)
        return [_row_to_reading(row) for row in rows]


class CollectionLogRepository:
    """Append-only repository for ``collection_logs``."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create(self, log: CollectionLog) -> CollectionLog:
        sql = """
            INSERT INTO collection_logs (
                id, bin_id, collected_by, fill_level_before,
                fill_level_after, notes, collected_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING *
        """
        row = await self._db.fetchrow(
            sql,
            log.log_id,
            log.bin_id,
            log.collected_by,
            log.fill_level_before,
            log.fill_level_after,
            log.notes,
            log.collected_at,
        )
        return _row_to_collection_log(row)

    async def get_by_id(self, log_id: str) -> CollectionLog | None:
        row = await self._db.fetchrow(
            "SELECT * FROM collection_logs WHERE id = $1", log_id,
        )
        if row is None:
            return None
        return _row_to_collection_log(row)

    async def get_recent(
        self,
        *,
        bin_id: str | None = None,
        collected_by: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CollectionLog]:
        """List collection history, newest first."""
        where_clause, params, param_idx = _build_where([
            ("bin_id", bin_id),
            ("collected_by", collected_by),
        ])
        sql = f"""
            SELECT * FROM collection_logs
            {where_clause}
            ORDER BY collected_at DESC
            LIMIT ${param_idx} OFFSET ${param_idx + 1}
        """
        params.extend([limit, offset])
        rows = await self._db.fetch(sql, *params)
        return [_row_to_collection_log(row) for row in rows]


def _row_to_bin(row: Any) -> Bin:
    """Convert an asyncpg Record to a Bin."""
    return Bin(
        bin_id=row["id"],
        bin_code=row["bin_code"],
        location=row["location"],
        latitude=row.get("latitude"),
        longitude=row.get("longitude"),
        bin_type=row["bin_type"],
        status=row["status"],
        fill_level=row["fill_level"],
        last_emptied=row.get("last_emptied"),
        created_at=row["created_at"],
        updated_at=row.get("updated_at") or row["created_at"],
    )


def _row_to_reading(row: Any) -> Reading:
    """Convert an asyncpg Record to a Reading."""
    return Reading(
        reading_id=row["id"],
        bin_id=row["bin_id"],
        fill_level=row["fill_level"],
        waste_type=row.get("waste_type"),
        weight=row.get("weight"),
        gas_level=row.get("gas_level"),
        temperature=row.get("temperature"),
        moisture=row.get("moisture"),
        battery_level=row.get("battery_level"),
        created_at=row["created_at"],
    )


def _row_to_collection_log(row: Any) -> CollectionLog:
    """Convert an asyncpg Record to a CollectionLog."""
    return CollectionLog(
        log_id=row["id"],
        bin_id=row["bin_id"],
        collected_by=row.get("collected_by"),
        fill_level_before=row["fill_level_before"],
        fill_level_after=row["fill_level_after"],
        notes=row.get("notes"),
        collected_at=row["collected_at"],
    )
