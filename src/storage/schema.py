"""
Schema bootstrap for the bin-monitor tables.

Creates bins, users, sensor_readings, alerts, notifications and
collection_logs with the CHECK constraints that back the record
invariants (fill in [0, 100], enumerated kinds and states).
"""

import logging

from src.storage.database import Database

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS bins (
    id            TEXT PRIMARY KEY,
    bin_code      TEXT NOT NULL UNIQUE,
    location      TEXT NOT NULL,
    latitude      DOUBLE PRECISION,
    longitude     DOUBLE PRECISION,
    bin_type      TEXT NOT NULL DEFAULT 'general'
        CHECK (bin_type IN ('general', 'organic', 'recyclable', 'hazardous')),
    status        TEXT NOT NULL DEFAULT 'active'
        CHECK (status IN ('active', 'maintenance', 'decommissioned')),
    fill_level    INTEGER NOT NULL DEFAULT 0
        CHECK (fill_level BETWEEN 0 AND 100),
    last_emptied  TIMESTAMPTZ,
    created_at    TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at    TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_bins_status ON bins(status);

CREATE TABLE IF NOT EXISTS users (
    id          TEXT PRIMARY KEY,
    email       TEXT NOT NULL UNIQUE,
    full_name   TEXT NOT NULL,
    phone       TEXT,
    role        TEXT NOT NULL DEFAULT 'collector'
        CHECK (role IN ('admin', 'collector', 'operator')),
    is_active   BOOLEAN NOT NULL DEFAULT TRUE,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_users_role_active
    ON users(role) WHERE is_active = TRUE;

CREATE TABLE IF NOT EXISTS sensor_readings (
    id             TEXT PRIMARY KEY,
    bin_id         TEXT NOT NULL REFERENCES bins(id) ON DELETE CASCADE,
    fill_level     INTEGER NOT NULL CHECK (fill_level BETWEEN 0 AND 100),
    waste_type     TEXT,
    weight         DOUBLE PRECISION,
    gas_level      DOUBLE PRECISION,
    temperature    DOUBLE PRECISION,
    moisture       DOUBLE PRECISION,
    battery_level  DOUBLE PRECISION,
    created_at     TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_readings_bin_created
    ON sensor_readings(bin_id, created_at DESC);

CREATE TABLE IF NOT EXISTS alerts (
    id           TEXT PRIMARY KEY,
    bin_id       TEXT NOT NULL REFERENCES bins(id) ON DELETE CASCADE,
    alert_type   TEXT NOT NULL
        CHECK (alert_type IN ('fill_warning', 'fill_critical', 'gas_detected', 'maintenance_needed')),
    severity     TEXT NOT NULL
        CHECK (severity IN ('low', 'medium', 'high', 'critical')),
    message      TEXT NOT NULL,
    resolved     BOOLEAN NOT NULL DEFAULT FALSE,
    resolved_by  TEXT REFERENCES users(id) ON DELETE SET NULL,
    resolved_at  TIMESTAMPTZ,
    created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_alerts_bin_open
    ON alerts(bin_id) WHERE resolved = FALSE;
CREATE INDEX IF NOT EXISTS idx_alerts_created_at
    ON alerts(created_at DESC);

CREATE TABLE IF NOT EXISTS notifications (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    alert_id    TEXT REFERENCES alerts(id) ON DELETE SET NULL,
    channel     TEXT NOT NULL CHECK (channel IN ('sms', 'email', 'push')),
    message     TEXT NOT NULL,
    status      TEXT NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'sent', 'failed')),
    sent_at     TIMESTAMPTZ,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_notifications_user
    ON notifications(user_id, created_at DESC);

CREATE TABLE IF NOT EXISTS collection_logs (
    id                 TEXT PRIMARY KEY,
    bin_id             TEXT NOT NULL REFERENCES bins(id) ON DELETE CASCADE,
    collected_by       TEXT REFERENCES users(id) ON DELETE SET NULL,
    fill_level_before  INTEGER NOT NULL CHECK (fill_level_before BETWEEN 0 AND 100),
    fill_level_after   INTEGER NOT NULL DEFAULT 0 CHECK (fill_level_after = 0),
    notes              TEXT,
    collected_at       TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_collection_logs_bin
    ON collection_logs(bin_id, collected_at DESC);
"""


async def create_tables(database: Database) -> None:
    """Create all tables and indexes (idempotent)."""
    await database.execute(SCHEMA_SQL)
    logger.info("Bin-monitor schema ensured")
