"""SQLite database management for the biosignature data bank.

Handles connection lifecycle, schema creation, and migrations.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_V1 = """
-- Raw readings, one row per metric per capture
CREATE TABLE IF NOT EXISTS metric_samples (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL,
    metric      TEXT NOT NULL,
    value       REAL NOT NULL,
    captured_at TEXT NOT NULL,
    source      TEXT NOT NULL DEFAULT 'manual',
    created_at  TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Append-only 7-day snapshots. UNIQUE(user_id, week_start) makes a racing
-- second write for the same week fail instead of duplicating history.
CREATE TABLE IF NOT EXISTS biosignature_snapshots (
    id                   TEXT PRIMARY KEY,
    user_id              TEXT NOT NULL,
    week_start           TEXT NOT NULL,
    glucose              REAL NOT NULL,
    activity             REAL NOT NULL,
    recovery             REAL NOT NULL,
    strain               REAL NOT NULL,
    aqi                  REAL NOT NULL,
    heart_rate           REAL NOT NULL,
    sleep                REAL NOT NULL,
    pattern_hash         TEXT NOT NULL,
    unknown_metrics_json TEXT,
    health_notes_enc     TEXT,
    raw_data_enc         TEXT,
    created_at           TEXT NOT NULL,
    UNIQUE (user_id, week_start)
);

-- One row per user per week; id = '<user_id>_<week_start>'
CREATE TABLE IF NOT EXISTS weekly_biosignatures (
    id            TEXT PRIMARY KEY,
    user_id       TEXT NOT NULL,
    week_start    TEXT NOT NULL,
    score         INTEGER NOT NULL,
    metrics_json  TEXT NOT NULL,
    insights_json TEXT NOT NULL,
    entry_count   INTEGER NOT NULL DEFAULT 0,
    calculated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_samples_user_ts   ON metric_samples(user_id, captured_at);
CREATE INDEX IF NOT EXISTS idx_samples_metric    ON metric_samples(metric);
CREATE INDEX IF NOT EXISTS idx_snapshots_user_ts ON biosignature_snapshots(user_id, created_at);
CREATE INDEX IF NOT EXISTS idx_weekly_user_week  ON weekly_biosignatures(user_id, week_start);
"""

# ---------------------------------------------------------------------------
# V2: PHI-free audit trail of snapshot and scoring decisions
# ---------------------------------------------------------------------------

_SCHEMA_V2 = """
CREATE TABLE IF NOT EXISTS audit_log (
    id            TEXT PRIMARY KEY,
    timestamp     TEXT NOT NULL DEFAULT (datetime('now')),
    action        TEXT NOT NULL,
    subject_hash  TEXT,
    input_hash    TEXT,
    snapshot_id   TEXT,
    status        TEXT NOT NULL DEFAULT 'success',
    reason        TEXT,
    duration_ms   REAL,
    metadata_json TEXT
);

CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log(timestamp);
CREATE INDEX IF NOT EXISTS idx_audit_action    ON audit_log(action);
"""


class DatabaseError(Exception):
    """Raised when database operations fail."""


class BiosignatureDatabase:
    """SQLite manager for the biosignature data bank.

    ``:memory:`` gives a throwaway database for tests.

    Usage::

        with BiosignatureDatabase("~/.synergy/biosignature.db") as db:
            db.connection.execute(...)
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """The open connection.

        Raises:
            DatabaseError: If :meth:`initialize` has not been called.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Open the connection and bring the schema up to date. Idempotent."""
        if self._conn is not None:
            return

        if self._db_path != ":memory:":
            db_file = Path(self._db_path).expanduser()
            db_file.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(db_file))
        else:
            self._conn = sqlite3.connect(":memory:")

        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")

        self._ensure_schema()
        logger.info("Biosignature database initialized: %s", self._db_path)

    def _ensure_schema(self) -> None:
        conn = self.connection
        conn.executescript(_SCHEMA_V1)

        row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
        current_version = row[0] if row[0] is not None else 0

        if current_version < 2:
            conn.executescript(_SCHEMA_V2)
            logger.info("Applied schema migration V2: audit_log table")

        if current_version < SCHEMA_VERSION:
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
            )
            conn.commit()
            logger.info(
                "Schema updated from version %d to %d", current_version, SCHEMA_VERSION
            )

    def get_schema_version(self) -> int:
        row = self.connection.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] if row[0] is not None else 0

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Biosignature database closed")

    def __enter__(self) -> BiosignatureDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
