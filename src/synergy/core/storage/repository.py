"""Biosignature repository — reads and writes for the data bank.

Mediates between the domain records (samples, snapshots, weekly results)
and SQLite, encrypting snapshot notes and raw pass-through data on the way in.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

from synergy.core.storage.database import BiosignatureDatabase
from synergy.core.storage.encryption import FieldEncryptor
from synergy.core.storage.models import (
    BiosignatureSnapshot,
    StoredMetricSample,
    WeeklyBiosignature,
)
from synergy.domains.health.domain_logic.metric_models import MetricKind, MetricSample
from synergy.domains.health.domain_logic.normalizer import finite_or_none
from synergy.domains.health.domain_logic.periods import iso_utc, to_utc

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Raised for invalid repository arguments."""


class BiosignatureRepository:
    """Storage for metric samples, 7-day snapshots and weekly biosignatures.

    Usage::

        db = BiosignatureDatabase(":memory:")
        db.initialize()
        repo = BiosignatureRepository(db, FieldEncryptor(key))

        repo.save_samples("user-1", samples)
        latest = repo.get_latest_snapshot("user-1")
    """

    def __init__(self, database: BiosignatureDatabase, encryptor: FieldEncryptor) -> None:
        self._db = database
        self._enc = encryptor

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    # ------------------------------------------------------------------
    # Samples
    # ------------------------------------------------------------------

    def save_samples(
        self,
        user_id: str,
        samples: Iterable[MetricSample],
        *,
        source: str = "manual",
    ) -> int:
        """Persist finite readings; non-finite ones are dropped.

        Returns:
            Number of rows written.
        """
        rows = [
            (self._new_id(), user_id, s.kind.value, value, iso_utc(s.captured_at), source)
            for s in samples
            if (value := finite_or_none(s.value)) is not None
        ]
        if not rows:
            return 0
        conn = self._db.connection
        conn.executemany(
            """INSERT INTO metric_samples (id, user_id, metric, value, captured_at, source)
               VALUES (?, ?, ?, ?, ?, ?)""",
            rows,
        )
        conn.commit()
        logger.debug("Saved %d sample(s) for user (source=%s)", len(rows), source)
        return len(rows)

    def get_samples(
        self,
        user_id: str,
        *,
        since: datetime | str | None = None,
        until: datetime | str | None = None,
        metric: MetricKind | str | None = None,
        limit: int | None = None,
    ) -> list[MetricSample]:
        """Samples for a user, oldest first, bounds inclusive.

        ``limit=None`` returns every matching sample.
        """
        return [
            MetricSample(
                kind=MetricKind(row.metric),
                value=row.value,
                captured_at=to_utc(row.captured_at),
            )
            for row in self._query_samples(user_id, since, until, metric, limit)
        ]

    def get_stored_samples(
        self,
        user_id: str,
        *,
        metric: MetricKind | str | None = None,
        limit: int = 100,
    ) -> list[StoredMetricSample]:
        """Stored rows including source and ids, oldest first."""
        return self._query_samples(user_id, None, None, metric, limit)

    def get_latest_value(self, user_id: str, metric: MetricKind | str) -> float | None:
        kind = self._parse_metric(metric)
        row = self._db.connection.execute(
            """SELECT value FROM metric_samples WHERE user_id = ? AND metric = ?
               ORDER BY captured_at DESC LIMIT 1""",
            (user_id, kind.value),
        ).fetchone()
        return row[0] if row else None

    def _query_samples(
        self,
        user_id: str,
        since: datetime | str | None,
        until: datetime | str | None,
        metric: MetricKind | str | None,
        limit: int | None,
    ) -> list[StoredMetricSample]:
        if limit is not None and limit <= 0:
            raise RepositoryError(f"limit must be positive, got {limit}")

        conditions = ["user_id = ?"]
        params: list[Any] = [user_id]
        if since is not None:
            conditions.append("captured_at >= ?")
            params.append(iso_utc(since))
        if until is not None:
            conditions.append("captured_at <= ?")
            params.append(iso_utc(until))
        if metric is not None:
            conditions.append("metric = ?")
            params.append(self._parse_metric(metric).value)

        query = (
            "SELECT * FROM metric_samples WHERE "
            + " AND ".join(conditions)
            + " ORDER BY captured_at ASC"
        )
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        rows = self._db.connection.execute(query, params).fetchall()
        return [
            StoredMetricSample(
                id=row["id"],
                user_id=row["user_id"],
                metric=row["metric"],
                value=row["value"],
                captured_at=row["captured_at"],
                source=row["source"],
                created_at=row["created_at"],
            )
            for row in rows
        ]

    @staticmethod
    def _parse_metric(metric: MetricKind | str) -> MetricKind:
        try:
            return MetricKind.parse(metric)
        except ValueError as exc:
            raise RepositoryError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Snapshots (append-only)
    # ------------------------------------------------------------------

    def save_snapshot(self, snapshot: BiosignatureSnapshot) -> str | None:
        """Append a snapshot.

        Returns:
            The snapshot id, or None if the user already has a snapshot for
            that week (a concurrent writer won the race).
        """
        sid = snapshot.id or self._new_id()
        conn = self._db.connection
        try:
            conn.execute(
                """INSERT INTO biosignature_snapshots (
                    id, user_id, week_start,
                    glucose, activity, recovery, strain, aqi, heart_rate, sleep,
                    pattern_hash, unknown_metrics_json, health_notes_enc, raw_data_enc,
                    created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    sid,
                    snapshot.user_id,
                    snapshot.week_start,
                    snapshot.glucose,
                    snapshot.activity,
                    snapshot.recovery,
                    snapshot.strain,
                    snapshot.aqi,
                    snapshot.heart_rate,
                    snapshot.sleep,
                    snapshot.pattern_hash,
                    json.dumps(snapshot.unknown_metrics),
                    self._enc.encrypt_text(snapshot.health_notes),
                    self._enc.encrypt_json(snapshot.raw_data),
                    snapshot.created_at,
                ),
            )
            conn.commit()
        except sqlite3.IntegrityError:
            conn.rollback()
            logger.warning(
                "Snapshot for week %s already exists; keeping the first one",
                snapshot.week_start,
            )
            return None

        snapshot.id = sid
        logger.info("Saved snapshot %s (week %s)", sid, snapshot.week_start)
        return sid

    def get_latest_snapshot(self, user_id: str) -> BiosignatureSnapshot | None:
        results = self.get_snapshots(user_id, limit=1)
        return results[0] if results else None

    def get_snapshots(self, user_id: str, *, limit: int = 52) -> list[BiosignatureSnapshot]:
        """Snapshots for a user, newest first."""
        if limit <= 0:
            raise RepositoryError(f"limit must be positive, got {limit}")
        rows = self._db.connection.execute(
            """SELECT * FROM biosignature_snapshots WHERE user_id = ?
               ORDER BY created_at DESC LIMIT ?""",
            (user_id, limit),
        ).fetchall()
        return [self._row_to_snapshot(row) for row in rows]

    def count_snapshots(self, user_id: str | None = None) -> int:
        if user_id is None:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM biosignature_snapshots"
            ).fetchone()
        else:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM biosignature_snapshots WHERE user_id = ?", (user_id,)
            ).fetchone()
        return row[0]

    def _row_to_snapshot(self, row: sqlite3.Row) -> BiosignatureSnapshot:
        unknown: list[str] = []
        if row["unknown_metrics_json"]:
            try:
                unknown = json.loads(row["unknown_metrics_json"])
            except json.JSONDecodeError:
                logger.warning("Unreadable unknown_metrics for snapshot %s", row["id"])

        return BiosignatureSnapshot(
            id=row["id"],
            user_id=row["user_id"],
            week_start=row["week_start"],
            glucose=row["glucose"],
            activity=row["activity"],
            recovery=row["recovery"],
            strain=row["strain"],
            aqi=row["aqi"],
            heart_rate=row["heart_rate"],
            sleep=row["sleep"],
            pattern_hash=row["pattern_hash"],
            unknown_metrics=unknown,
            health_notes=self._enc.decrypt_text(row["health_notes_enc"]),
            raw_data=self._enc.decrypt_json(row["raw_data_enc"]),
            created_at=row["created_at"],
        )

    # ------------------------------------------------------------------
    # Weekly biosignatures (idempotent per user/week)
    # ------------------------------------------------------------------

    def upsert_weekly_biosignature(self, result: WeeklyBiosignature) -> str:
        """Insert or overwrite the row for ``result.id``."""
        calculated_at = result.calculated_at or iso_utc(datetime.now(timezone.utc))
        conn = self._db.connection
        conn.execute(
            """INSERT INTO weekly_biosignatures
                   (id, user_id, week_start, score, metrics_json, insights_json,
                    entry_count, calculated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   score = excluded.score,
                   metrics_json = excluded.metrics_json,
                   insights_json = excluded.insights_json,
                   entry_count = excluded.entry_count,
                   calculated_at = excluded.calculated_at""",
            (
                result.id,
                result.user_id,
                result.week_start,
                result.score,
                json.dumps(result.metrics, sort_keys=True),
                json.dumps(result.insights),
                result.entry_count,
                calculated_at,
            ),
        )
        conn.commit()
        logger.info("Stored weekly biosignature %s (score=%d)", result.id, result.score)
        return result.id

    def get_weekly_biosignature(self, biosignature_id: str) -> WeeklyBiosignature | None:
        row = self._db.connection.execute(
            "SELECT * FROM weekly_biosignatures WHERE id = ?", (biosignature_id,)
        ).fetchone()
        if row is None:
            return None
        return WeeklyBiosignature(
            id=row["id"],
            user_id=row["user_id"],
            week_start=row["week_start"],
            score=row["score"],
            metrics=json.loads(row["metrics_json"]),
            insights=json.loads(row["insights_json"]),
            entry_count=row["entry_count"],
            calculated_at=row["calculated_at"],
        )

    def get_weekly_scores(self, user_id: str, *, limit: int = 12) -> list[tuple[str, int]]:
        """(week_start, score) pairs, newest week first."""
        rows = self._db.connection.execute(
            """SELECT week_start, score FROM weekly_biosignatures WHERE user_id = ?
               ORDER BY week_start DESC LIMIT ?""",
            (user_id, limit),
        ).fetchall()
        return [(row[0], row[1]) for row in rows]
