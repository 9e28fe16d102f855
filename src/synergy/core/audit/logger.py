"""Audit logger — PHI-free trail of snapshot and scoring decisions.

Every snapshot attempt and weekly calculation is recorded with hashed
identifiers only:

* ``subject_hash`` — SHA-256 of the user id.
* ``input_hash``   — SHA-256 of the canonical JSON of the readings.
* ``reason``       — why a snapshot was or was not written.
"""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from synergy.core.storage.database import BiosignatureDatabase

logger = logging.getLogger(__name__)


def _hash_input(data: Any) -> str:
    """SHA-256 hash of canonical JSON, or empty string if not serializable."""
    try:
        canonical = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode()).hexdigest()
    except (TypeError, ValueError):
        return ""


def _hash_subject(user_id: str) -> str:
    return hashlib.sha256(user_id.encode()).hexdigest()


@dataclass
class AuditEvent:
    """A single audit log entry."""

    action: str                          # 'snapshot_decision' | 'weekly_calculation'
    subject_hash: str = ""
    input_hash: str = ""
    snapshot_id: str | None = None
    status: str = "success"              # 'success' | 'skipped' | 'failure'
    reason: str | None = None
    duration_ms: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class AuditLogger:
    """Records audit events to the ``audit_log`` SQLite table.

    Writes are committed immediately. A failed write is logged and swallowed
    so auditing never breaks the operation being audited.

    Usage::

        audit = AuditLogger(biosig_db)
        audit.log_snapshot_decision("user-1", created=False, reason="within_interval")
    """

    def __init__(self, database: BiosignatureDatabase) -> None:
        self._db = database

    # ---------------------------------------------------------------
    # Write
    # ---------------------------------------------------------------

    def log_event(self, event: AuditEvent) -> str:
        """Insert an audit event.

        Returns:
            The generated event ID, or "" if the write failed.
        """
        event_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat(timespec="microseconds")

        metadata_json = (
            json.dumps(event.metadata, separators=(",", ":"), sort_keys=True)
            if event.metadata
            else None
        )

        try:
            conn = self._db.connection
            conn.execute(
                """INSERT INTO audit_log
                   (id, timestamp, action, subject_hash, input_hash, snapshot_id,
                    status, reason, duration_ms, metadata_json)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    event_id,
                    now,
                    event.action,
                    event.subject_hash or None,
                    event.input_hash or None,
                    event.snapshot_id,
                    event.status,
                    event.reason,
                    event.duration_ms,
                    metadata_json,
                ),
            )
            conn.commit()
        except Exception:
            logger.exception("Failed to write audit event — event lost")
            return ""

        return event_id

    def log_snapshot_decision(
        self,
        user_id: str,
        *,
        created: bool,
        reason: str,
        readings: Any = None,
        snapshot_id: str | None = None,
        duration_ms: float | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Record whether a 7-day snapshot was written and why.

        Args:
            user_id: Owner of the readings (hashed, never stored raw).
            created: True if a snapshot row was written.
            reason: 'created', 'within_interval', 'missing_primary_metric'
                or 'duplicate_week'.
            readings: Submitted readings (hashed, never stored raw).
        """
        return self.log_event(AuditEvent(
            action="snapshot_decision",
            subject_hash=_hash_subject(user_id),
            input_hash=_hash_input(readings) if readings else "",
            snapshot_id=snapshot_id,
            status="success" if created else "skipped",
            reason=reason,
            duration_ms=duration_ms,
            metadata=metadata or {},
        ))

    def log_weekly_calculation(
        self,
        user_id: str,
        *,
        week_start: str,
        status: str,
        entry_count: int,
        score: int | None = None,
        duration_ms: float | None = None,
    ) -> str:
        metadata: dict[str, Any] = {"week_start": week_start, "entry_count": entry_count}
        if score is not None:
            metadata["score"] = score
        return self.log_event(AuditEvent(
            action="weekly_calculation",
            subject_hash=_hash_subject(user_id),
            status=status,
            duration_ms=duration_ms,
            metadata=metadata,
        ))

    # ---------------------------------------------------------------
    # Read
    # ---------------------------------------------------------------

    def get_events(
        self,
        *,
        action: str | None = None,
        user_id: str | None = None,
        since: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Query audit events, newest first.

        Args:
            action: Filter by action type.
            user_id: Filter by subject; compared by hash.
            since: ISO 8601 timestamp lower bound.
            limit: Maximum events to return.
        """
        conditions: list[str] = []
        params: list[Any] = []

        if action:
            conditions.append("action = ?")
            params.append(action)
        if user_id:
            conditions.append("subject_hash = ?")
            params.append(_hash_subject(user_id))
        if since:
            conditions.append("timestamp >= ?")
            params.append(since)

        where = (" WHERE " + " AND ".join(conditions)) if conditions else ""
        query = f"SELECT * FROM audit_log{where} ORDER BY timestamp DESC LIMIT ?"
        params.append(limit)

        rows = self._db.connection.execute(query, params).fetchall()
        events = []
        for row in rows:
            event = dict(row)
            raw = event.pop("metadata_json", None)
            event["metadata"] = json.loads(raw) if raw else {}
            events.append(event)
        return events

    def count_events(self, *, action: str | None = None) -> int:
        if action:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM audit_log WHERE action = ?", (action,)
            ).fetchone()
        else:
            row = self._db.connection.execute("SELECT COUNT(*) FROM audit_log").fetchone()
        return row[0]
