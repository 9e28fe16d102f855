"""Per-user write path: record readings, run the 7-day gate, persist history.

Each entry is stored as raw samples first. The samples of the week the entry
was captured in are then averaged and, if the gate allows, turned into an
append-only snapshot. Every decision is written to the audit log with hashed
identifiers only.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Mapping

from synergy.core.storage.models import BiosignatureSnapshot, WeeklyBiosignature
from synergy.domains.health.domain_logic.metric_models import (
    MetricKind,
    MetricSample,
    MissingValueDefaults,
)
from synergy.domains.health.domain_logic.missing_defaults import (
    BIOSIGNATURE_QUALITY,
    SNAPSHOT,
    get_defaults,
)
from synergy.domains.health.domain_logic.periods import (
    aggregate_samples,
    aggregation_period,
    to_utc,
)
from synergy.domains.health.domain_logic.snapshot_gate import (
    build_snapshot,
    should_snapshot,
)
from synergy.domains.health.domain_logic.weekly import (
    InsufficientData,
    calculate_weekly_biosignature,
)

if TYPE_CHECKING:
    from synergy.core.audit.logger import AuditLogger
    from synergy.core.storage.repository import BiosignatureRepository

logger = logging.getLogger(__name__)

REASON_CREATED = "created"
REASON_WITHIN_INTERVAL = "within_interval"
REASON_MISSING_PRIMARY = "missing_primary_metric"
REASON_DUPLICATE_WEEK = "duplicate_week"


@dataclass(frozen=True)
class SnapshotDecision:
    """Outcome of one :meth:`SnapshotService.record_entry` call."""

    created: bool
    reason: str
    snapshot: BiosignatureSnapshot | None = None
    samples_saved: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "snapshot_created": self.created,
            "reason": self.reason,
            "samples_saved": self.samples_saved,
            "snapshot": self.snapshot.to_dict() if self.snapshot else None,
        }


def parse_readings(readings: Mapping[str, Any]) -> dict[MetricKind, Any]:
    """Key readings by metric kind, dropping ``None`` values.

    Raises:
        ValueError: If a key is not a known metric.
    """
    return {
        MetricKind.parse(name): value
        for name, value in readings.items()
        if value is not None
    }


class SnapshotService:
    """Records entries and maintains a user's weekly history.

    Usage::

        service = SnapshotService(repository, audit_logger)
        decision = service.record_entry("user-1", {"glucose": 95, "sleep": 7.5})
        weekly = service.calculate_week("user-1")
    """

    def __init__(
        self,
        repository: BiosignatureRepository,
        audit_logger: AuditLogger | None = None,
        *,
        default_tables: Mapping[str, MissingValueDefaults] | None = None,
    ) -> None:
        self._repo = repository
        self._audit = audit_logger
        tables = dict(default_tables) if default_tables is not None else None
        self._snapshot_defaults = get_defaults(SNAPSHOT, tables)
        self._quality_defaults = get_defaults(BIOSIGNATURE_QUALITY, tables)

    def record_entry(
        self,
        user_id: str,
        readings: Mapping[str, Any],
        *,
        captured_at: datetime | str | None = None,
        health_notes: str | None = None,
        latest_env: Mapping[str, Any] | None = None,
        raw_data: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> SnapshotDecision:
        """Store the readings and write a snapshot if the 7-day gate is open.

        Raises:
            ValueError: If ``user_id`` is empty or a reading names an unknown metric.
        """
        if not user_id:
            raise ValueError("user_id is required")
        start = time.perf_counter()
        now = to_utc(now or datetime.now(timezone.utc))
        stamp = to_utc(captured_at) if captured_at is not None else now

        parsed = parse_readings(readings)
        saved = self._repo.save_samples(
            user_id,
            (MetricSample(kind, value, stamp) for kind, value in parsed.items()),
        )

        latest = self._repo.get_latest_snapshot(user_id)
        if not should_snapshot(latest, now):
            return self._decide(
                user_id, readings, start, created=False,
                reason=REASON_WITHIN_INTERVAL, samples_saved=saved,
            )

        # Aggregate the week the entry was captured in; it may be backfilled.
        period = aggregation_period(stamp)
        aggregated = aggregate_samples(
            self._repo.get_samples(user_id, since=period.start, until=period.end)
        )
        snapshot = build_snapshot(
            aggregated,
            latest_env,
            user_id,
            now,
            health_notes=health_notes,
            raw_data=raw_data,
            defaults=self._snapshot_defaults,
        )
        if snapshot is None:
            logger.info("No glucose reading this week; snapshot skipped")
            return self._decide(
                user_id, readings, start, created=False,
                reason=REASON_MISSING_PRIMARY, samples_saved=saved,
            )

        if self._repo.save_snapshot(snapshot) is None:
            return self._decide(
                user_id, readings, start, created=False,
                reason=REASON_DUPLICATE_WEEK, samples_saved=saved,
            )

        return self._decide(
            user_id, readings, start, created=True,
            reason=REASON_CREATED, samples_saved=saved, snapshot=snapshot,
        )

    def _decide(
        self,
        user_id: str,
        readings: Mapping[str, Any],
        start: float,
        *,
        created: bool,
        reason: str,
        samples_saved: int,
        snapshot: BiosignatureSnapshot | None = None,
    ) -> SnapshotDecision:
        if self._audit is not None:
            self._audit.log_snapshot_decision(
                user_id,
                created=created,
                reason=reason,
                readings=dict(readings),
                snapshot_id=snapshot.id if snapshot else None,
                duration_ms=(time.perf_counter() - start) * 1000,
                metadata={"samples_saved": samples_saved},
            )
        return SnapshotDecision(
            created=created,
            reason=reason,
            snapshot=snapshot,
            samples_saved=samples_saved,
        )

    def calculate_week(
        self,
        user_id: str,
        reference: datetime | str | None = None,
    ) -> WeeklyBiosignature | InsufficientData:
        """Score the week containing ``reference`` from stored samples.

        A successful result overwrites any earlier result for the same week.
        """
        start = time.perf_counter()
        reference_dt = to_utc(reference or datetime.now(timezone.utc))
        period = aggregation_period(reference_dt)
        samples = self._repo.get_samples(user_id, since=period.start, until=period.end)

        result = calculate_weekly_biosignature(
            user_id, samples, reference_dt, defaults=self._quality_defaults
        )
        if isinstance(result, WeeklyBiosignature):
            self._repo.upsert_weekly_biosignature(result)

        if self._audit is not None:
            self._audit.log_weekly_calculation(
                user_id,
                week_start=result.week_start,
                status=result.status,
                entry_count=result.entry_count,
                score=getattr(result, "score", None),
                duration_ms=(time.perf_counter() - start) * 1000,
            )
        return result
