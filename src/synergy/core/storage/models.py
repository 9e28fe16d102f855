"""Data models for the biosignature persistence layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class BiosignatureSnapshot:
    """A persisted point-in-time record of a user's raw metrics.

    Append-only: written at most once per 7-day window and never updated.
    Absent sub-metrics are stored as ``0`` and named in ``unknown_metrics``.
    Free-text notes and the raw pass-through are encrypted at rest.
    """

    user_id: str
    glucose: float
    activity: float
    recovery: float
    strain: float
    aqi: float
    heart_rate: float
    sleep: float
    pattern_hash: str
    created_at: str  # ISO 8601, UTC
    week_start: str  # YYYY-MM-DD, storage idempotency key
    health_notes: str | None = None
    unknown_metrics: list[str] = field(default_factory=list)
    raw_data: dict[str, Any] | None = None
    id: str = ""

    def metric_values(self) -> dict[str, float]:
        return {
            "glucose": self.glucose,
            "activity": self.activity,
            "recovery": self.recovery,
            "strain": self.strain,
            "aqi": self.aqi,
            "heart_rate": self.heart_rate,
            "sleep": self.sleep,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            **self.metric_values(),
            "pattern_hash": self.pattern_hash,
            "health_notes": self.health_notes,
            "unknown_metrics": list(self.unknown_metrics),
            "week_start": self.week_start,
            "created_at": self.created_at,
        }


@dataclass
class WeeklyBiosignature:
    """Weekly biosignature-quality result, one per user per week.

    ``id`` is ``f"{user_id}_{week_start}"`` so recomputing a week overwrites
    the stored row instead of adding another.
    """

    id: str
    user_id: str
    week_start: str
    score: int
    metrics: dict[str, float]
    insights: list[str] = field(default_factory=list)
    entry_count: int = 0
    calculated_at: str = ""
    status: str = "success"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "id": self.id,
            "user_id": self.user_id,
            "week_start": self.week_start,
            "score": self.score,
            "metrics": dict(self.metrics),
            "insights": list(self.insights),
            "entry_count": self.entry_count,
            "calculated_at": self.calculated_at,
        }


@dataclass
class StoredMetricSample:
    """A raw metric reading as stored in the data bank."""

    id: str
    user_id: str
    metric: str
    value: float
    captured_at: str
    source: str = "manual"
    created_at: str = ""
