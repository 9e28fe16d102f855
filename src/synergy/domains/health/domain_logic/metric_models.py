"""Metric kinds, bands, and result types for the health synergy engine."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping


class ScoringConfigError(Exception):
    """Raised when a weight, threshold, or default table is malformed."""


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class MetricKind(str, Enum):
    """The seven biometric/environmental signals the engine understands."""

    GLUCOSE = "glucose"          # mg/dL
    ACTIVITY = "activity"        # hours
    RECOVERY = "recovery"        # percent
    STRAIN = "strain"            # strain index
    AQI = "aqi"                  # air quality index
    HEART_RATE = "heart_rate"    # resting bpm
    SLEEP = "sleep"              # hours

    @classmethod
    def parse(cls, value: MetricKind | str) -> MetricKind:
        """Accept an enum member, its value, or a camelCase alias."""
        if isinstance(value, cls):
            return value
        key = str(value).strip()
        try:
            return cls(key.lower())
        except ValueError:
            alias = _METRIC_ALIASES.get(key)
            if alias is None:
                raise ValueError(f"Unknown metric kind: {value!r}") from None
            return alias


_METRIC_ALIASES: dict[str, MetricKind] = {
    "heartRate": MetricKind.HEART_RATE,
    "sleepHours": MetricKind.SLEEP,
    "glucoseFasting": MetricKind.GLUCOSE,
    "recoveryScore": MetricKind.RECOVERY,
}


class Band(str, Enum):
    """Coarse health classification, ordered best to worst."""

    OPTIMAL = "optimal"
    TRANSITIONAL = "transitional"
    POOR = "poor"

    @property
    def rank(self) -> int:
        """0 for the best band, increasing as health worsens."""
        return list(Band).index(self)


# ---------------------------------------------------------------------------
# Missing-value defaults (one table per consumer)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MissingValueDefaults:
    """Neutral values substituted for absent inputs, scoped to one consumer.

    ``health_synergy`` and ``biosignature_quality`` hold 0-100 scores;
    ``snapshot`` holds raw-value sentinels. Every entry must be a finite
    number in [0, 100].
    """

    consumer: str
    values: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.consumer:
            raise ScoringConfigError("Default table needs a consumer name")
        for key, value in self.values.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ScoringConfigError(
                    f"{self.consumer}: default for {key!r} is not a number: {value!r}"
                )
            if not math.isfinite(value) or not 0 <= value <= 100:
                raise ScoringConfigError(
                    f"{self.consumer}: default for {key!r} must be in [0, 100], got {value!r}"
                )

    def get(self, key: MetricKind | str, fallback: float | None = None) -> float | None:
        name = key.value if isinstance(key, MetricKind) else key
        return self.values.get(name, fallback)

    def with_overrides(self, overrides: Mapping[str, float]) -> MissingValueDefaults:
        return MissingValueDefaults(self.consumer, {**self.values, **overrides})


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MetricSample:
    """One reading of a metric at a point in time."""

    kind: MetricKind
    value: float
    captured_at: datetime


@dataclass(frozen=True)
class AggregationPeriod:
    """Monday 00:00 UTC through the following Sunday 23:59:59.999999 UTC."""

    start: datetime
    end: datetime

    @property
    def key(self) -> str:
        return self.start.date().isoformat()

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass(frozen=True)
class NormalizedMetricScore:
    kind: MetricKind
    score: float


@dataclass(frozen=True)
class CompositeScore:
    score: int
    band: Band


@dataclass(frozen=True)
class PatternConfig:
    """Visualization parameters derived from a composite score.

    Display-only: recomputed on every render, never persisted.
    """

    density: float
    symmetry: float
    animation_speed: float
    color_intensity: float
    jitter: float
    band: Band
    score: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "density": round(self.density, 4),
            "symmetry": round(self.symmetry, 4),
            "animation_speed": round(self.animation_speed, 4),
            "color_intensity": round(self.color_intensity, 4),
            "jitter": round(self.jitter, 4),
            "band": self.band.value,
            "score": self.score,
        }
