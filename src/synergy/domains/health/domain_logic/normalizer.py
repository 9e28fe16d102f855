"""Metric Normalizer: raw physiological/environmental values -> 0-100 scores.

Each metric has an optimal band scoring 100. Below the band the score falls
linearly to a floor score, then scales toward 0 below the floor. Above the
band it falls linearly to a ceiling score, then decays toward 0 past the
ceiling. All formulas are deterministic and every result is clamped to
[0, 100].
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Mapping

from synergy.domains.health.domain_logic.metric_models import (
    MetricKind,
    MissingValueDefaults,
    NormalizedMetricScore,
)
from synergy.domains.health.domain_logic.missing_defaults import HEALTH_SYNERGY_DEFAULTS


def _clamp(value: float, lo: float = 0.0, hi: float = 100.0) -> float:
    return max(lo, min(hi, value))


def finite_or_none(value: Any) -> float | None:
    """Coerce to a finite float, or None for missing/NaN/inf/non-numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


@dataclass(frozen=True)
class MetricCurve:
    """Piecewise-linear goodness curve for one metric.

    ``None`` for ``optimal_low`` / ``optimal_high`` leaves that side of the
    optimal band open. ``ceiling_span=None`` pins every value past the
    ceiling to ``ceiling_score``.
    """

    kind: MetricKind
    optimal_low: float | None
    optimal_high: float | None
    floor: float | None = None
    floor_score: float = 50.0
    ceiling: float | None = None
    ceiling_score: float = 50.0
    ceiling_span: float | None = None

    def score(self, value: float) -> float:
        if self.optimal_low is not None and value < self.optimal_low:
            return _clamp(self._below_optimal(value))
        if self.optimal_high is not None and value > self.optimal_high:
            return _clamp(self._above_optimal(value))
        return 100.0

    def _below_optimal(self, value: float) -> float:
        if self.floor is None:
            return 100.0
        if value < self.floor:
            return value / self.floor * self.floor_score
        span = self.optimal_low - self.floor
        return self.floor_score + (value - self.floor) / span * (100.0 - self.floor_score)

    def _above_optimal(self, value: float) -> float:
        if self.ceiling is None:
            return 100.0
        if value <= self.ceiling:
            span = self.ceiling - self.optimal_high
            return 100.0 - (value - self.optimal_high) / span * (100.0 - self.ceiling_score)
        if self.ceiling_span is None:
            return self.ceiling_score
        # Past the ceiling the decay never climbs back above the ceiling score.
        decay = 100.0 - (value - self.ceiling) / self.ceiling_span * 100.0
        return min(self.ceiling_score, decay)


METRIC_CURVES: dict[MetricKind, MetricCurve] = {
    MetricKind.GLUCOSE: MetricCurve(
        MetricKind.GLUCOSE, 80, 120, floor=70, ceiling=180, ceiling_span=100,
    ),
    MetricKind.ACTIVITY: MetricCurve(
        MetricKind.ACTIVITY, 7, 12, floor=3, ceiling=15, ceiling_span=10,
    ),
    # No ceiling: high recovery is never penalized.
    MetricKind.RECOVERY: MetricCurve(
        MetricKind.RECOVERY, 70, None, floor=50, floor_score=60,
    ),
    MetricKind.STRAIN: MetricCurve(
        MetricKind.STRAIN, 8, 14, floor=5, ceiling=18, ceiling_span=5,
    ),
    MetricKind.AQI: MetricCurve(
        MetricKind.AQI, None, 50, ceiling=150, ceiling_score=0.0,
    ),
    MetricKind.HEART_RATE: MetricCurve(
        MetricKind.HEART_RATE, 60, 80, floor=50, ceiling=100, ceiling_span=50,
    ),
    MetricKind.SLEEP: MetricCurve(
        MetricKind.SLEEP, 7, 9, floor=5, ceiling=10, ceiling_span=4,
    ),
}


@lru_cache(maxsize=4096)
def _score_finite(kind: MetricKind, value: float) -> float:
    return METRIC_CURVES[kind].score(value)


def normalize(
    kind: MetricKind | str,
    raw_value: Any,
    defaults: MissingValueDefaults | None = None,
) -> float:
    """Map a raw reading to a 0-100 goodness score.

    Missing or non-finite readings never propagate: they resolve to the
    consumer's neutral default (``health_synergy`` when not given).

    Raises:
        ValueError: If ``kind`` is not a known metric.
    """
    metric = MetricKind.parse(kind)
    value = finite_or_none(raw_value)
    if value is None:
        table = defaults or HEALTH_SYNERGY_DEFAULTS
        return _clamp(table.get(metric, 0.0))
    return _score_finite(metric, value)


def normalize_optional(kind: MetricKind | str, raw_value: Any) -> float | None:
    """Like :func:`normalize` but returns None for absent readings."""
    value = finite_or_none(raw_value)
    if value is None:
        return None
    return _score_finite(MetricKind.parse(kind), value)


def normalize_all(
    raw_values: Mapping[MetricKind | str, Any],
    defaults: MissingValueDefaults | None = None,
) -> dict[MetricKind, NormalizedMetricScore]:
    """Normalize every metric kind, filling absent ones from ``defaults``."""
    parsed: dict[MetricKind, Any] = {
        MetricKind.parse(key): value for key, value in raw_values.items()
    }
    return {
        kind: NormalizedMetricScore(kind, normalize(kind, parsed.get(kind), defaults))
        for kind in MetricKind
    }
