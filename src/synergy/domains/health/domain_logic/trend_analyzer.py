"""Longitudinal trend analysis over stored weekly scores and snapshots.

Computes score direction and volatility across weeks, per-metric trends on
the normalized 0-100 scale, and metrics moving in opposite directions.
"""

from __future__ import annotations

import logging
import statistics
from typing import TYPE_CHECKING, Any

from synergy.domains.health.domain_logic.metric_models import MetricKind
from synergy.domains.health.domain_logic.normalizer import normalize_optional

if TYPE_CHECKING:
    from synergy.core.storage.repository import BiosignatureRepository

logger = logging.getLogger(__name__)

# Points on the 0-100 scale; smaller moves count as "stable".
DIRECTION_THRESHOLD = 3.0


def _direction(values: list[float]) -> str:
    """Trend direction for a newest-first series."""
    if len(values) >= 4:
        mid = len(values) // 2
        diff = statistics.mean(values[:mid]) - statistics.mean(values[mid:])
    elif len(values) >= 2:
        diff = values[0] - values[-1]
    else:
        return "insufficient_data"
    if diff > DIRECTION_THRESHOLD:
        return "improving"
    if diff < -DIRECTION_THRESHOLD:
        return "declining"
    return "stable"


def _summarize(values: list[float]) -> dict[str, Any]:
    mean_val = statistics.mean(values)
    std_val = statistics.stdev(values) if len(values) > 1 else 0.0
    # Coefficient of variation
    volatility = std_val / mean_val if mean_val > 0 else 0.0
    return {
        "current": round(values[0], 2),
        "mean": round(mean_val, 2),
        "median": round(statistics.median(values), 2),
        "min": round(min(values), 2),
        "max": round(max(values), 2),
        "std_dev": round(std_val, 2),
        "direction": _direction(values),
        "volatility": round(volatility, 4),
        "data_points": len(values),
    }


class ScoreTrendAnalyzer:
    """Computes trends from a user's stored biosignature history.

    Usage::

        analyzer = ScoreTrendAnalyzer(repository)
        trend = analyzer.compute_score_trend("user-1", limit=12)
        divergences = analyzer.detect_divergence_patterns("user-1")
    """

    def __init__(self, repository: BiosignatureRepository) -> None:
        self._repo = repository

    def compute_score_trend(self, user_id: str, *, limit: int = 12) -> dict[str, Any]:
        """Direction and volatility of the weekly biosignature-quality score.

        Returns:
            Dict with current, mean, median, min, max, std_dev, direction,
            volatility, data_points and the weeks covered.
        """
        history = self._repo.get_weekly_scores(user_id, limit=limit)
        if not history:
            return {"data_points": 0, "status": "no_data"}

        values = [float(score) for _, score in history]
        return {
            **_summarize(values),
            "latest_week": history[0][0],
            "oldest_week": history[-1][0],
        }

    def compute_metric_trend(
        self,
        user_id: str,
        metric: MetricKind | str,
        *,
        limit: int = 12,
    ) -> dict[str, Any]:
        """Trend of one metric's normalized score across snapshots.

        Snapshots where the metric was unknown are skipped rather than read
        as the 0 sentinel.
        """
        kind = MetricKind.parse(metric)
        values: list[float] = []
        for snapshot in self._repo.get_snapshots(user_id, limit=limit):
            if kind.value in snapshot.unknown_metrics:
                continue
            score = normalize_optional(kind, snapshot.metric_values()[kind.value])
            if score is not None:
                values.append(score)

        if not values:
            return {"metric": kind.value, "data_points": 0, "status": "no_data"}
        return {"metric": kind.value, **_summarize(values)}

    def detect_divergence_patterns(
        self,
        user_id: str,
        *,
        limit: int = 12,
    ) -> list[dict[str, Any]]:
        """Pairs of metrics where one is improving while the other declines."""
        trends = {}
        for kind in MetricKind:
            trend = self.compute_metric_trend(user_id, kind, limit=limit)
            if trend.get("data_points", 0) >= 2:
                trends[kind.value] = trend

        improving = [name for name, t in trends.items() if t["direction"] == "improving"]
        declining = [name for name, t in trends.items() if t["direction"] == "declining"]

        divergences = []
        for up in improving:
            for down in declining:
                divergences.append({
                    "improving_metric": up,
                    "declining_metric": down,
                    "improving_current": trends[up]["current"],
                    "declining_current": trends[down]["current"],
                    "description": (
                        f"{_display(up)} is improving while {_display(down)} is "
                        "declining; this divergence may deserve attention."
                    ),
                })
        return divergences

    def get_snapshot_summary(self, user_id: str) -> dict[str, Any]:
        """Summary of stored history for longitudinal context."""
        count = self._repo.count_snapshots(user_id)
        if count == 0:
            return {"snapshots_available": 0, "status": "no_history"}

        snapshots = self._repo.get_snapshots(user_id, limit=count)
        return {
            "snapshots_available": count,
            "latest_created_at": snapshots[0].created_at,
            "oldest_created_at": snapshots[-1].created_at,
            "weeks_scored": len(self._repo.get_weekly_scores(user_id, limit=count + 52)),
        }


def _display(metric: str) -> str:
    return metric.replace("_", " ").title()
