"""Weekly biosignature-quality calculation.

Groups one user's samples into the UTC week containing the reference date,
averages each metric, turns the averages into five weekly components via the
shared Metric Normalizer, and weighs them with the biosignature-quality
scheme. Weeks with fewer than ``MIN_ENTRIES_REQUIRED`` logged entries produce an
:class:`InsufficientData` result rather than a score.

Components:
    energy        <- normalized glucose (default 75)
    recovery      <- normalized recovery, else mean(readiness, sleep_quality)
    sleep_quality <- normalized sleep hours (default 70)
    readiness     <- normalized resting heart rate (default 70)
    metabolic     <- mean of normalized activity and strain (default 70)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from synergy.core.storage.models import WeeklyBiosignature
from synergy.domains.health.domain_logic.metric_models import (
    MetricKind,
    MetricSample,
    MissingValueDefaults,
)
from synergy.domains.health.domain_logic.normalizer import normalize_optional
from synergy.domains.health.domain_logic.periods import (
    aggregate_samples,
    aggregation_period,
    biosignature_id,
    iso_utc,
    logged_entries,
    to_utc,
)
from synergy.domains.health.domain_logic.scoring import (
    ScoringScheme,
    resolve_quality_components,
    score_with,
)

logger = logging.getLogger(__name__)

MIN_ENTRIES_REQUIRED = 3
MAX_INSIGHTS = 3


@dataclass(frozen=True)
class InsufficientData:
    """Too few logged entries in the week to produce a meaningful score."""

    week_start: str
    entry_count: int
    required_entries: int = MIN_ENTRIES_REQUIRED
    status: str = "insufficient_data"

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "week_start": self.week_start,
            "entry_count": self.entry_count,
            "required_entries": self.required_entries,
        }


def weekly_components(averages: dict[MetricKind, float]) -> dict[str, float | None]:
    """Map per-metric weekly means onto the five quality components."""
    metabolic_parts = [
        score
        for score in (
            normalize_optional(MetricKind.ACTIVITY, averages.get(MetricKind.ACTIVITY)),
            normalize_optional(MetricKind.STRAIN, averages.get(MetricKind.STRAIN)),
        )
        if score is not None
    ]
    return {
        "energy": normalize_optional(MetricKind.GLUCOSE, averages.get(MetricKind.GLUCOSE)),
        "recovery": normalize_optional(MetricKind.RECOVERY, averages.get(MetricKind.RECOVERY)),
        "sleep_quality": normalize_optional(MetricKind.SLEEP, averages.get(MetricKind.SLEEP)),
        "readiness": normalize_optional(
            MetricKind.HEART_RATE, averages.get(MetricKind.HEART_RATE)
        ),
        "metabolic": (
            sum(metabolic_parts) / len(metabolic_parts) if metabolic_parts else None
        ),
    }


def weekly_insights(averages: dict[MetricKind, float]) -> list[str]:
    """Rule-based observations about the week, at most three."""
    insights: list[str] = []

    sleep = averages.get(MetricKind.SLEEP)
    if sleep is not None:
        if sleep >= 8:
            insights.append(
                f"Your sleep quality is excellent at {sleep:.1f}h average. "
                "This supports optimal recovery."
            )
        elif sleep < 7:
            insights.append(
                f"Your sleep average of {sleep:.1f}h is below optimal. "
                "Aim for 7-9 hours for better recovery."
            )

    heart_rate = averages.get(MetricKind.HEART_RATE)
    if heart_rate is not None:
        verdict = (
            "Great recovery status!"
            if 60 <= heart_rate <= 80
            else "Consider rest days to improve."
        )
        insights.append(
            f"Your resting heart rate is averaging {round(heart_rate)} bpm. {verdict}"
        )

    glucose = averages.get(MetricKind.GLUCOSE)
    if glucose is not None and 80 <= glucose <= 120:
        insights.append(
            f"Your glucose is optimal at {round(glucose)} mg/dL. "
            "Energy levels should be stable."
        )

    if not insights:
        insights.append("Your biosignature is building momentum with consistent tracking.")
        insights.append("Keep logging sleep and recovery to unlock deeper insights.")

    return insights[:MAX_INSIGHTS]


def calculate_weekly_biosignature(
    user_id: str,
    samples: Iterable[MetricSample],
    reference: datetime | None = None,
    *,
    defaults: MissingValueDefaults | None = None,
) -> WeeklyBiosignature | InsufficientData:
    """Score the week containing ``reference`` (default: now, UTC).

    Samples outside that week are ignored, so callers may pass a wider
    history without pre-filtering.
    """
    reference = to_utc(reference or datetime.now(timezone.utc))
    period = aggregation_period(reference)
    in_week = [s for s in samples if period.contains(to_utc(s.captured_at))]

    entries = logged_entries(in_week)
    if entries < MIN_ENTRIES_REQUIRED:
        logger.info(
            "Week %s has %d logged entries; %d required", period.key, entries,
            MIN_ENTRIES_REQUIRED,
        )
        return InsufficientData(week_start=period.key, entry_count=entries)

    averages = aggregate_samples(in_week)
    components = resolve_quality_components(weekly_components(averages), defaults)
    score = score_with(ScoringScheme.BIOSIGNATURE_QUALITY, components, defaults)

    return WeeklyBiosignature(
        id=biosignature_id(user_id, reference),
        user_id=user_id,
        week_start=period.key,
        score=score,
        metrics={name: round(value, 2) for name, value in components.items()},
        insights=weekly_insights(averages),
        entry_count=entries,
        calculated_at=iso_utc(datetime.now(timezone.utc)),
    )
