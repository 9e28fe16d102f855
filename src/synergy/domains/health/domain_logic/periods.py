"""Aggregate Period Calculator: Monday-start UTC week keys and per-week means."""

from __future__ import annotations

import statistics
from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable

from synergy.domains.health.domain_logic.metric_models import (
    AggregationPeriod,
    MetricKind,
    MetricSample,
)
from synergy.domains.health.domain_logic.normalizer import finite_or_none


def to_utc(value: datetime | date | str) -> datetime:
    """Coerce a date, datetime, or ISO 8601 string to an aware UTC datetime.

    Naive datetimes are taken to already be UTC.
    """
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        value = datetime.fromisoformat(text)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    raise TypeError(f"Expected date, datetime or ISO string, got {type(value).__name__}")


def iso_utc(value: datetime | date | str) -> str:
    """Fixed-width ISO 8601 UTC timestamp, safe to compare as a string."""
    return to_utc(value).isoformat(timespec="microseconds")


def _monday(value: datetime | date | str) -> date:
    day = to_utc(value).date()
    # weekday(): Monday=0 .. Sunday=6, so Sunday rolls back six days.
    return day - timedelta(days=day.weekday())


def week_start(value: datetime | date | str) -> str:
    """Return the Monday (YYYY-MM-DD) of the UTC week containing ``value``."""
    return _monday(value).isoformat()


def aggregation_period(value: datetime | date | str) -> AggregationPeriod:
    start = datetime.combine(_monday(value), time.min, tzinfo=timezone.utc)
    end = start + timedelta(days=7) - timedelta(microseconds=1)
    return AggregationPeriod(start=start, end=end)


def biosignature_id(user_id: str, value: datetime | date | str) -> str:
    """Document id for a user's weekly biosignature (same week -> same id)."""
    return f"{user_id}_{week_start(value)}"


def group_by_week(samples: Iterable[MetricSample]) -> dict[str, list[MetricSample]]:
    """Bucket samples by week key, preserving input order within a bucket."""
    buckets: dict[str, list[MetricSample]] = defaultdict(list)
    for sample in samples:
        buckets[week_start(sample.captured_at)].append(sample)
    return dict(buckets)


def aggregate_samples(samples: Iterable[MetricSample]) -> dict[MetricKind, float]:
    """Arithmetic mean per metric kind.

    Non-finite values are dropped first; a kind with no valid samples is
    left out of the result (absent), not reported as zero.
    """
    values: dict[MetricKind, list[float]] = defaultdict(list)
    for sample in samples:
        value = finite_or_none(sample.value)
        if value is not None:
            values[MetricKind.parse(sample.kind)].append(value)
    return {kind: statistics.fmean(vals) for kind, vals in values.items()}


def logged_entries(samples: Iterable[MetricSample]) -> int:
    """Number of entries carrying at least one finite sample.

    One entry's readings share a single ``captured_at``, so entries are
    counted as distinct capture timestamps.
    """
    return len({
        to_utc(s.captured_at)
        for s in samples
        if finite_or_none(s.value) is not None
    })
