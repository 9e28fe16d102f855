"""Weekly Snapshot Gate: 7-day snapshot cadence and snapshot assembly.

The gate is monotonic and idempotent: once a snapshot exists, every call in
the following seven days answers "no". It holds no state of its own; the
caller supplies the latest snapshot timestamp read from storage.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Mapping

from synergy.core.storage.models import BiosignatureSnapshot
from synergy.domains.health.domain_logic.metric_models import (
    MetricKind,
    MissingValueDefaults,
)
from synergy.domains.health.domain_logic.missing_defaults import SNAPSHOT_DEFAULTS
from synergy.domains.health.domain_logic.normalizer import finite_or_none
from synergy.domains.health.domain_logic.periods import iso_utc, to_utc, week_start

SNAPSHOT_INTERVAL = timedelta(days=7)

PRIMARY_METRIC = MetricKind.GLUCOSE


def should_snapshot(
    latest: BiosignatureSnapshot | datetime | str | None,
    now: datetime,
) -> bool:
    """True iff there is no prior snapshot or it is strictly older than 7 days."""
    if latest is None:
        return True
    created_at = latest.created_at if isinstance(latest, BiosignatureSnapshot) else latest
    return to_utc(now) - to_utc(created_at) > SNAPSHOT_INTERVAL


def pattern_hash(glucose: float, now: datetime) -> str:
    """Display-level change marker: primary metric plus epoch milliseconds.

    Not a content hash; two snapshots with equal metrics still differ.
    """
    epoch_ms = int(to_utc(now).timestamp() * 1000)
    return f"{glucose:g}-{epoch_ms}"


def build_snapshot(
    aggregated: Mapping[MetricKind | str, Any],
    latest_env: Mapping[str, Any] | None,
    user_id: str,
    now: datetime,
    *,
    health_notes: str | None = None,
    raw_data: dict[str, Any] | None = None,
    defaults: MissingValueDefaults | None = None,
) -> BiosignatureSnapshot | None:
    """Assemble a snapshot, or return None when the primary metric is missing.

    A missing, zero or non-finite glucose value means there is no real
    reading to anchor the week, so nothing is written. Other absent metrics
    take the ``snapshot`` sentinel (0) and are listed in ``unknown_metrics``.
    AQI falls back to ``latest_env["aqi"]`` when the aggregate has none.
    """
    values = {MetricKind.parse(k): finite_or_none(v) for k, v in aggregated.items()}

    glucose = values.get(PRIMARY_METRIC)
    if not glucose:
        return None

    if values.get(MetricKind.AQI) is None and latest_env:
        values[MetricKind.AQI] = finite_or_none(latest_env.get("aqi"))

    table = defaults or SNAPSHOT_DEFAULTS
    resolved: dict[MetricKind, float] = {}
    unknown: list[str] = []
    for kind in MetricKind:
        value = values.get(kind)
        if value is None:
            value = table.get(kind, 0.0)
            unknown.append(kind.value)
        resolved[kind] = value

    stamp = to_utc(now)
    return BiosignatureSnapshot(
        user_id=user_id,
        glucose=resolved[MetricKind.GLUCOSE],
        activity=resolved[MetricKind.ACTIVITY],
        recovery=resolved[MetricKind.RECOVERY],
        strain=resolved[MetricKind.STRAIN],
        aqi=resolved[MetricKind.AQI],
        heart_rate=resolved[MetricKind.HEART_RATE],
        sleep=resolved[MetricKind.SLEEP],
        pattern_hash=pattern_hash(glucose, stamp),
        created_at=iso_utc(stamp),
        week_start=week_start(stamp),
        health_notes=health_notes or None,
        unknown_metrics=unknown,
        raw_data=raw_data,
    )
