"""Composite Scorer: two independent weighting schemes over normalized scores.

``health_synergy`` weighs the seven normalized metrics for live display.
``biosignature_quality`` weighs five weekly components for the stored weekly
aggregate. They share the Metric Normalizer but never a weight table:
changing either one alters the meaning of historical scores.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Callable, Mapping

from synergy.domains.health.domain_logic.bands import classify
from synergy.domains.health.domain_logic.metric_models import (
    CompositeScore,
    MetricKind,
    MissingValueDefaults,
    NormalizedMetricScore,
    ScoringConfigError,
)
from synergy.domains.health.domain_logic.missing_defaults import (
    BIOSIGNATURE_QUALITY_DEFAULTS,
    HEALTH_SYNERGY_DEFAULTS,
)
from synergy.domains.health.domain_logic.normalizer import finite_or_none, normalize_all

WEIGHT_TOLERANCE = 1e-9

HEALTH_SYNERGY_WEIGHTS: dict[MetricKind, float] = {
    MetricKind.GLUCOSE: 0.25,
    MetricKind.RECOVERY: 0.20,
    MetricKind.SLEEP: 0.15,
    MetricKind.AQI: 0.15,
    MetricKind.HEART_RATE: 0.10,
    MetricKind.ACTIVITY: 0.10,
    MetricKind.STRAIN: 0.05,
}

BIOSIGNATURE_QUALITY_WEIGHTS: dict[str, float] = {
    "energy": 0.20,
    "recovery": 0.25,
    "sleep_quality": 0.15,
    "readiness": 0.20,
    "metabolic": 0.20,
}


class ScoringScheme(str, Enum):
    HEALTH_SYNERGY = "health_synergy"
    BIOSIGNATURE_QUALITY = "biosignature_quality"


def validate_weights(name: str, weights: Mapping[object, float]) -> None:
    """Fail fast on a weight table that is negative or does not sum to 1."""
    if not weights:
        raise ScoringConfigError(f"{name}: weight table is empty")
    for key, weight in weights.items():
        if not math.isfinite(weight) or weight < 0:
            raise ScoringConfigError(f"{name}: invalid weight for {key!r}: {weight!r}")
    total = math.fsum(weights.values())
    if abs(total - 1.0) > WEIGHT_TOLERANCE:
        raise ScoringConfigError(f"{name}: weights sum to {total!r}, expected 1.0")


validate_weights(ScoringScheme.HEALTH_SYNERGY.value, HEALTH_SYNERGY_WEIGHTS)
validate_weights(ScoringScheme.BIOSIGNATURE_QUALITY.value, BIOSIGNATURE_QUALITY_WEIGHTS)
if set(HEALTH_SYNERGY_WEIGHTS) != set(MetricKind):
    raise ScoringConfigError("health_synergy weights must cover every metric kind")


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ties away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _to_score(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


def _as_float(entry: float | NormalizedMetricScore) -> float | None:
    if isinstance(entry, NormalizedMetricScore):
        entry = entry.score
    return finite_or_none(entry)


def health_synergy_score(
    normalized: Mapping[MetricKind | str, float | NormalizedMetricScore],
    defaults: MissingValueDefaults | None = None,
) -> int:
    """Weighted sum of normalized metric scores, rounded half-up to 0-100.

    Absent or non-finite entries fall back to the ``health_synergy``
    default table.
    """
    table = defaults or HEALTH_SYNERGY_DEFAULTS
    scores = {MetricKind.parse(k): _as_float(v) for k, v in normalized.items()}
    total = 0.0
    for kind, weight in HEALTH_SYNERGY_WEIGHTS.items():
        value = scores.get(kind)
        if value is None:
            value = table.get(kind, 0.0)
        total += weight * max(0.0, min(100.0, value))
    return _to_score(total)


def biosignature_quality_score(
    components: Mapping[str, float],
    defaults: MissingValueDefaults | None = None,
) -> int:
    """Weighted weekly quality score over energy/recovery/sleep/readiness/metabolic.

    An absent recovery component is derived from readiness and sleep quality;
    other absent components use the ``biosignature_quality`` default table.
    """
    table = defaults or BIOSIGNATURE_QUALITY_DEFAULTS
    resolved = resolve_quality_components(components, table)
    total = math.fsum(
        weight * resolved[name] for name, weight in BIOSIGNATURE_QUALITY_WEIGHTS.items()
    )
    return _to_score(total)


def resolve_quality_components(
    components: Mapping[str, float | None],
    defaults: MissingValueDefaults | None = None,
) -> dict[str, float]:
    """Fill absent weekly components, clamping every value to [0, 100]."""
    table = defaults or BIOSIGNATURE_QUALITY_DEFAULTS
    resolved: dict[str, float] = {}
    for name in ("energy", "sleep_quality", "readiness", "metabolic"):
        value = finite_or_none(components.get(name))
        if value is None:
            value = table.get(name, 0.0)
        resolved[name] = max(0.0, min(100.0, value))

    recovery = finite_or_none(components.get("recovery"))
    if recovery is None:
        recovery = (resolved["readiness"] + resolved["sleep_quality"]) / 2
    resolved["recovery"] = max(0.0, min(100.0, recovery))
    return resolved


SCHEME_FUNCTIONS: dict[ScoringScheme, Callable[..., int]] = {
    ScoringScheme.HEALTH_SYNERGY: health_synergy_score,
    ScoringScheme.BIOSIGNATURE_QUALITY: biosignature_quality_score,
}


def score_with(
    scheme: ScoringScheme | str,
    values: Mapping,
    defaults: MissingValueDefaults | None = None,
) -> int:
    """Score ``values`` with the named scheme.

    Raises:
        ValueError: If ``scheme`` is not a known scheme name.
    """
    return SCHEME_FUNCTIONS[ScoringScheme(scheme)](values, defaults)


def score_raw_metrics(
    raw_values: Mapping[MetricKind | str, object],
    defaults: MissingValueDefaults | None = None,
) -> CompositeScore:
    """Normalize raw readings, score them, and classify the result."""
    normalized = normalize_all(raw_values, defaults)
    score = score_with(ScoringScheme.HEALTH_SYNERGY, normalized, defaults)
    return CompositeScore(score=score, band=classify(score))
