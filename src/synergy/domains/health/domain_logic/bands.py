"""Band Classifier: composite score -> Optimal / Transitional / Poor."""

from __future__ import annotations

from synergy.domains.health.domain_logic.metric_models import Band, ScoringConfigError

# Lower bound (inclusive) of each band, best band first.
BAND_THRESHOLDS: tuple[tuple[Band, int], ...] = (
    (Band.OPTIMAL, 75),
    (Band.TRANSITIONAL, 40),
    (Band.POOR, 0),
)


def _validate_thresholds(thresholds: tuple[tuple[Band, int], ...]) -> None:
    bands = [band for band, _ in thresholds]
    if bands != list(Band):
        raise ScoringConfigError(f"Thresholds must cover bands in order {list(Band)}")
    bounds = [bound for _, bound in thresholds]
    if bounds[-1] != 0:
        raise ScoringConfigError("The lowest band must start at 0")
    if any(hi <= lo for hi, lo in zip(bounds, bounds[1:])):
        raise ScoringConfigError(f"Band thresholds must strictly decrease: {bounds}")
    if bounds[0] > 100:
        raise ScoringConfigError("Band thresholds must lie within [0, 100]")


_validate_thresholds(BAND_THRESHOLDS)


def classify(score: float) -> Band:
    """Map a 0-100 composite score to its band.

    Total over the number line: anything below 0 is Poor, anything above 100
    is Optimal. No hysteresis.
    """
    for band, lower in BAND_THRESHOLDS:
        if score >= lower:
            return band
    return Band.POOR
