"""Pattern Parameter Mapper: (score, band) -> biosignature visualization parameters.

Optimal renders as a bright, dense, synchronized concentric lattice;
Transitional as an offset lattice with moderate jitter; Poor as sparse,
slow, desaturated fractured clusters. Within each band the parameters are
interpolated linearly on the band-local position of the score.
"""

from __future__ import annotations

from typing import Any, Mapping

from synergy.domains.health.domain_logic.bands import classify
from synergy.domains.health.domain_logic.metric_models import (
    Band,
    MetricKind,
    MissingValueDefaults,
    PatternConfig,
)
from synergy.domains.health.domain_logic.scoring import score_raw_metrics


def _unit(value: float) -> float:
    return max(0.0, min(1.0, value))


def map_pattern(score: int, band: Band | None = None) -> PatternConfig:
    """Derive the visualization parameters for a composite score.

    ``band`` defaults to ``classify(score)``. Every numeric field is clamped
    to [0, 1].
    """
    band = band or classify(score)

    if band is Band.OPTIMAL:
        density = 0.85 + (score - 75) / 100
        symmetry = 0.95
        speed = 1.0
        color = 0.9 + (score - 75) / 250
        jitter = 0.05
    elif band is Band.TRANSITIONAL:
        t = (score - 40) / 35
        density = 0.5 + 0.35 * t
        symmetry = 0.6 + 0.35 * t
        speed = 0.7 + 0.3 * t
        color = 0.6 + 0.3 * t
        jitter = 0.3 - 0.25 * t
    else:
        t = score / 40
        density = 0.2 + 0.3 * t
        symmetry = 0.2 + 0.4 * t
        speed = 0.3 + 0.4 * t
        color = 0.3 + 0.3 * t
        jitter = 0.7 - 0.4 * t

    return PatternConfig(
        density=_unit(density),
        symmetry=_unit(symmetry),
        animation_speed=_unit(speed),
        color_intensity=_unit(color),
        jitter=_unit(jitter),
        band=band,
        score=score,
    )


def pattern_for_metrics(
    raw_values: Mapping[MetricKind | str, Any],
    defaults: MissingValueDefaults | None = None,
) -> PatternConfig:
    """Normalize, score, classify and map raw readings in one call."""
    composite = score_raw_metrics(raw_values, defaults)
    return map_pattern(composite.score, composite.band)


def ideal_pattern_config() -> PatternConfig:
    """Reference pattern shown as the target state."""
    return PatternConfig(
        density=1.0,
        symmetry=1.0,
        animation_speed=1.0,
        color_intensity=1.0,
        jitter=0.0,
        band=Band.OPTIMAL,
        score=100,
    )
