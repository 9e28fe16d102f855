"""MCP tools for live health synergy scoring and biosignature patterns.

These tools are stateless: they normalize the readings passed in, score and
classify them, and derive the visualization parameters. Nothing is stored.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping

from fastmcp import Context, FastMCP

from synergy.domains.health.domain_logic.metric_models import MetricKind, MissingValueDefaults
from synergy.domains.health.domain_logic.missing_defaults import HEALTH_SYNERGY, get_defaults
from synergy.domains.health.domain_logic.normalizer import finite_or_none, normalize_all
from synergy.domains.health.domain_logic.pattern import ideal_pattern_config, map_pattern
from synergy.domains.health.domain_logic.scoring import score_raw_metrics

logger = logging.getLogger(__name__)


def collect_readings(**values: float | None) -> dict[str, float]:
    """Keep only the readings that were actually supplied."""
    return {name: value for name, value in values.items() if value is not None}


def score_payload(
    readings: Mapping[str, Any],
    defaults: MissingValueDefaults,
) -> dict[str, Any]:
    """Score, band, per-metric normalized scores and which metrics were missing."""
    composite = score_raw_metrics(readings, defaults)
    normalized = normalize_all(readings, defaults)
    missing = [
        kind.value
        for kind in MetricKind
        if finite_or_none(readings.get(kind.value)) is None
    ]
    return {
        "score": composite.score,
        "band": composite.band.value,
        "normalized": {
            kind.value: round(entry.score, 2) for kind, entry in normalized.items()
        },
        "defaulted_metrics": missing,
    }


def register_synergy_tools(
    mcp: FastMCP,
    default_tables: Mapping[str, MissingValueDefaults] | None = None,
) -> None:
    """Register the stateless scoring tools on the MCP server."""
    defaults = get_defaults(HEALTH_SYNERGY, dict(default_tables) if default_tables else None)

    @mcp.tool
    async def health_synergy_score(
        ctx: Context,
        glucose: float | None = None,
        activity: float | None = None,
        recovery: float | None = None,
        strain: float | None = None,
        aqi: float | None = None,
        heart_rate: float | None = None,
        sleep: float | None = None,
    ) -> str:
        """Compute the 0-100 health synergy score for a set of readings.

        Missing readings count as a neutral score so a partial set still
        produces a result.

        Args:
            glucose: Blood glucose in mg/dL.
            activity: Active hours.
            recovery: Recovery percentage.
            strain: Strain index.
            aqi: Local air quality index.
            heart_rate: Resting heart rate in BPM.
            sleep: Sleep duration in hours.
        """
        readings = collect_readings(
            glucose=glucose, activity=activity, recovery=recovery, strain=strain,
            aqi=aqi, heart_rate=heart_rate, sleep=sleep,
        )
        payload = score_payload(readings, defaults)
        logger.info(
            "Scored %d reading(s): %d (%s)",
            len(readings), payload["score"], payload["band"],
        )
        return json.dumps({"status": "ok", **payload})

    @mcp.tool
    async def biosignature_pattern(
        ctx: Context,
        glucose: float | None = None,
        activity: float | None = None,
        recovery: float | None = None,
        strain: float | None = None,
        aqi: float | None = None,
        heart_rate: float | None = None,
        sleep: float | None = None,
        score: int | None = None,
    ) -> str:
        """Derive the biosignature visualization parameters.

        Pass either raw readings or a precomputed ``score`` (0-100). The
        reference pattern for a perfect score is returned alongside.

        Args:
            glucose: Blood glucose in mg/dL.
            activity: Active hours.
            recovery: Recovery percentage.
            strain: Strain index.
            aqi: Local air quality index.
            heart_rate: Resting heart rate in BPM.
            sleep: Sleep duration in hours.
            score: Precomputed composite score; readings are ignored when set.
        """
        if score is not None:
            if not 0 <= score <= 100:
                return json.dumps({
                    "status": "error",
                    "message": "score must be between 0 and 100",
                })
            pattern = map_pattern(score)
        else:
            readings = collect_readings(
                glucose=glucose, activity=activity, recovery=recovery, strain=strain,
                aqi=aqi, heart_rate=heart_rate, sleep=sleep,
            )
            composite = score_raw_metrics(readings, defaults)
            pattern = map_pattern(composite.score, composite.band)

        return json.dumps({
            "status": "ok",
            "pattern": pattern.to_dict(),
            "ideal": ideal_pattern_config().to_dict(),
        })
