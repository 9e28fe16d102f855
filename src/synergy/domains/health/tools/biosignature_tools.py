"""MCP tools for the biosignature data bank.

Recording entries, weekly biosignature calculation, snapshot history and
score trends. Registered only when encrypted storage is configured.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from synergy.core.storage.repository import BiosignatureRepository
    from synergy.domains.health.domain_logic.snapshot_service import SnapshotService
    from synergy.domains.health.domain_logic.trend_analyzer import ScoreTrendAnalyzer

from synergy.domains.health.domain_logic.periods import biosignature_id
from synergy.domains.health.tools.synergy_tools import collect_readings

logger = logging.getLogger(__name__)


def register_biosignature_tools(
    mcp: FastMCP,
    service: SnapshotService,
    repository: BiosignatureRepository,
    analyzer: ScoreTrendAnalyzer,
) -> None:
    """Register storage-backed biosignature tools on the MCP server."""

    @mcp.tool
    async def record_health_entry(
        ctx: Context,
        user_id: str,
        glucose: float | None = None,
        activity: float | None = None,
        recovery: float | None = None,
        strain: float | None = None,
        aqi: float | None = None,
        heart_rate: float | None = None,
        sleep: float | None = None,
        captured_at: str = "",
        health_notes: str = "",
        local_aqi: float | None = None,
    ) -> str:
        """Record a health entry and take a weekly snapshot when one is due.

        A snapshot is written at most once every 7 days and only when the
        week has a glucose reading.

        Args:
            user_id: Identifier of the person the readings belong to.
            glucose: Blood glucose in mg/dL.
            activity: Active hours.
            recovery: Recovery percentage.
            strain: Strain index.
            aqi: Air quality index measured with the entry.
            heart_rate: Resting heart rate in BPM.
            sleep: Sleep duration in hours.
            captured_at: When the readings were taken (ISO 8601). Defaults to now.
            health_notes: Optional free-text notes, encrypted at rest.
            local_aqi: Latest environmental AQI, used when the week has no AQI reading.
        """
        readings = collect_readings(
            glucose=glucose, activity=activity, recovery=recovery, strain=strain,
            aqi=aqi, heart_rate=heart_rate, sleep=sleep,
        )
        if not readings:
            return json.dumps({"status": "error", "message": "No readings provided"})

        try:
            decision = service.record_entry(
                user_id,
                readings,
                captured_at=captured_at or None,
                health_notes=health_notes or None,
                latest_env={"aqi": local_aqi} if local_aqi is not None else None,
            )
        except ValueError as exc:
            return json.dumps({"status": "error", "message": str(exc)})

        logger.info(
            "Entry recorded (%d sample(s)); snapshot %s",
            decision.samples_saved, decision.reason,
        )
        return json.dumps({"status": "saved", **decision.to_dict()})

    @mcp.tool
    async def weekly_biosignature(
        ctx: Context,
        user_id: str,
        reference_date: str = "",
    ) -> str:
        """Calculate the weekly biosignature-quality score.

        Needs readings on at least 3 days of the week (Monday to Sunday, UTC).
        Recalculating a week replaces its stored result.

        Args:
            user_id: Identifier of the person to score.
            reference_date: Any date inside the week (ISO 8601). Defaults to today.
        """
        try:
            result = service.calculate_week(user_id, reference_date or None)
        except ValueError as exc:
            return json.dumps({"status": "error", "message": str(exc)})
        return json.dumps(result.to_dict())

    @mcp.tool
    async def snapshot_history(
        ctx: Context,
        user_id: str,
        limit: int = 12,
    ) -> str:
        """List stored weekly snapshots, newest first.

        Args:
            user_id: Identifier of the person whose history to read.
            limit: Maximum snapshots to return (default: 12).
        """
        if limit <= 0:
            return json.dumps({"status": "error", "message": "limit must be positive"})
        snapshots = repository.get_snapshots(user_id, limit=limit)
        return json.dumps({
            "status": "ok",
            "count": len(snapshots),
            "snapshots": [s.to_dict() for s in snapshots],
        })

    @mcp.tool
    async def score_trend(
        ctx: Context,
        user_id: str,
        weeks: int = 12,
    ) -> str:
        """Analyze how the weekly biosignature score is moving over time.

        Requires at least 2 scored weeks for a direction. Also reports metrics
        moving in opposite directions across snapshots.

        Args:
            user_id: Identifier of the person to analyze.
            weeks: Number of most recent weeks to include (default: 12).
        """
        if weeks <= 0:
            return json.dumps({"status": "error", "message": "weeks must be positive"})

        trend = analyzer.compute_score_trend(user_id, limit=weeks)
        if trend.get("data_points", 0) < 2:
            return json.dumps({
                "status": "insufficient_data",
                "weeks_available": trend.get("data_points", 0),
                "message": (
                    "At least 2 weekly biosignatures are needed for trend analysis. "
                    "Log entries on 3 or more days a week to build history."
                ),
            })

        stored = repository.get_weekly_biosignature(
            biosignature_id(user_id, trend["latest_week"])
        )
        return json.dumps({
            "status": "ok",
            "score_trend": trend,
            "latest_insights": stored.insights if stored else [],
            "divergences": analyzer.detect_divergence_patterns(user_id, limit=weeks),
            "history": analyzer.get_snapshot_summary(user_id),
        })
