"""Tests for the ScoreTrendAnalyzer — longitudinal score and metric analysis."""

from __future__ import annotations

from synergy.core.storage.models import BiosignatureSnapshot, WeeklyBiosignature
from synergy.domains.health.domain_logic.trend_analyzer import ScoreTrendAnalyzer

WEEKS = ["2026-02-09", "2026-02-16", "2026-02-23", "2026-03-02"]


def _weekly(week: str, score: int) -> WeeklyBiosignature:
    return WeeklyBiosignature(
        id=f"user-1_{week}",
        user_id="user-1",
        week_start=week,
        score=score,
        metrics={},
        entry_count=3,
        calculated_at=f"{week}T12:00:00.000000+00:00",
    )


def _snapshot(week: str, **metrics) -> BiosignatureSnapshot:
    values = dict(
        glucose=95.0, activity=9.0, recovery=80.0, strain=11.0,
        aqi=40.0, heart_rate=70.0, sleep=8.0,
    )
    values.update(metrics)
    return BiosignatureSnapshot(
        user_id="user-1",
        pattern_hash="h",
        created_at=f"{week}T09:00:00.000000+00:00",
        week_start=week,
        **values,
    )


def _store_scores(repo, scores):
    for week, score in zip(WEEKS, scores):
        repo.upsert_weekly_biosignature(_weekly(week, score))


class TestComputeScoreTrend:
    def test_no_data(self, biosignature_repository):
        result = ScoreTrendAnalyzer(biosignature_repository).compute_score_trend("user-1")
        assert result == {"data_points": 0, "status": "no_data"}

    def test_single_week(self, biosignature_repository):
        _store_scores(biosignature_repository, [72])
        result = ScoreTrendAnalyzer(biosignature_repository).compute_score_trend("user-1")
        assert result["data_points"] == 1
        assert result["current"] == 72
        assert result["direction"] == "insufficient_data"

    def test_improving(self, biosignature_repository):
        _store_scores(biosignature_repository, [60, 65, 75, 80])
        result = ScoreTrendAnalyzer(biosignature_repository).compute_score_trend("user-1")
        assert result["direction"] == "improving"
        assert result["current"] == 80
        assert result["latest_week"] == "2026-03-02"
        assert result["oldest_week"] == "2026-02-09"
        assert result["min"] == 60
        assert result["max"] == 80

    def test_declining(self, biosignature_repository):
        _store_scores(biosignature_repository, [85, 80, 70, 62])
        result = ScoreTrendAnalyzer(biosignature_repository).compute_score_trend("user-1")
        assert result["direction"] == "declining"

    def test_small_moves_are_stable(self, biosignature_repository):
        _store_scores(biosignature_repository, [70, 72, 71, 72])
        result = ScoreTrendAnalyzer(biosignature_repository).compute_score_trend("user-1")
        assert result["direction"] == "stable"

    def test_two_points_compare_ends(self, biosignature_repository):
        _store_scores(biosignature_repository, [50, 70])
        result = ScoreTrendAnalyzer(biosignature_repository).compute_score_trend("user-1")
        assert result["direction"] == "improving"

    def test_volatility(self, biosignature_repository):
        _store_scores(biosignature_repository, [70, 70, 70, 70])
        result = ScoreTrendAnalyzer(biosignature_repository).compute_score_trend("user-1")
        assert result["volatility"] == 0.0
        assert result["std_dev"] == 0.0

    def test_limit(self, biosignature_repository):
        _store_scores(biosignature_repository, [60, 65, 75, 80])
        result = ScoreTrendAnalyzer(biosignature_repository).compute_score_trend("user-1", limit=2)
        assert result["data_points"] == 2
        assert result["oldest_week"] == "2026-02-23"


class TestMetricTrends:
    def _store(self, repo):
        glucose = [200.0, 160.0, 130.0, 100.0]
        heart_rate = [70.0, 80.0, 90.0, 95.0]
        for week, g, hr in zip(WEEKS, glucose, heart_rate):
            repo.save_snapshot(_snapshot(week, glucose=g, heart_rate=hr))

    def test_metric_trend_on_normalized_scale(self, biosignature_repository):
        self._store(biosignature_repository)
        analyzer = ScoreTrendAnalyzer(biosignature_repository)
        glucose = analyzer.compute_metric_trend("user-1", "glucose")
        assert glucose["direction"] == "improving"
        assert glucose["current"] == 100.0
        assert analyzer.compute_metric_trend("user-1", "heart_rate")["direction"] == "declining"
        assert analyzer.compute_metric_trend("user-1", "sleep")["direction"] == "stable"

    def test_unknown_metrics_are_skipped(self, biosignature_repository):
        biosignature_repository.save_snapshot(
            _snapshot(WEEKS[0], aqi=0.0, unknown_metrics=["aqi"])
        )
        result = ScoreTrendAnalyzer(biosignature_repository).compute_metric_trend("user-1", "aqi")
        assert result["status"] == "no_data"

    def test_divergence_detected(self, biosignature_repository):
        self._store(biosignature_repository)
        divergences = ScoreTrendAnalyzer(biosignature_repository).detect_divergence_patterns(
            "user-1"
        )
        assert len(divergences) == 1
        assert divergences[0]["improving_metric"] == "glucose"
        assert divergences[0]["declining_metric"] == "heart_rate"
        assert "Heart Rate is declining" in divergences[0]["description"]

    def test_no_divergence_without_history(self, biosignature_repository):
        analyzer = ScoreTrendAnalyzer(biosignature_repository)
        assert analyzer.detect_divergence_patterns("user-1") == []


class TestSnapshotSummary:
    def test_no_history(self, biosignature_repository):
        summary = ScoreTrendAnalyzer(biosignature_repository).get_snapshot_summary("user-1")
        assert summary == {"snapshots_available": 0, "status": "no_history"}

    def test_with_history(self, biosignature_repository):
        for week in WEEKS[:3]:
            biosignature_repository.save_snapshot(_snapshot(week))
        _store_scores(biosignature_repository, [60, 70])
        summary = ScoreTrendAnalyzer(biosignature_repository).get_snapshot_summary("user-1")
        assert summary["snapshots_available"] == 3
        assert summary["latest_created_at"].startswith("2026-02-23")
        assert summary["oldest_created_at"].startswith("2026-02-09")
        assert summary["weeks_scored"] == 2
