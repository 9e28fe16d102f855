"""Tests for the Weekly Snapshot Gate — cadence and snapshot assembly."""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

from synergy.core.storage.models import BiosignatureSnapshot
from synergy.domains.health.domain_logic.metric_models import MetricKind
from synergy.domains.health.domain_logic.snapshot_gate import (
    build_snapshot,
    pattern_hash,
    should_snapshot,
)

NOW = datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc)

FULL_AGGREGATE = {
    MetricKind.GLUCOSE: 95.0,
    MetricKind.ACTIVITY: 9.0,
    MetricKind.RECOVERY: 80.0,
    MetricKind.STRAIN: 11.0,
    MetricKind.AQI: 40.0,
    MetricKind.HEART_RATE: 70.0,
    MetricKind.SLEEP: 8.0,
}


class TestShouldSnapshot:
    def test_no_prior_snapshot(self):
        assert should_snapshot(None, NOW) is True

    def test_eight_days_old(self):
        assert should_snapshot(NOW - timedelta(days=8), NOW) is True

    def test_one_day_old(self):
        assert should_snapshot(NOW - timedelta(days=1), NOW) is False

    def test_exactly_seven_days_is_not_enough(self):
        assert should_snapshot(NOW - timedelta(days=7), NOW) is False

    def test_just_over_seven_days(self):
        assert should_snapshot(NOW - timedelta(days=7, milliseconds=1), NOW) is True

    def test_accepts_iso_string(self):
        assert should_snapshot("2026-02-20T12:00:00Z", NOW) is True

    def test_accepts_snapshot(self):
        latest = build_snapshot(FULL_AGGREGATE, None, "user-1", NOW - timedelta(days=2))
        assert should_snapshot(latest, NOW) is False

    def test_repeated_calls_agree(self):
        latest = NOW - timedelta(days=3)
        assert {should_snapshot(latest, NOW) for _ in range(5)} == {False}


class TestPatternHash:
    def test_format(self):
        epoch_ms = int(NOW.timestamp() * 1000)
        assert pattern_hash(95.0, NOW) == f"95-{epoch_ms}"

    def test_fractional_glucose(self):
        assert pattern_hash(95.5, NOW).startswith("95.5-")


class TestBuildSnapshot:
    def test_full_aggregate(self):
        snapshot = build_snapshot(FULL_AGGREGATE, None, "user-1", NOW, health_notes="fine")
        assert isinstance(snapshot, BiosignatureSnapshot)
        assert snapshot.user_id == "user-1"
        assert snapshot.glucose == 95.0
        assert snapshot.heart_rate == 70.0
        assert snapshot.unknown_metrics == []
        assert snapshot.health_notes == "fine"
        assert snapshot.week_start == "2026-03-02"
        assert snapshot.created_at == "2026-03-04T12:00:00.000000+00:00"

    def test_missing_glucose_is_a_no_op(self):
        aggregate = {k: v for k, v in FULL_AGGREGATE.items() if k is not MetricKind.GLUCOSE}
        assert build_snapshot(aggregate, None, "user-1", NOW) is None

    def test_zero_glucose_is_a_no_op(self):
        assert build_snapshot({**FULL_AGGREGATE, MetricKind.GLUCOSE: 0}, None, "u", NOW) is None

    def test_nan_glucose_is_a_no_op(self):
        aggregate = {**FULL_AGGREGATE, MetricKind.GLUCOSE: math.nan}
        assert build_snapshot(aggregate, None, "u", NOW) is None

    def test_absent_metrics_written_as_zero_and_listed(self):
        snapshot = build_snapshot({"glucose": 110, "sleep": 7}, None, "user-1", NOW)
        assert snapshot.glucose == 110
        assert snapshot.sleep == 7
        assert snapshot.recovery == 0.0
        assert snapshot.aqi == 0.0
        assert snapshot.unknown_metrics == [
            "activity", "recovery", "strain", "aqi", "heart_rate",
        ]

    def test_aqi_falls_back_to_latest_environment(self):
        aggregate = {k: v for k, v in FULL_AGGREGATE.items() if k is not MetricKind.AQI}
        snapshot = build_snapshot(aggregate, {"aqi": 62}, "user-1", NOW)
        assert snapshot.aqi == 62.0
        assert "aqi" not in snapshot.unknown_metrics

    def test_aggregate_aqi_wins_over_environment(self):
        snapshot = build_snapshot(FULL_AGGREGATE, {"aqi": 62}, "user-1", NOW)
        assert snapshot.aqi == 40.0

    def test_camel_case_keys(self):
        snapshot = build_snapshot({"glucose": 100, "heartRate": 64}, None, "u", NOW)
        assert snapshot.heart_rate == 64

    def test_empty_notes_become_none(self):
        snapshot = build_snapshot(FULL_AGGREGATE, None, "u", NOW, health_notes="")
        assert snapshot.health_notes is None
