"""Tests for the Metric Normalizer — piecewise 0-100 curves per metric."""

from __future__ import annotations

import math

import pytest

from synergy.domains.health.domain_logic.metric_models import (
    MetricKind,
    MissingValueDefaults,
    NormalizedMetricScore,
)
from synergy.domains.health.domain_logic.missing_defaults import (
    BIOSIGNATURE_QUALITY_DEFAULTS,
    HEALTH_SYNERGY_DEFAULTS,
)
from synergy.domains.health.domain_logic.normalizer import (
    METRIC_CURVES,
    finite_or_none,
    normalize,
    normalize_all,
    normalize_optional,
)


class TestOptimalBands:
    @pytest.mark.parametrize(
        "kind, value",
        [
            (MetricKind.GLUCOSE, 80),
            (MetricKind.GLUCOSE, 95),
            (MetricKind.GLUCOSE, 120),
            (MetricKind.ACTIVITY, 7),
            (MetricKind.ACTIVITY, 12),
            (MetricKind.RECOVERY, 70),
            (MetricKind.STRAIN, 11),
            (MetricKind.AQI, 0),
            (MetricKind.AQI, 50),
            (MetricKind.HEART_RATE, 60),
            (MetricKind.HEART_RATE, 80),
            (MetricKind.SLEEP, 8),
        ],
    )
    def test_optimal_band_scores_100(self, kind, value):
        assert normalize(kind, value) == 100.0

    def test_recovery_has_no_ceiling(self):
        assert normalize(MetricKind.RECOVERY, 100) == 100.0
        assert normalize(MetricKind.RECOVERY, 150) == 100.0

    def test_aqi_has_no_floor(self):
        assert normalize(MetricKind.AQI, -10) == 100.0


class TestTransitionZones:
    @pytest.mark.parametrize(
        "kind, value, expected",
        [
            (MetricKind.GLUCOSE, 70, 50.0),
            (MetricKind.GLUCOSE, 75, 75.0),
            (MetricKind.GLUCOSE, 150, 75.0),
            (MetricKind.GLUCOSE, 180, 50.0),
            (MetricKind.ACTIVITY, 5, 75.0),
            (MetricKind.ACTIVITY, 13.5, 75.0),
            (MetricKind.RECOVERY, 50, 60.0),
            (MetricKind.RECOVERY, 60, 80.0),
            (MetricKind.STRAIN, 16, 75.0),
            (MetricKind.AQI, 100, 50.0),
            (MetricKind.HEART_RATE, 55, 75.0),
            (MetricKind.HEART_RATE, 90, 75.0),
            (MetricKind.SLEEP, 6, 75.0),
            (MetricKind.SLEEP, 9.5, 75.0),
        ],
    )
    def test_linear_interpolation(self, kind, value, expected):
        assert normalize(kind, value) == pytest.approx(expected)


class TestFloorAndCeilingZones:
    @pytest.mark.parametrize(
        "kind, value, expected",
        [
            (MetricKind.GLUCOSE, 35, 25.0),
            (MetricKind.ACTIVITY, 0, 0.0),
            (MetricKind.RECOVERY, 25, 30.0),
            (MetricKind.HEART_RATE, 25, 25.0),
            (MetricKind.SLEEP, 3, 30.0),
        ],
    )
    def test_sub_floor_scaling(self, kind, value, expected):
        assert normalize(kind, value) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "kind, value, expected",
        [
            (MetricKind.GLUCOSE, 250, 30.0),
            (MetricKind.GLUCOSE, 300, 0.0),
            (MetricKind.ACTIVITY, 25, 0.0),
            (MetricKind.STRAIN, 21, 40.0),
            (MetricKind.HEART_RATE, 130, 40.0),
            (MetricKind.HEART_RATE, 150, 0.0),
            (MetricKind.SLEEP, 13, 25.0),
            (MetricKind.AQI, 150, 0.0),
            (MetricKind.AQI, 500, 0.0),
        ],
    )
    def test_super_ceiling_decay(self, kind, value, expected):
        assert normalize(kind, value) == pytest.approx(expected)

    def test_just_past_ceiling_never_jumps_back_up(self):
        # 200 mg/dL would be 80 on the raw decay line; it stays at the ceiling score.
        assert normalize(MetricKind.GLUCOSE, 200) == 50.0
        assert normalize(MetricKind.STRAIN, 19) == 50.0

    def test_extreme_values_are_bounded(self):
        for kind in MetricKind:
            for value in (-1e9, -1, 1e6, 1e12):
                score = normalize(kind, value)
                assert 0.0 <= score <= 100.0


class TestMonotonicity:
    @pytest.mark.parametrize("kind", list(MetricKind))
    def test_scores_never_increase_moving_away_from_optimal(self, kind):
        curve = METRIC_CURVES[kind]
        if curve.optimal_high is not None:
            values = [curve.optimal_high + step * 0.5 for step in range(0, 600)]
            scores = [normalize(kind, v) for v in values]
            assert all(a >= b for a, b in zip(scores, scores[1:]))
        if curve.optimal_low is not None:
            values = [curve.optimal_low - step * 0.25 for step in range(0, 600)]
            values = [v for v in values if v >= 0]
            scores = [normalize(kind, v) for v in values]
            assert all(a >= b for a, b in zip(scores, scores[1:]))


class TestMissingValues:
    @pytest.mark.parametrize("raw", [None, math.nan, math.inf, -math.inf, "abc", True])
    def test_missing_or_invalid_uses_health_synergy_default(self, raw):
        assert normalize(MetricKind.GLUCOSE, raw) == 70.0

    def test_numeric_strings_are_accepted(self):
        assert normalize(MetricKind.GLUCOSE, "95") == 100.0

    def test_consumer_table_controls_default(self):
        table = MissingValueDefaults("custom", {"glucose": 42.0})
        assert normalize(MetricKind.GLUCOSE, None, table) == 42.0

    def test_kind_missing_from_table_falls_back_to_zero(self):
        # The weekly table keys components, not metric kinds.
        assert normalize(MetricKind.AQI, None, BIOSIGNATURE_QUALITY_DEFAULTS) == 0.0

    def test_normalize_optional_returns_none_for_absent(self):
        assert normalize_optional(MetricKind.SLEEP, None) is None
        assert normalize_optional(MetricKind.SLEEP, math.nan) is None
        assert normalize_optional(MetricKind.SLEEP, 8) == 100.0

    def test_finite_or_none(self):
        assert finite_or_none(3) == 3.0
        assert finite_or_none("2.5") == 2.5
        assert finite_or_none(False) is None
        assert finite_or_none(float("nan")) is None


class TestMetricKinds:
    def test_camel_case_aliases(self):
        assert normalize("heartRate", 70) == 100.0
        assert normalize("sleepHours", 8) == 100.0
        assert MetricKind.parse("HEART_RATE") is MetricKind.HEART_RATE

    def test_unknown_kind_raises(self):
        with pytest.raises(ValueError, match="Unknown metric kind"):
            normalize("blood_pressure", 120)


class TestNormalizeAll:
    def test_covers_every_kind(self):
        result = normalize_all({"glucose": 95})
        assert set(result) == set(MetricKind)
        assert all(isinstance(v, NormalizedMetricScore) for v in result.values())

    def test_absent_metrics_get_defaults(self):
        result = normalize_all({"glucose": 95}, HEALTH_SYNERGY_DEFAULTS)
        assert result[MetricKind.GLUCOSE].score == 100.0
        assert result[MetricKind.SLEEP].score == 70.0
