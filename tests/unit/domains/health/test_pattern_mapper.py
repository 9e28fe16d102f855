"""Tests for the Pattern Parameter Mapper."""

from __future__ import annotations

import pytest

from synergy.domains.health.domain_logic.metric_models import Band
from synergy.domains.health.domain_logic.pattern import (
    ideal_pattern_config,
    map_pattern,
    pattern_for_metrics,
)

_FIELDS = ("density", "symmetry", "animation_speed", "color_intensity", "jitter")


class TestMapPattern:
    def test_fields_within_unit_interval(self):
        for score in range(101):
            pattern = map_pattern(score)
            for name in _FIELDS:
                assert 0.0 <= getattr(pattern, name) <= 1.0, (score, name)

    def test_band_defaults_to_classification(self):
        assert map_pattern(80).band is Band.OPTIMAL
        assert map_pattern(50).band is Band.TRANSITIONAL
        assert map_pattern(10).band is Band.POOR

    def test_optimal_band(self):
        pattern = map_pattern(75)
        assert pattern.density == pytest.approx(0.85)
        assert pattern.symmetry == 0.95
        assert pattern.animation_speed == 1.0
        assert pattern.color_intensity == pytest.approx(0.9)
        assert pattern.jitter == 0.05

    def test_optimal_density_clamped(self):
        pattern = map_pattern(100)
        assert pattern.density == 1.0
        assert pattern.color_intensity == pytest.approx(1.0)

    def test_transitional_endpoints(self):
        low = map_pattern(40)
        assert low.density == pytest.approx(0.5)
        assert low.symmetry == pytest.approx(0.6)
        assert low.animation_speed == pytest.approx(0.7)
        assert low.color_intensity == pytest.approx(0.6)
        assert low.jitter == pytest.approx(0.3)

        high = map_pattern(74)
        t = 34 / 35
        assert high.density == pytest.approx(0.5 + 0.35 * t)
        assert high.jitter == pytest.approx(0.3 - 0.25 * t)

    def test_poor_band(self):
        zero = map_pattern(0)
        assert zero.density == pytest.approx(0.2)
        assert zero.jitter == pytest.approx(0.7)

        twenty = map_pattern(20)
        assert twenty.symmetry == pytest.approx(0.4)
        assert twenty.animation_speed == pytest.approx(0.5)
        assert twenty.color_intensity == pytest.approx(0.45)

    def test_jitter_decreases_with_health(self):
        jitters = [map_pattern(score).jitter for score in (0, 20, 39, 40, 60, 74, 75, 100)]
        assert jitters == sorted(jitters, reverse=True)

    def test_explicit_band_is_respected(self):
        pattern = map_pattern(80, Band.TRANSITIONAL)
        assert pattern.band is Band.TRANSITIONAL
        assert 0.0 <= pattern.density <= 1.0

    def test_to_dict(self):
        data = map_pattern(50).to_dict()
        assert data["band"] == "transitional"
        assert data["score"] == 50
        assert set(_FIELDS) <= set(data)


class TestEndToEnd:
    def test_optimal_readings(self):
        pattern = pattern_for_metrics({
            "glucose": 95, "recovery": 80, "sleep": 8, "aqi": 40,
            "heart_rate": 70, "activity": 9, "strain": 11,
        })
        assert pattern.score == 100
        assert pattern.band is Band.OPTIMAL
        assert 0.85 <= pattern.density <= 1.0

    def test_worst_readings(self):
        pattern = pattern_for_metrics({
            "glucose": 250, "recovery": 0, "sleep": 0, "aqi": 300,
            "heart_rate": 150, "activity": 0, "strain": 25,
        })
        assert pattern.band is Band.POOR
        assert pattern.score < 10
        assert pattern.jitter == pytest.approx(0.62)

    def test_ideal_pattern(self):
        ideal = ideal_pattern_config()
        assert ideal.score == 100
        assert ideal.jitter == 0.0
        assert ideal.band is Band.OPTIMAL
