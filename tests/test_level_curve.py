"""
tests/test_level_curve.py — Level Curve
========================================

Thresholds are exact, strictly increasing, and ``level_for_xp`` is the
inverse the rest of the engine relies on.
"""

from __future__ import annotations

import pytest

from rankwarden.engine.curve import LevelCurve


class TestThresholds:
    def test_level_zero_is_free(self):
        assert LevelCurve().xp_threshold(0) == 0

    def test_default_curve_values(self):
        """base=100, growth=1.25 → 100, 225, 382 (381.25 rounded up), 577."""
        curve = LevelCurve()
        assert [curve.xp_threshold(n) for n in range(1, 5)] == [100, 225, 382, 577]

    def test_strictly_increasing(self):
        curve = LevelCurve()
        values = [curve.xp_threshold(n) for n in range(0, 80)]
        assert all(b > a for a, b in zip(values, values[1:]))

    def test_linear_when_growth_is_one(self):
        curve = LevelCurve(base=50, growth=1)
        assert [curve.xp_threshold(n) for n in range(4)] == [0, 50, 100, 150]

    def test_negative_level_rejected(self):
        with pytest.raises(ValueError):
            LevelCurve().xp_threshold(-1)


class TestValidation:
    def test_base_below_one_rejected(self):
        with pytest.raises(ValueError):
            LevelCurve(base=0.5)

    def test_growth_below_one_rejected(self):
        with pytest.raises(ValueError):
            LevelCurve(growth=0.9)


class TestLevelForXp:
    def test_non_positive_xp_is_level_zero(self):
        curve = LevelCurve()
        assert curve.level_for_xp(0) == 0
        assert curve.level_for_xp(-40) == 0

    def test_boundaries(self):
        curve = LevelCurve()
        assert curve.level_for_xp(99) == 0
        assert curve.level_for_xp(100) == 1
        assert curve.level_for_xp(224) == 1
        assert curve.level_for_xp(225) == 2
        assert curve.level_for_xp(381) == 2
        assert curve.level_for_xp(382) == 3

    def test_inverse_of_threshold(self):
        """threshold(level(xp)) <= xp < threshold(level(xp) + 1)."""
        curve = LevelCurve()
        for xp in list(range(0, 3000, 7)) + [10**6, 10**9]:
            level = curve.level_for_xp(xp)
            assert curve.xp_threshold(level) <= xp
            assert xp < curve.xp_threshold(level + 1)

    def test_monotonic(self):
        curve = LevelCurve(base=37, growth=1.7)
        levels = [curve.level_for_xp(xp) for xp in range(0, 5000, 3)]
        assert levels == sorted(levels)

    def test_linear_curve(self):
        curve = LevelCurve(base=10, growth=1)
        assert curve.level_for_xp(9) == 0
        assert curve.level_for_xp(10) == 1
        assert curve.level_for_xp(105) == 10


class TestXpToNext:
    def test_from_zero(self):
        assert LevelCurve().xp_to_next(0) == 100

    def test_mid_level(self):
        assert LevelCurve().xp_to_next(114) == 225 - 114

    def test_exactly_on_threshold(self):
        assert LevelCurve().xp_to_next(225) == 382 - 225
