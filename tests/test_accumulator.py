"""
tests/test_accumulator.py — XP Accumulator
===========================================

Clamping, level-up detection, dimension routing and the accepted drift
between the stored total and the per-dimension counters.
"""

from __future__ import annotations

import itertools

import pytest

from rankwarden.constants import Dimension
from rankwarden.engine.accumulator import XpAccumulator
from rankwarden.engine.curve import LevelCurve
from rankwarden.engine.ledger import LedgerEntry


@pytest.fixture
def accumulator(store) -> XpAccumulator:
    return XpAccumulator(store, LevelCurve())


class TestApplyDelta:
    def test_text_delta_updates_total_and_text(self, accumulator, store):
        result = accumulator.apply_delta(1, 10, Dimension.TEXT, 15)
        assert (result.before_total, result.after_total) == (0, 15)
        assert store.entry(1, 10) == LedgerEntry(15, 15, 0)

    def test_voice_delta_updates_total_and_voice(self, accumulator, store):
        accumulator.apply_delta(1, 10, Dimension.VOICE, 5)
        assert store.entry(1, 10) == LedgerEntry(5, 0, 5)

    def test_no_dimension_touches_total_only(self, accumulator, store):
        accumulator.apply_delta(1, 10, None, 40)
        accumulator.apply_delta(1, 10, Dimension.TOTAL, 2)
        assert store.entry(1, 10) == LedgerEntry(42, 0, 0)

    def test_marks_store_dirty(self, accumulator, store):
        accumulator.apply_delta(1, 10, Dimension.TEXT, 1)
        assert store.dirty


class TestLevelUp:
    def test_crossing_first_threshold(self, accumulator, store):
        """99 + 15 = 114 >= threshold(1) = 100."""
        store.put_entry(1, 10, LedgerEntry(99, 99, 0))
        result = accumulator.apply_delta(1, 10, Dimension.TEXT, 15)
        assert result.leveled_up is True
        assert result.new_level == 1

    def test_no_level_up_inside_a_level(self, accumulator, store):
        store.put_entry(1, 10, LedgerEntry(100, 100, 0))
        result = accumulator.apply_delta(1, 10, Dimension.TEXT, 15)
        assert result.leveled_up is False
        assert result.new_level == 1

    def test_losing_a_level_is_not_a_level_up(self, accumulator, store):
        store.put_entry(1, 10, LedgerEntry(230, 230, 0))
        result = accumulator.apply_delta(1, 10, Dimension.TEXT, -200)
        assert result.leveled_up is False
        assert result.new_level == 0

    def test_multi_level_jump(self, accumulator):
        result = accumulator.apply_delta(1, 10, None, 400)
        assert result.leveled_up is True
        assert result.new_level == 3

    def test_matches_curve_definition(self, accumulator, store):
        curve = accumulator.curve
        for amount in (1, 14, 15, 99, 100, 126, 500):
            store.put_entry(1, 10, LedgerEntry(99, 0, 0))
            result = accumulator.apply_delta(1, 10, None, amount)
            expected = curve.level_for_xp(99 + amount) > curve.level_for_xp(99)
            assert result.leveled_up is expected


class TestClamping:
    def test_total_never_negative(self, accumulator, store):
        result = accumulator.apply_delta(1, 10, Dimension.TEXT, -50)
        assert result.after_total == 0
        assert store.entry(1, 10) == LedgerEntry(0, 0, 0)

    @pytest.mark.parametrize("order", list(itertools.permutations([30, -50, 20])))
    def test_zero_sum_sequence_ends_at_floor(self, accumulator, store, order):
        for amount in order:
            accumulator.apply_delta(1, 10, None, amount)
        assert store.entry(1, 10).total_xp >= 0

    def test_independent_clamping_allows_drift(self, accumulator, store):
        """Dimension and total clamp separately, so they may disagree."""
        store.put_entry(1, 10, LedgerEntry(100, 10, 90))
        accumulator.apply_delta(1, 10, Dimension.TEXT, -40)
        entry = store.entry(1, 10)
        assert entry.text_xp == 0
        assert entry.total_xp == 60
        assert entry.total_xp != entry.text_xp + entry.voice_xp
