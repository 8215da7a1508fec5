"""
rankwarden.engine.curve — Level Curve
======================================

Maps cumulative XP to a level and back.  Each level costs ``growth`` times
more than the previous one, so the cumulative threshold is a geometric
series::

    threshold(L) = ceil(base * (growth**L - 1) / (growth - 1))

With ``growth == 1`` the curve degenerates to ``ceil(base * L)``.

Thresholds are computed with :class:`fractions.Fraction` so the integer
boundary is exact; :meth:`LevelCurve.level_for_xp` uses a float log only as
a first guess and then corrects against the exact thresholds.
"""

from __future__ import annotations

import math
from fractions import Fraction

DEFAULT_BASE = 100
DEFAULT_GROWTH = 1.25


class LevelCurve:
    """Geometric XP curve.

    Parameters
    ----------
    base:
        XP needed for level 1.  Must be ``>= 1`` so that every level costs
        at least one XP and thresholds stay strictly increasing after
        rounding.
    growth:
        Per-level cost multiplier, ``>= 1``.
    """

    def __init__(self, base: float = DEFAULT_BASE, growth: float = DEFAULT_GROWTH) -> None:
        if base < 1:
            raise ValueError(f"level base must be >= 1, got {base!r}")
        if growth < 1:
            raise ValueError(f"level growth must be >= 1, got {growth!r}")
        # str() first so 1.25 becomes exactly 5/4, not the binary float
        self._base = Fraction(str(base))
        self._growth = Fraction(str(growth))
        self._thresholds: dict[int, int] = {0: 0}

    @property
    def base(self) -> Fraction:
        return self._base

    @property
    def growth(self) -> Fraction:
        return self._growth

    def xp_threshold(self, level: int) -> int:
        """Minimum cumulative XP required to reach *level*."""
        if level < 0:
            raise ValueError(f"level must be >= 0, got {level}")
        cached = self._thresholds.get(level)
        if cached is not None:
            return cached

        if self._growth == 1:
            value = math.ceil(self._base * level)
        else:
            value = math.ceil(
                self._base * (self._growth ** level - 1) / (self._growth - 1)
            )
        self._thresholds[level] = value
        return value

    def level_for_xp(self, xp: int) -> int:
        """Highest level whose threshold is ``<= xp``."""
        if xp <= 0:
            return 0

        base = float(self._base)
        if self._growth == 1:
            estimate = int(xp / base)
        else:
            growth = float(self._growth)
            estimate = int(math.log(xp * (growth - 1) / base + 1, growth))

        # Correction pass: the float estimate may be off by one either way
        level = max(0, estimate)
        while self.xp_threshold(level + 1) <= xp:
            level += 1
        while level > 0 and self.xp_threshold(level) > xp:
            level -= 1
        return level

    def xp_to_next(self, xp: int) -> int:
        """XP still missing before the next level."""
        level = self.level_for_xp(xp)
        return max(0, self.xp_threshold(level + 1) - max(0, xp))
