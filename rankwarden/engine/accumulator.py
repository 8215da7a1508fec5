"""
rankwarden.engine.accumulator — XP Delta Application
=====================================================

Applies an XP delta to one member's ledger entry and reports whether a
level boundary was crossed.  No Discord I/O: announcing a level-up is the
caller's job.

The total and the dimension counter are clamped to ``>= 0``
**independently**.  A negative admin delta larger than a dimension counter
therefore lets ``total_xp`` and ``text_xp + voice_xp`` drift apart; that is
accepted behaviour, not something this module corrects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from rankwarden.constants import Dimension
from rankwarden.engine.curve import LevelCurve
from rankwarden.engine.ledger import LedgerStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DeltaResult:
    """Outcome of a single :meth:`XpAccumulator.apply_delta` call."""

    before_total: int
    after_total: int
    leveled_up: bool
    new_level: int


class XpAccumulator:
    """Applies deltas to the ledger and checks them against the level curve."""

    def __init__(self, store: LedgerStore, curve: LevelCurve) -> None:
        self.store = store
        self.curve = curve

    def apply_delta(
        self,
        guild_id: int,
        member_id: int,
        dimension: Dimension | None,
        amount: int,
    ) -> DeltaResult:
        """Add *amount* to the member's total and, if given, to *dimension*.

        ``Dimension.TOTAL`` and ``None`` both touch the total only.
        """
        entry = self.store.entry(guild_id, member_id)
        before = entry.total_xp

        entry.total_xp = max(0, before + amount)
        if dimension is Dimension.TEXT:
            entry.text_xp = max(0, entry.text_xp + amount)
        elif dimension is Dimension.VOICE:
            entry.voice_xp = max(0, entry.voice_xp + amount)

        self.store.put_entry(guild_id, member_id, entry)

        level_before = self.curve.level_for_xp(before)
        level_after = self.curve.level_for_xp(entry.total_xp)
        if level_after > level_before:
            logger.info(
                "Member %s in guild %s reached level %d (%d → %d XP)",
                member_id, guild_id, level_after, before, entry.total_xp,
            )
        return DeltaResult(
            before_total=before,
            after_total=entry.total_xp,
            leveled_up=level_after > level_before,
            new_level=level_after,
        )
