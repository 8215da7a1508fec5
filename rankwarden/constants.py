"""
rankwarden.constants — Shared Constants & Enumerations
=======================================================

Single source of truth for XP dimensions, badge glyphs, and the
platform limits that the nickname and leaderboard code depend on.
"""

from __future__ import annotations

import enum


# ---------------------------------------------------------------------------
# XP dimensions
# ---------------------------------------------------------------------------
class Dimension(enum.StrEnum):
    """XP counters tracked per member.  ``TOTAL`` is the sum of the others."""

    TOTAL = "total"
    TEXT = "text"
    VOICE = "voice"


# ---------------------------------------------------------------------------
# Badges — declaration order IS the canonical nickname prefix order
# ---------------------------------------------------------------------------
class Badge(enum.Enum):
    """Marker roles surfaced as nickname glyphs.

    The status markers (``NEWBIE`` / ``GRADUATE``) come first, then the
    dimension-leader markers in dimension order.
    """

    NEWBIE = "\U0001f423"        # 🐣
    GRADUATE = "\U0001f916"      # 🤖
    TEXT_LEADER = "\U0001f4ac"   # 💬
    VOICE_LEADER = "\U0001f3a7"  # 🎧

    @property
    def glyph(self) -> str:
        return self.value

    @property
    def order(self) -> int:
        return _BADGE_ORDER[self]


_BADGE_ORDER: dict[Badge, int] = {badge: i for i, badge in enumerate(Badge)}

STATUS_BADGES: tuple[Badge, ...] = (Badge.NEWBIE, Badge.GRADUATE)

# Dimensions whose top holder receives a marker role
LEADER_BADGES: dict[Dimension, Badge] = {
    Dimension.TEXT: Badge.TEXT_LEADER,
    Dimension.VOICE: Badge.VOICE_LEADER,
}

BADGE_GLYPHS: frozenset[str] = frozenset(b.glyph for b in Badge)


# ---------------------------------------------------------------------------
# Presentation
# ---------------------------------------------------------------------------
RANK_BADGES: list[str] = ["\U0001f947", "\U0001f948", "\U0001f949"]  # 🥇🥈🥉

MAX_NICKNAME_LENGTH = 32
LEADERBOARD_SIZE = 10


# ---------------------------------------------------------------------------
# Routed text channels (resolved by exact name per guild)
# ---------------------------------------------------------------------------
class RoutedChannel(enum.StrEnum):
    LOG = "log"
    LEVEL_UP = "level_up"
    ARRIVAL = "arrival"
