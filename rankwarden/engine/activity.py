"""
rankwarden.engine.activity — XP Activity Sources
=================================================

Two independent producers feed the accumulator:

- **Message producer** — a fixed award per accepted message, rate-limited
  by a per-(guild, member) cooldown.  Cooldowns live in memory only; a
  restart forgets them, which costs at most one extra award per member.
- **Voice tick** — on a fixed interval, every tracked-present member who is
  connected, not self-muted and not self-deafened earns a fixed award.
  Voice duration has to be sampled, so this is polling, not event-driven.

Both are plain functions over injected state so they can be driven from
tests without a Discord connection.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from rankwarden.constants import Dimension
from rankwarden.engine.accumulator import DeltaResult, XpAccumulator
from rankwarden.engine.presence import PresenceTracker

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE_XP = 15
DEFAULT_COOLDOWN_SECONDS = 60.0
DEFAULT_VOICE_XP_PER_MIN = 5


# ---------------------------------------------------------------------------
# Message producer
# ---------------------------------------------------------------------------
class MessageCooldown:
    """Per-(guild, member) cooldown on accepted messages.

    Parameters
    ----------
    window:
        Seconds that must pass between two accepted messages.
    clock:
        Monotonic time source; injectable for tests.
    """

    def __init__(
        self,
        window: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window = window
        self._clock = clock
        self._last: dict[tuple[int, int], float] = {}

    def try_acquire(self, guild_id: int, member_id: int) -> bool:
        """Record and accept the message, or reject it while cooling down."""
        now = self._clock()
        key = (guild_id, member_id)
        last = self._last.get(key)
        if last is not None and now - last < self.window:
            logger.debug(
                "Cooldown active for %s in guild %s (%.1f/%.0f seconds remaining)",
                member_id, guild_id, self.window - (now - last), self.window,
            )
            return False
        self._last[key] = now
        return True

    def prune(self) -> int:
        """Drop entries whose window has long expired.  Returns the count removed."""
        cutoff = self._clock() - 2 * self.window
        before = len(self._last)
        self._last = {k: v for k, v in self._last.items() if v > cutoff}
        return before - len(self._last)

    def __len__(self) -> int:
        return len(self._last)


def award_message(
    cooldown: MessageCooldown,
    accumulator: XpAccumulator,
    guild_id: int,
    member_id: int,
    amount: int = DEFAULT_MESSAGE_XP,
) -> DeltaResult | None:
    """Award text XP for one message, or ``None`` if it was rate-limited."""
    if not cooldown.try_acquire(guild_id, member_id):
        return None
    return accumulator.apply_delta(guild_id, member_id, Dimension.TEXT, amount)


# ---------------------------------------------------------------------------
# Voice tick
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class VoiceSnapshot:
    """Live voice state of one member, as seen at tick time."""

    connected: bool
    self_mute: bool = False
    self_deaf: bool = False

    @property
    def earning(self) -> bool:
        return self.connected and not self.self_mute and not self.self_deaf


VoiceLookup = Callable[[int, int], VoiceSnapshot | None]


@dataclass(frozen=True, slots=True)
class TickAward:
    guild_id: int
    member_id: int
    result: DeltaResult


def voice_tick(
    presence: PresenceTracker,
    accumulator: XpAccumulator,
    lookup: VoiceLookup,
    amount: int = DEFAULT_VOICE_XP_PER_MIN,
) -> list[TickAward]:
    """Award one tick of voice XP to every present, active member.

    *lookup* returns the member's live voice state, or ``None`` if the
    member can no longer be resolved (left the guild, cache miss).
    """
    awards: list[TickAward] = []
    for guild_id in presence.guild_ids():
        for member_id in sorted(presence.present(guild_id)):
            snapshot = lookup(guild_id, member_id)
            if snapshot is None or not snapshot.earning:
                continue
            result = accumulator.apply_delta(guild_id, member_id, Dimension.VOICE, amount)
            awards.append(TickAward(guild_id, member_id, result))
    if awards:
        logger.debug("Voice tick: %d members awarded %d XP", len(awards), amount)
    return awards
