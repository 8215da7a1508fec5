"""
rankwarden.engine.presence — Voice Presence Tracker
====================================================

Per-guild set of members currently connected to any voice channel.  The
set only narrows what the voice tick has to look at; whether a member is
muted or deafened is checked against live state at tick time.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class PresenceTracker:
    """State machine fed by voice-state-changed notifications."""

    def __init__(self) -> None:
        self._present: dict[int, set[int]] = {}

    def handle_voice_state(
        self, guild_id: int, member_id: int, channel_id: int | None
    ) -> None:
        """Apply one voice-state change.

        A destination channel adds the member (join or move, idempotent);
        ``None`` means the member left voice entirely.
        """
        if channel_id is None:
            members = self._present.get(guild_id)
            if members is not None:
                members.discard(member_id)
                if not members:
                    del self._present[guild_id]
            return
        self._present.setdefault(guild_id, set()).add(member_id)

    def present(self, guild_id: int) -> frozenset[int]:
        return frozenset(self._present.get(guild_id, ()))

    def is_present(self, guild_id: int, member_id: int) -> bool:
        return member_id in self._present.get(guild_id, ())

    def guild_ids(self) -> list[int]:
        return list(self._present)

    def __len__(self) -> int:
        return sum(len(m) for m in self._present.values())
