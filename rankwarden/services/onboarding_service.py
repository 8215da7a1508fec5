"""
rankwarden.services.onboarding_service — Join, Leave & Promotion
=================================================================

New members get the newbie marker, a metadata record and an arrival
message.  After the newbie period the hourly sweep swaps the newbie
marker for the graduate marker.  Departures are logged with a goodbye
template.

Fallback welcome and goodbye templates set through slash commands are
kept in memory only, so a restart restores the config defaults.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from rankwarden.config import RoleNames
from rankwarden.constants import Badge, RoutedChannel
from rankwarden.engine.ledger import LedgerStore, MemberMeta
from rankwarden.services.badge_service import refresh_nickname
from rankwarden.services.embeds import goodbye_text, promotion_text
from rankwarden.services.gateway import GuildGateway

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000


def epoch_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class WelcomeFallback:
    """Where to greet newcomers when the arrival channel is unavailable."""

    channel_id: int
    message: str | None = None


class OnboardingService:
    """Owns the newbie lifecycle for every guild.

    Parameters
    ----------
    store:
        Ledger holding the per-member onboarding metadata.
    roles:
        Marker-role names (the graduate name appears in announcements).
    arrival_message, goodbye_message:
        Default templates; ``{user}`` is replaced on send.
    newbie_days:
        Length of the newbie period.
    clock:
        Epoch-milliseconds time source; injectable for tests.
    """

    def __init__(
        self,
        store: LedgerStore,
        roles: RoleNames,
        *,
        arrival_message: str,
        goodbye_message: str,
        newbie_days: int = 14,
        clock: Callable[[], int] = epoch_ms,
    ) -> None:
        self.store = store
        self.roles = roles
        self.arrival_message = arrival_message
        self.goodbye_message = goodbye_message
        self.newbie_period_ms = newbie_days * DAY_MS
        self.clock = clock
        self._welcome: dict[int, WelcomeFallback] = {}
        self._goodbye: dict[int, str] = {}

    # -- in-memory templates -------------------------------------------------
    def set_welcome(self, guild_id: int, channel_id: int, message: str | None) -> None:
        self._welcome[guild_id] = WelcomeFallback(channel_id, message)

    def welcome_for(self, guild_id: int) -> WelcomeFallback | None:
        return self._welcome.get(guild_id)

    def set_goodbye(self, guild_id: int, message: str | None) -> bool:
        """Set the goodbye template, or reset it when *message* is empty.

        Returns True if a custom template is now active.
        """
        if not message:
            self._goodbye.pop(guild_id, None)
            return False
        self._goodbye[guild_id] = message
        return True

    def goodbye_for(self, guild_id: int) -> str:
        return self._goodbye.get(guild_id, self.goodbye_message)

    # -- join ----------------------------------------------------------------
    async def on_join(self, gateway: GuildGateway, member_id: int, nickname: str | None) -> None:
        guild_id = gateway.guild_id
        await gateway.ensure_roles()
        granted = await gateway.grant(member_id, Badge.NEWBIE, reason="Rankwarden: onboarding")

        now = self.clock()
        self.store.put_meta(
            guild_id, member_id,
            MemberMeta(joined_at=now, newbie_since=now, original_nick=nickname),
        )

        await refresh_nickname(gateway, member_id, granted={Badge.NEWBIE} if granted else ())
        await self._greet(gateway, member_id)
        logger.info("Onboarded member %s in guild %s", member_id, guild_id)

    async def _greet(self, gateway: GuildGateway, member_id: int) -> None:
        mention = f"<@{member_id}>"
        content = self.arrival_message.replace("{user}", mention)
        if await gateway.announce(RoutedChannel.ARRIVAL, content=content):
            return
        fallback = self._welcome.get(gateway.guild_id)
        if fallback is None:
            return
        template = fallback.message or self.arrival_message
        await gateway.send_to(fallback.channel_id, content=template.replace("{user}", mention))

    # -- leave ---------------------------------------------------------------
    async def on_leave(self, gateway: GuildGateway, member_id: int, user_tag: str | None) -> bool:
        content = goodbye_text(self.goodbye_for(gateway.guild_id), user_tag, member_id)
        return await gateway.announce(RoutedChannel.LOG, content=content)

    # -- promotion -----------------------------------------------------------
    def is_promotion_due(self, meta: MemberMeta, holds_newbie: bool, now: int | None = None) -> bool:
        if meta.newbie_since is None or not holds_newbie:
            return False
        now = self.clock() if now is None else now
        return now - meta.newbie_since >= self.newbie_period_ms

    async def promote_due(self, gateway: GuildGateway) -> list[int]:
        """Graduate every member whose newbie period has run out."""
        guild_id = gateway.guild_id
        now = self.clock()
        holders = await gateway.role_holders(Badge.NEWBIE)
        promoted: list[int] = []

        for member_id, _ in self.store.members_for(guild_id):
            # Earlier iterations awaited, so re-read what they may have replaced
            meta = self.store.meta(guild_id, member_id)
            if meta is None or not self.is_promotion_due(meta, member_id in holders, now):
                continue
            due_since = meta.newbie_since
            revoked = await gateway.revoke(member_id, Badge.NEWBIE, reason="Rankwarden: newbie period ended")
            granted = await gateway.grant(member_id, Badge.GRADUATE, reason="Rankwarden: promoted")
            await refresh_nickname(
                gateway, member_id,
                granted={Badge.GRADUATE} if granted else (),
                revoked={Badge.NEWBIE} if revoked else (),
            )
            current = self.store.meta(guild_id, member_id)
            if current is None or current.newbie_since != due_since:
                # Left and rejoined mid-promotion: the fresh record wins
                logger.info("Member %s rejoined during promotion; keeping new record", member_id)
                continue
            current.newbie_since = None
            self.store.put_meta(guild_id, member_id, current)
            await gateway.announce(
                RoutedChannel.LEVEL_UP,
                content=promotion_text(member_id, self.roles.graduate),
            )
            promoted.append(member_id)

        if promoted:
            logger.info("Promoted %d members in guild %s", len(promoted), guild_id)
        return promoted
