"""
rankwarden.services.gateway — Guild Capability Adapter
=======================================================

The badge reconciler and onboarding flow never touch ``discord.Guild``
directly.  They talk to a :class:`GuildGateway`: a small capability
interface for reading marker-role holders, granting and revoking badges,
renaming members and posting to routed channels.

:class:`DiscordGuildGateway` is the production implementation.  Every
mutating call is wrapped in :func:`best_effort`, so permission or network
failures come back as ``False`` instead of exceptions.  Tests substitute a
fake with the same shape.

Role state is read live on every call; the gateway never assumes its own
last write is still current.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

import discord

from rankwarden.config import ChannelNames, RoleNames
from rankwarden.constants import LEADER_BADGES, Badge, RoutedChannel
from rankwarden.engine.nickname import badges_for_roles
from rankwarden.services.best_effort import best_effort

logger = logging.getLogger(__name__)


def badge_role_names(roles: RoleNames) -> dict[Badge, str]:
    """Map each badge to its configured marker-role name."""
    return {
        Badge.NEWBIE: roles.newbie,
        Badge.GRADUATE: roles.graduate,
        Badge.TEXT_LEADER: roles.text_leader,
        Badge.VOICE_LEADER: roles.voice_leader,
    }


def routed_channel_names(channels: ChannelNames) -> dict[RoutedChannel, str]:
    return {
        RoutedChannel.LOG: channels.log,
        RoutedChannel.LEVEL_UP: channels.level_up,
        RoutedChannel.ARRIVAL: channels.arrival,
    }


def find_text_channel(guild: discord.Guild, name: str) -> discord.TextChannel | None:
    """Exact (case-insensitive) name lookup among the guild's text channels."""
    wanted = name.lower()
    for channel in guild.text_channels:
        if channel.name.lower() == wanted:
            return channel
    return None


@dataclass(frozen=True, slots=True)
class MemberView:
    """What the badge code needs to know about one member."""

    member_id: int
    display_name: str
    badges: frozenset[Badge] = field(default_factory=frozenset)
    bot: bool = False


class GuildGateway(Protocol):
    """Role, nickname and channel capabilities for one guild."""

    guild_id: int

    async def ensure_roles(self) -> None: ...

    async def role_holders(self, badge: Badge) -> set[int]: ...

    async def member_ids(self) -> list[int]: ...

    async def member_view(self, member_id: int) -> MemberView | None: ...

    async def grant(self, member_id: int, badge: Badge, *, reason: str) -> bool: ...

    async def revoke(self, member_id: int, badge: Badge, *, reason: str) -> bool: ...

    async def rename(self, member_id: int, nick: str) -> bool: ...

    async def announce(
        self,
        channel: RoutedChannel,
        *,
        content: str | None = None,
        embed: discord.Embed | None = None,
    ) -> bool: ...

    async def send_to(self, channel_id: int, *, content: str) -> bool: ...


class DiscordGuildGateway:
    """:class:`GuildGateway` backed by a live ``discord.Guild``."""

    def __init__(
        self,
        guild: discord.Guild,
        roles: RoleNames,
        channels: ChannelNames,
    ) -> None:
        self.guild = guild
        self.guild_id = guild.id
        self.badge_roles = badge_role_names(roles)
        self.channel_names = routed_channel_names(channels)

    # -- roles ---------------------------------------------------------------
    def _role(self, badge: Badge) -> discord.Role | None:
        return discord.utils.get(self.guild.roles, name=self.badge_roles[badge])

    async def _ensure_role(self, badge: Badge) -> discord.Role | None:
        role = self._role(badge)
        if role is not None:
            return role
        name = self.badge_roles[badge]
        result = await best_effort(
            self.guild.create_role(name=name, reason="Rankwarden: marker role"),
            what=f"create role {name!r} in guild {self.guild_id}",
        )
        if not result.ok:
            return None
        role = result.value
        logger.info("Created marker role %r in guild %s", name, self.guild_id)
        if badge in LEADER_BADGES.values():
            await self._reposition(role)
        return role

    async def _reposition(self, role: discord.Role) -> None:
        """Lift a leader role to just under the bot's top role."""
        me = self.guild.me
        if me is None or me.top_role.position <= 1:
            return
        await best_effort(
            role.edit(position=me.top_role.position - 1, reason="Rankwarden: leader role placement"),
            what=f"reposition role {role.name!r}",
        )

    async def ensure_roles(self) -> None:
        for badge in Badge:
            await self._ensure_role(badge)

    async def role_holders(self, badge: Badge) -> set[int]:
        role = self._role(badge)
        if role is None:
            return set()
        return {m.id for m in role.members}

    # -- members -------------------------------------------------------------
    async def _member(self, member_id: int) -> discord.Member | None:
        member = self.guild.get_member(member_id)
        if member is not None:
            return member
        result = await best_effort(
            self.guild.fetch_member(member_id),
            what=f"fetch member {member_id}",
        )
        return result.value if result.ok else None

    async def member_ids(self) -> list[int]:
        return [m.id for m in self.guild.members]

    async def member_view(self, member_id: int) -> MemberView | None:
        member = await self._member(member_id)
        if member is None:
            return None
        return MemberView(
            member_id=member.id,
            display_name=member.display_name,
            badges=frozenset(badges_for_roles((r.name for r in member.roles), self.badge_roles)),
            bot=member.bot,
        )

    async def grant(self, member_id: int, badge: Badge, *, reason: str) -> bool:
        member = await self._member(member_id)
        role = await self._ensure_role(badge)
        if member is None or role is None:
            return False
        result = await best_effort(
            member.add_roles(role, reason=reason),
            what=f"grant {role.name!r} to {member_id}",
        )
        return result.ok

    async def revoke(self, member_id: int, badge: Badge, *, reason: str) -> bool:
        member = await self._member(member_id)
        role = self._role(badge)
        if member is None or role is None:
            return False
        result = await best_effort(
            member.remove_roles(role, reason=reason),
            what=f"revoke {role.name!r} from {member_id}",
        )
        return result.ok

    async def rename(self, member_id: int, nick: str) -> bool:
        member = await self._member(member_id)
        if member is None:
            return False
        # An empty nick clears the override and falls back to the username
        result = await best_effort(
            member.edit(nick=nick or None, reason="Rankwarden: badge update"),
            what=f"rename {member_id} → {nick!r}",
        )
        return result.ok

    # -- channels ------------------------------------------------------------
    async def announce(
        self,
        channel: RoutedChannel,
        *,
        content: str | None = None,
        embed: discord.Embed | None = None,
    ) -> bool:
        target = find_text_channel(self.guild, self.channel_names[channel])
        if target is None:
            logger.debug("No #%s channel in guild %s", self.channel_names[channel], self.guild_id)
            return False
        kwargs: dict = {}
        if content is not None:
            kwargs["content"] = content
        if embed is not None:
            kwargs["embed"] = embed
        result = await best_effort(target.send(**kwargs), what=f"send to #{target.name}")
        return result.ok

    async def send_to(self, channel_id: int, *, content: str) -> bool:
        target = self.guild.get_channel(channel_id)
        if not isinstance(target, discord.TextChannel):
            return False
        result = await best_effort(target.send(content=content), what=f"send to #{target.name}")
        return result.ok
