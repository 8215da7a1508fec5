"""
rankwarden.bot.cogs.membership — Join & Leave
==============================================

Joins run the onboarding flow (newbie marker, metadata, nickname badge,
arrival message).  Leaves post the goodbye template to the log channel.
Bot accounts are ignored both ways.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

if TYPE_CHECKING:
    from rankwarden.bot.core import RankwardenBot

logger = logging.getLogger(__name__)


class Membership(commands.Cog, name="Membership"):
    """Onboarding and departure logging."""

    def __init__(self, bot: RankwardenBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member) -> None:
        if member.bot:
            return
        await self.bot.onboarding.on_join(
            self.bot.gateway_for(member.guild), member.id, member.nick,
        )

    @commands.Cog.listener()
    async def on_member_remove(self, member: discord.Member) -> None:
        if member.bot:
            return
        self.bot.presence.handle_voice_state(member.guild.id, member.id, None)
        await self.bot.onboarding.on_leave(
            self.bot.gateway_for(member.guild), member.id, str(member),
        )


async def setup(bot: RankwardenBot) -> None:
    await bot.add_cog(Membership(bot))
