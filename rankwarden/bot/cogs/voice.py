"""
rankwarden.bot.cogs.voice — Voice Presence & Voice XP
======================================================

Voice-state events keep the presence tracker current (join and move add,
leave removes).  Once a minute every present member is checked against
their live voice state: connected, not self-muted and not self-deafened
earns the configured voice XP.

Presence is rebuilt from scratch on restart; members already sitting in
voice are picked up on ready.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands, tasks

from rankwarden.engine.activity import voice_tick
from rankwarden.services.announcement_service import announce_voice_level_up

if TYPE_CHECKING:
    from rankwarden.bot.core import RankwardenBot

logger = logging.getLogger(__name__)


class Voice(commands.Cog, name="Voice"):
    """Tracks voice presence and awards XP on ticks."""

    def __init__(self, bot: RankwardenBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        self.voice_tick_loop.start()

    async def cog_unload(self) -> None:
        self.voice_tick_loop.cancel()

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        """Seed presence with members who were in voice before we connected."""
        seeded = 0
        for guild in self.bot.guilds:
            for channel in guild.voice_channels:
                for member in channel.members:
                    if member.bot:
                        continue
                    self.bot.presence.handle_voice_state(guild.id, member.id, channel.id)
                    seeded += 1
        if seeded:
            logger.info("Seeded voice presence with %d members", seeded)

    @commands.Cog.listener()
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        if member.bot:
            return
        channel_id = after.channel.id if after.channel is not None else None
        self.bot.presence.handle_voice_state(member.guild.id, member.id, channel_id)

    @tasks.loop(minutes=1)
    async def voice_tick_loop(self):
        awards = voice_tick(
            self.bot.presence,
            self.bot.accumulator,
            self.bot.voice_snapshot,
            self.bot.cfg.leveling.voice_xp_per_minute,
        )
        for award in awards:
            if not award.result.leveled_up:
                continue
            guild = self.bot.get_guild(award.guild_id)
            if guild is None:
                continue
            await announce_voice_level_up(self.bot.gateway_for(guild), award.member_id, award.result)

    @voice_tick_loop.before_loop
    async def _wait_voice_tick(self):
        await self.bot.wait_until_ready()


async def setup(bot: RankwardenBot) -> None:
    await bot.add_cog(Voice(bot))
