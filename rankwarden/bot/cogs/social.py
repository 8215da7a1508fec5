"""
rankwarden.bot.cogs.social — Message XP
========================================

Every non-bot guild message is offered to the per-member cooldown; an
accepted one earns the configured text XP.  Level-ups are announced in
the level-up channel.  The cooldown map is pruned every five minutes so
it only ever holds recently active members.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands, tasks

from rankwarden.engine.activity import award_message
from rankwarden.services.announcement_service import announce_text_level_up

if TYPE_CHECKING:
    from rankwarden.bot.core import RankwardenBot

logger = logging.getLogger(__name__)


class Social(commands.Cog, name="Social"):
    """Awards text XP for messages."""

    def __init__(self, bot: RankwardenBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        self.prune_loop.start()

    async def cog_unload(self) -> None:
        self.prune_loop.cancel()

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if message.guild is None or message.author.bot:
            return

        result = award_message(
            self.bot.cooldown,
            self.bot.accumulator,
            message.guild.id,
            message.author.id,
            self.bot.cfg.leveling.message_xp,
        )
        if result is not None and result.leveled_up:
            await announce_text_level_up(
                self.bot.gateway_for(message.guild), message.author.id, result,
            )

    @tasks.loop(minutes=5)
    async def prune_loop(self):
        removed = self.bot.cooldown.prune()
        if removed:
            logger.debug("Pruned %d expired message cooldowns", removed)


async def setup(bot: RankwardenBot) -> None:
    await bot.add_cog(Social(bot))
