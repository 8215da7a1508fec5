"""
rankwarden.bot.cogs.meta — Rank, Leaderboards & Ping
=====================================================

Public slash commands:
- /rank — level, total/text/voice XP and XP to the next level
- /leaderboard — top 10 by total XP
- /toptext — top 10 by text XP
- /topvoice — top 10 by voice XP
- /ping — liveness check
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from rankwarden.constants import LEADERBOARD_SIZE, Dimension
from rankwarden.engine.standings import Standing, ranking
from rankwarden.services.embeds import build_leaderboard_embed, build_rank_embed

if TYPE_CHECKING:
    from rankwarden.bot.core import RankwardenBot


class Meta(commands.Cog, name="Meta"):
    """Self-service rank lookups and leaderboards."""

    def __init__(self, bot: RankwardenBot) -> None:
        self.bot = bot

    def _names(self, guild: discord.Guild, standings: list[Standing]) -> dict[int, str]:
        names: dict[int, str] = {}
        for standing in standings:
            user = guild.get_member(standing.member_id) or self.bot.get_user(standing.member_id)
            if user is not None:
                names[standing.member_id] = str(user)
        return names

    async def _send_board(self, interaction: discord.Interaction, dimension: Dimension) -> None:
        guild = interaction.guild
        if guild is None:
            await interaction.response.send_message("This only works in a server.", ephemeral=True)
            return
        standings = ranking(self.bot.store, guild.id, dimension, LEADERBOARD_SIZE)
        embed = build_leaderboard_embed(
            dimension, standings, self._names(guild, standings), self.bot.curve.level_for_xp,
        )
        await interaction.response.send_message(embed=embed)

    # -------------------------------------------------------------------
    # /ping
    # -------------------------------------------------------------------
    @app_commands.command(name="ping", description="Check that the bot is alive.")
    async def ping(self, interaction: discord.Interaction) -> None:
        await interaction.response.send_message("Pong!", ephemeral=True)

    # -------------------------------------------------------------------
    # /rank
    # -------------------------------------------------------------------
    @app_commands.command(name="rank", description="Show your (or another member's) level and XP.")
    @app_commands.describe(member="Whose rank to show (defaults to you)")
    async def rank(
        self,
        interaction: discord.Interaction,
        member: discord.Member | None = None,
    ) -> None:
        if interaction.guild_id is None:
            await interaction.response.send_message("This only works in a server.", ephemeral=True)
            return
        target = member or interaction.user
        entry = self.bot.store.entry(interaction.guild_id, target.id)
        curve = self.bot.curve
        level = curve.level_for_xp(entry.total_xp)
        embed = build_rank_embed(
            target.name,
            entry,
            level,
            curve.xp_threshold(level + 1),
            curve.xp_to_next(entry.total_xp),
        )
        await interaction.response.send_message(embed=embed)

    # -------------------------------------------------------------------
    # Leaderboards
    # -------------------------------------------------------------------
    @app_commands.command(name="leaderboard", description="Top 10 members by total XP.")
    async def leaderboard(self, interaction: discord.Interaction) -> None:
        await self._send_board(interaction, Dimension.TOTAL)

    @app_commands.command(name="toptext", description="Top 10 members by text XP.")
    async def toptext(self, interaction: discord.Interaction) -> None:
        await self._send_board(interaction, Dimension.TEXT)

    @app_commands.command(name="topvoice", description="Top 10 members by voice XP.")
    async def topvoice(self, interaction: discord.Interaction) -> None:
        await self._send_board(interaction, Dimension.VOICE)


async def setup(bot: RankwardenBot) -> None:
    await bot.add_cog(Meta(bot))
