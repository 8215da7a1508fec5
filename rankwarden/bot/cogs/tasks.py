"""
rankwarden.bot.cogs.tasks — Periodic Background Tasks
======================================================

Scheduled jobs that run on ``discord.ext.tasks`` loops:

- **Promotion sweep** — hourly, graduates members whose newbie period
  has run out.
- **Badge sweep** — hourly, reconciles the text and voice leader badges
  in every guild.
- **Self-ping** — every 4 minutes, only when ``SELF_PING_URL`` is set;
  keeps free-tier hosts from idling the web service.

A loop body never overlaps itself: a slow sweep just delays the next one.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

import httpx
from discord.ext import commands, tasks

if TYPE_CHECKING:
    from rankwarden.bot.core import RankwardenBot

logger = logging.getLogger(__name__)


class PeriodicTasks(commands.Cog):
    """Cog for scheduled sweeps and the keep-alive ping."""

    def __init__(self, bot: RankwardenBot) -> None:
        self.bot = bot
        self.self_ping_url = os.getenv("SELF_PING_URL") or None

    async def cog_load(self) -> None:
        """Start task loops when the cog is loaded."""
        self.promotion_loop.start()
        self.badge_loop.start()
        if self.self_ping_url:
            self.self_ping_loop.start()

    async def cog_unload(self) -> None:
        """Cancel task loops on unload."""
        self.promotion_loop.cancel()
        self.badge_loop.cancel()
        self.self_ping_loop.cancel()

    # -------------------------------------------------------------------
    # Promotion sweep — hourly
    # -------------------------------------------------------------------
    @tasks.loop(hours=1)
    async def promotion_loop(self):
        for gateway in self.bot.gateways():
            try:
                await self.bot.onboarding.promote_due(gateway)
            except Exception:
                logger.exception("Promotion sweep failed for guild %s", gateway.guild_id)

    @promotion_loop.before_loop
    async def _wait_promotion(self):
        await self.bot.wait_until_ready()

    # -------------------------------------------------------------------
    # Badge sweep — hourly
    # -------------------------------------------------------------------
    @tasks.loop(hours=1)
    async def badge_loop(self):
        for guild in self.bot.guilds:
            try:
                await self.bot.reconcile_guild(guild)
            except Exception:
                logger.exception("Badge sweep failed for guild %s", guild.id)

    @badge_loop.before_loop
    async def _wait_badges(self):
        await self.bot.wait_until_ready()

    # -------------------------------------------------------------------
    # Self-ping — every 4 minutes
    # -------------------------------------------------------------------
    @tasks.loop(minutes=4)
    async def self_ping_loop(self):
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(self.self_ping_url)
            logger.debug("Self-ping %s → %d", self.self_ping_url, response.status_code)
        except httpx.HTTPError as exc:
            logger.warning("Self-ping failed: %s", exc)

    @self_ping_loop.before_loop
    async def _wait_self_ping(self):
        await self.bot.wait_until_ready()


async def setup(bot: RankwardenBot) -> None:
    await bot.add_cog(PeriodicTasks(bot))
