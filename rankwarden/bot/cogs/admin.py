"""
rankwarden.bot.cogs.admin — Admin Slash Commands
=================================================

Discord slash commands for server admins:
- /temprole — grant a role that is revoked again after a duration
- /refreshtopbadges — force a leader-badge reconciliation now
- /givexp — add (or, with a negative amount, remove) XP for testing
- /resetxp — zero every XP counter in the server and strip leader badges
- /setwelcome — fallback welcome used when the arrival channel is missing
- /goodbye — set or reset the goodbye template posted to the log channel

/temprole needs Manage Roles; everything else needs Manage Server.
Failures are answered with an ephemeral reply, never raised.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from rankwarden.constants import Dimension
from rankwarden.services.announcement_service import announce_text_level_up
from rankwarden.services.badge_service import reset_standings
from rankwarden.services.best_effort import best_effort
from rankwarden.services.temp_roles import MIN_TEMP_ROLE, parse_duration

if TYPE_CHECKING:
    from rankwarden.bot.core import RankwardenBot

logger = logging.getLogger(__name__)

_PERMISSION_LABELS = {
    "manage_guild": "Manage Server",
    "manage_roles": "Manage Roles",
}


class Admin(commands.Cog, name="Admin"):
    """Server administration commands for Rankwarden."""

    def __init__(self, bot: RankwardenBot) -> None:
        self.bot = bot

    # -------------------------------------------------------------------
    # /temprole
    # -------------------------------------------------------------------
    @app_commands.command(name="temprole", description="Give a member a role for a limited time.")
    @app_commands.describe(
        member="Who gets the role",
        role="The role to grant",
        duration="How long, e.g. 15m, 2h, 1d, 1h30m (min 10s)",
    )
    @app_commands.default_permissions(manage_roles=True)
    @app_commands.checks.has_permissions(manage_roles=True)
    async def temprole(
        self,
        interaction: discord.Interaction,
        member: discord.Member,
        role: discord.Role,
        duration: str,
    ) -> None:
        delta = parse_duration(duration)
        if delta is None or delta < MIN_TEMP_ROLE:
            await interaction.response.send_message(
                "Invalid duration. Try 15m, 2h, 1d (min ~10s).", ephemeral=True,
            )
            return

        guild = interaction.guild
        if guild is None:
            return
        me = guild.me
        if me is None or me.top_role <= role:
            await interaction.response.send_message(
                "My highest role must be **above** the target role.", ephemeral=True,
            )
            return

        result = await best_effort(
            member.add_roles(role, reason=f"Rankwarden: temp role by {interaction.user}"),
            what=f"temp role {role.name!r} to {member.id}",
        )
        if not result.ok:
            await interaction.response.send_message(
                f"❌ Couldn't give **{role.name}** to {member.mention}.", ephemeral=True,
            )
            return

        self.bot.temp_roles.schedule(
            (guild.id, member.id, role.id),
            delta,
            lambda: member.remove_roles(role, reason="Rankwarden: temp role expired"),
        )
        logger.info(
            "Temp role %r granted to %s in guild %s for %s",
            role.name, member.id, guild.id, delta,
        )
        await interaction.response.send_message(
            f"✅ Gave **{role.name}** to {member.mention} for **{duration}**.", ephemeral=True,
        )

    # -------------------------------------------------------------------
    # /refreshtopbadges
    # -------------------------------------------------------------------
    @app_commands.command(name="refreshtopbadges", description="Recompute the text and voice leader badges now.")
    @app_commands.default_permissions(manage_guild=True)
    @app_commands.checks.has_permissions(manage_guild=True)
    async def refreshtopbadges(self, interaction: discord.Interaction) -> None:
        if interaction.guild is None:
            return
        await interaction.response.defer(ephemeral=True, thinking=True)
        report = await self.bot.reconcile_guild(interaction.guild)
        await interaction.followup.send(
            f"✅ Top badges refreshed ({len(report.granted)} granted, "
            f"{len(report.revoked)} revoked).",
            ephemeral=True,
        )

    # -------------------------------------------------------------------
    # /givexp
    # -------------------------------------------------------------------
    @app_commands.command(name="givexp", description="Give (or take) XP for testing.")
    @app_commands.describe(
        member="Who gets the XP",
        amount="XP to add; negative removes (never below zero)",
        dimension="Also count it as text or voice XP",
    )
    @app_commands.choices(dimension=[
        app_commands.Choice(name="Text", value="text"),
        app_commands.Choice(name="Voice", value="voice"),
    ])
    @app_commands.default_permissions(manage_guild=True)
    @app_commands.checks.has_permissions(manage_guild=True)
    async def givexp(
        self,
        interaction: discord.Interaction,
        member: discord.Member,
        amount: int,
        dimension: app_commands.Choice[str] | None = None,
    ) -> None:
        if interaction.guild is None:
            return
        dim = Dimension(dimension.value) if dimension is not None else None
        result = self.bot.accumulator.apply_delta(interaction.guild.id, member.id, dim, amount)
        await interaction.response.send_message(
            f"✅ {amount:+d} XP for {member.mention}: {result.before_total} → "
            f"{result.after_total} (level {result.new_level}).",
            ephemeral=True,
        )
        if result.leveled_up:
            await announce_text_level_up(self.bot.gateway_for(interaction.guild), member.id, result)

    # -------------------------------------------------------------------
    # /resetxp
    # -------------------------------------------------------------------
    @app_commands.command(name="resetxp", description="Reset ALL XP in this server and strip leader badges.")
    @app_commands.describe(confirm="Must be true; this cannot be undone")
    @app_commands.default_permissions(manage_guild=True)
    @app_commands.checks.has_permissions(manage_guild=True)
    async def resetxp(self, interaction: discord.Interaction, confirm: bool = False) -> None:
        guild = interaction.guild
        if guild is None:
            return
        if not confirm:
            await interaction.response.send_message(
                "⚠️ This zeroes every XP counter in the server. "
                "Run `/resetxp confirm:true` if you really mean it.",
                ephemeral=True,
            )
            return

        await interaction.response.defer(ephemeral=True, thinking=True)
        async with self.bot.reconcile_lock(guild.id):
            count, report = await reset_standings(
                self.bot.store, self.bot.reconciler, self.bot.gateway_for(guild),
            )
        logger.warning("XP reset in guild %s by %s", guild.id, interaction.user.id)
        await interaction.followup.send(
            f"🧹 Reset {count} XP entries and removed {len(report.revoked)} leader badges.",
            ephemeral=True,
        )

    # -------------------------------------------------------------------
    # /setwelcome & /goodbye
    # -------------------------------------------------------------------
    @app_commands.command(
        name="setwelcome",
        description="Configure a fallback welcome (used only if the arrival channel is missing).",
    )
    @app_commands.describe(
        channel="Where to post the fallback welcome",
        message="Welcome text; {user} becomes a mention",
    )
    @app_commands.default_permissions(manage_guild=True)
    @app_commands.checks.has_permissions(manage_guild=True)
    async def setwelcome(
        self,
        interaction: discord.Interaction,
        channel: discord.TextChannel,
        message: str,
    ) -> None:
        if interaction.guild_id is None:
            return
        self.bot.onboarding.set_welcome(interaction.guild_id, channel.id, message)
        await interaction.response.send_message(
            f"✅ Fallback welcome set in {channel.mention}. (Arrival channel takes priority)",
            ephemeral=True,
        )

    @app_commands.command(
        name="goodbye",
        description="Set/clear the goodbye message template (posted in the logs channel).",
    )
    @app_commands.describe(message="Goodbye text; {user} becomes the member's tag. Omit to reset.")
    @app_commands.default_permissions(manage_guild=True)
    @app_commands.checks.has_permissions(manage_guild=True)
    async def goodbye(self, interaction: discord.Interaction, message: str | None = None) -> None:
        if interaction.guild_id is None:
            return
        if self.bot.onboarding.set_goodbye(interaction.guild_id, message):
            reply = "✅ Goodbye template set. (Posted in logs channel)"
        else:
            reply = "👋 Goodbye template reset to default. (Posted in logs channel)"
        await interaction.response.send_message(reply, ephemeral=True)

    # -------------------------------------------------------------------
    # Error handler
    # -------------------------------------------------------------------
    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        if isinstance(error, app_commands.MissingPermissions):
            needed = ", ".join(_PERMISSION_LABELS.get(p, p) for p in error.missing_permissions)
            content = f"\U0001f512 You need **{needed}** to do that."
        elif isinstance(error, app_commands.CheckFailure):
            content = "\U0001f512 You can't use this command here."
        else:
            raise error
        if interaction.response.is_done():
            await interaction.followup.send(content, ephemeral=True)
        else:
            await interaction.response.send_message(content, ephemeral=True)


async def setup(bot: RankwardenBot) -> None:
    await bot.add_cog(Admin(bot))
