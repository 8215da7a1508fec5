"""
rankwarden.services.embeds — Discord embed builders
====================================================

All embed and message-text construction lives here so the services and
cogs only need to supply data.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import UTC, datetime

import discord

from rankwarden.constants import RANK_BADGES, Dimension
from rankwarden.engine.ledger import LedgerEntry
from rankwarden.engine.standings import Standing

_DIMENSION_LABELS: dict[Dimension, str] = {
    Dimension.TOTAL: "total",
    Dimension.TEXT: "text",
    Dimension.VOICE: "voice",
}

_LEADERBOARD_STYLE: dict[Dimension, tuple[str, str, str]] = {
    # title, empty text, footer
    Dimension.TOTAL: ("\U0001f3c6 Total Leaderboard", "No leaderboard yet.", "Grind smart. No spam."),
    Dimension.TEXT: ("\U0001f4ca Text Leaderboard", "No text activity yet.", "Chat to climb. No spam."),
    Dimension.VOICE: ("\U0001f399️ Voice Leaderboard", "No voice activity yet.", "Hop in VC. Don't idle."),
}


def _now() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Level-ups
# ---------------------------------------------------------------------------
def build_level_up_embed(user_id: int, new_level: int) -> discord.Embed:
    """Text-activity level-up celebration."""
    return discord.Embed(
        title="✨ Level Up!",
        description=f"<@{user_id}> just hit **level {new_level}** — keep it weird.",
        color=discord.Color.gold(),
        timestamp=_now(),
    )


def voice_level_up_text(user_id: int, new_level: int) -> str:
    return f"\U0001f399️ Level Up: <@{user_id}> is now **level {new_level}**."


# ---------------------------------------------------------------------------
# Rank & leaderboards
# ---------------------------------------------------------------------------
def build_rank_embed(
    username: str,
    entry: LedgerEntry,
    level: int,
    next_threshold: int,
    to_next: int,
) -> discord.Embed:
    embed = discord.Embed(title=f"\U0001f4c8 Rank — {username}", timestamp=_now())
    embed.add_field(name="Level", value=str(level), inline=True)
    embed.add_field(name="Total XP", value=f"{entry.total_xp} / {next_threshold}", inline=True)
    embed.add_field(name="To next", value=f"{to_next} XP", inline=True)
    embed.add_field(name="Text XP", value=str(entry.text_xp), inline=True)
    embed.add_field(name="Voice XP", value=str(entry.voice_xp), inline=True)
    embed.set_footer(text="No drama. No cringe. No unsolicited pings.")
    return embed


def rank_marker(position: int) -> str:
    """Medal for the podium, ``#n`` below it (*position* is 0-based)."""
    if position < len(RANK_BADGES):
        return RANK_BADGES[position]
    return f"#{position + 1}"


def build_leaderboard_embed(
    dimension: Dimension,
    standings: Sequence[Standing],
    names: dict[int, str],
    level_for_xp: Callable[[int], int],
) -> discord.Embed:
    """Top-N listing for one dimension.

    *names* maps member IDs to a readable name; unknown members fall back
    to their ID.  Level is shown only on the total board.
    """
    title, empty, footer = _LEADERBOARD_STYLE[dimension]
    if not standings:
        return discord.Embed(title=title, description=empty, timestamp=_now())

    label = _DIMENSION_LABELS[dimension]
    lines = []
    for i, standing in enumerate(standings):
        name = names.get(standing.member_id, str(standing.member_id))
        head = f"**{rank_marker(i)}** — <@{standing.member_id}> ({name})"
        if dimension is Dimension.TOTAL:
            lines.append(f"{head} — **{standing.value} XP** (lv {level_for_xp(standing.value)})")
        else:
            lines.append(f"{head} — **{standing.value} {label} XP**")

    embed = discord.Embed(
        title=f"{title} — Top {len(standings)}",
        description="\n".join(lines),
        timestamp=_now(),
    )
    embed.set_footer(text=footer)
    return embed


# ---------------------------------------------------------------------------
# Leader badges
# ---------------------------------------------------------------------------
def build_leader_embed(member_id: int, role_names: Sequence[str]) -> discord.Embed:
    """Announcement for a newly crowned dimension leader.

    One role name gives the single-crown text; two or more give the
    combined announcement.
    """
    if len(role_names) == 1:
        return discord.Embed(
            title="\U0001f451 New Leader",
            description=f"<@{member_id}> is now **{role_names[0]}**.",
            color=discord.Color.blurple(),
            timestamp=_now(),
        )
    joined = " and ".join(f"**{name}**" for name in role_names)
    return discord.Embed(
        title="\U0001f451 Double Crown",
        description=f"<@{member_id}> now holds {joined} at the same time.",
        color=discord.Color.gold(),
        timestamp=_now(),
    )


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------
def promotion_text(member_id: int, graduate_role: str) -> str:
    return f"\U0001f6e1️ Promotion: <@{member_id}> → **{graduate_role}** (Newbie period complete)."


def goodbye_text(template: str, user_tag: str | None, member_id: int) -> str:
    return f"\U0001f4e4 {template.replace('{user}', user_tag or 'someone')} ({member_id})"


def error_report_text(label: str, err: BaseException | str) -> str:
    return f"⚠️ {label}: {err}"
