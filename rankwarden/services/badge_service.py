"""
rankwarden.services.badge_service — Leader Badge Reconciliation
================================================================

Keeps the dimension-leader marker roles in line with the ledger.

How a pass works, per tracked dimension:
    1. Read the live holders of the dimension's marker role.
    2. Compute the leader with :func:`top_by_dimension`.
    3. Revoke the marker from every holder who is not the leader.
    4. Grant the marker to the leader unless they already hold it.

Afterwards every member touched by a successful grant or revoke gets one
nickname refresh that folds in all of this pass's changes, and every
newly crowned member gets exactly one announcement (a combined one when
they took more than one crown in the same pass).

A pass with unchanged standings makes no mutating calls at all.  Callers
must serialize passes per guild; the bot keeps one ``asyncio.Lock`` per
guild for this.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from rankwarden.config import RoleNames
from rankwarden.constants import LEADER_BADGES, Badge, Dimension, RoutedChannel
from rankwarden.engine.ledger import LedgerStore
from rankwarden.engine.nickname import compose_nickname
from rankwarden.engine.standings import top_by_dimension
from rankwarden.services.embeds import build_leader_embed
from rankwarden.services.gateway import GuildGateway, badge_role_names

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconcileReport:
    """What one reconcile (or strip) pass actually changed."""

    guild_id: int
    granted: list[tuple[int, Badge]] = field(default_factory=list)
    revoked: list[tuple[int, Badge]] = field(default_factory=list)
    failed: list[tuple[int, Badge]] = field(default_factory=list)
    renamed: list[int] = field(default_factory=list)
    announced: list[int] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.granted or self.revoked)

    def affected_members(self) -> list[int]:
        """Members with at least one successful change, first-touched first."""
        seen: dict[int, None] = {}
        for member_id, _ in (*self.revoked, *self.granted):
            seen.setdefault(member_id, None)
        return list(seen)

    def badges_for(self, member_id: int, which: list[tuple[int, Badge]]) -> set[Badge]:
        return {badge for mid, badge in which if mid == member_id}


async def refresh_nickname(
    gateway: GuildGateway,
    member_id: int,
    granted: Iterable[Badge] = (),
    revoked: Iterable[Badge] = (),
) -> bool:
    """Re-derive one member's nickname from their badges.

    The badge set is the member's live roles plus *granted* minus
    *revoked*; the overrides cover role caches that lag behind writes made
    moments earlier.  Returns True only if a rename was issued and
    succeeded.
    """
    view = await gateway.member_view(member_id)
    if view is None:
        return False
    badges = (set(view.badges) | set(granted)) - set(revoked)
    nick = compose_nickname(view.display_name, badges)
    if nick == view.display_name:
        return False
    return await gateway.rename(member_id, nick)


class BadgeReconciler:
    """Diffs computed leaders against live marker-role holders.

    Parameters
    ----------
    store:
        Ledger the standings are computed from.
    roles:
        Marker-role names; used for the announcement text.
    dimensions:
        Tracked dimension → marker badge.  Defaults to text and voice.
    """

    def __init__(
        self,
        store: LedgerStore,
        roles: RoleNames,
        dimensions: dict[Dimension, Badge] | None = None,
    ) -> None:
        self.store = store
        self.role_names = badge_role_names(roles)
        self.dimensions = dict(LEADER_BADGES if dimensions is None else dimensions)

    async def reconcile(self, gateway: GuildGateway) -> ReconcileReport:
        guild_id = gateway.guild_id
        report = ReconcileReport(guild_id)

        for dimension, badge in self.dimensions.items():
            holders = await gateway.role_holders(badge)
            leader = top_by_dimension(self.store, guild_id, dimension)
            leader_id = leader.member_id if leader is not None else None

            # Revoke before grant so the end state never keeps a stale holder
            for member_id in sorted(holders):
                if member_id == leader_id:
                    continue
                ok = await gateway.revoke(member_id, badge, reason=f"Rankwarden: lost {dimension} lead")
                (report.revoked if ok else report.failed).append((member_id, badge))

            if leader_id is not None and leader_id not in holders:
                ok = await gateway.grant(leader_id, badge, reason=f"Rankwarden: {dimension} leader")
                (report.granted if ok else report.failed).append((leader_id, badge))

        await self._refresh_affected(gateway, report)
        await self._announce(gateway, report)

        if report.changed or report.failed:
            logger.info(
                "Reconciled guild %s: %d granted, %d revoked, %d failed",
                guild_id, len(report.granted), len(report.revoked), len(report.failed),
            )
        return report

    async def strip_leader_badges(self, gateway: GuildGateway) -> ReconcileReport:
        """Revoke every leader marker and re-derive every member's nickname.

        Standings are ignored; this is the clean slate used by an XP reset.
        """
        report = ReconcileReport(gateway.guild_id)
        for badge in self.dimensions.values():
            for member_id in sorted(await gateway.role_holders(badge)):
                ok = await gateway.revoke(member_id, badge, reason="Rankwarden: standings reset")
                (report.revoked if ok else report.failed).append((member_id, badge))

        for member_id in await gateway.member_ids():
            view = await gateway.member_view(member_id)
            if view is None or view.bot:
                continue
            revoked = report.badges_for(member_id, report.revoked)
            if await refresh_nickname(gateway, member_id, revoked=revoked):
                report.renamed.append(member_id)

        logger.info(
            "Stripped leader badges in guild %s: %d revoked, %d renamed",
            gateway.guild_id, len(report.revoked), len(report.renamed),
        )
        return report

    # -- internals -----------------------------------------------------------
    async def _refresh_affected(self, gateway: GuildGateway, report: ReconcileReport) -> None:
        for member_id in report.affected_members():
            granted = report.badges_for(member_id, report.granted)
            revoked = report.badges_for(member_id, report.revoked)
            if await refresh_nickname(gateway, member_id, granted=granted, revoked=revoked):
                report.renamed.append(member_id)

    async def _announce(self, gateway: GuildGateway, report: ReconcileReport) -> None:
        crowns: dict[int, list[Badge]] = {}
        for member_id, badge in report.granted:
            crowns.setdefault(member_id, []).append(badge)

        for member_id, badges in crowns.items():
            names = [self.role_names[b] for b in sorted(badges, key=lambda b: b.order)]
            embed = build_leader_embed(member_id, names)
            if await gateway.announce(RoutedChannel.LEVEL_UP, embed=embed):
                report.announced.append(member_id)


async def reset_standings(
    store: LedgerStore, reconciler: BadgeReconciler, gateway: GuildGateway
) -> tuple[int, ReconcileReport]:
    """Zero every XP counter of the guild, then strip all leader markers."""
    count = store.reset_guild(gateway.guild_id)
    logger.warning("XP reset for guild %s: %d entries zeroed", gateway.guild_id, count)
    report = await reconciler.strip_leader_badges(gateway)
    return count, report
