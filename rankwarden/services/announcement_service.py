"""
rankwarden.services.announcement_service — Routed Announcements
================================================================

Level-up celebrations go to the level-up channel; error diagnostics go
to every guild's log channel.  Embed and text construction lives in
:mod:`rankwarden.services.embeds`.  Channel resolution and send failures
are handled by the gateway, so nothing here raises.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from rankwarden.constants import RoutedChannel
from rankwarden.engine.accumulator import DeltaResult
from rankwarden.services.embeds import build_level_up_embed, error_report_text, voice_level_up_text
from rankwarden.services.gateway import GuildGateway

logger = logging.getLogger(__name__)

# Discord rejects message content above 2000 characters
_MAX_REPORT_LENGTH = 1900


async def announce_text_level_up(gateway: GuildGateway, member_id: int, result: DeltaResult) -> bool:
    if not result.leveled_up:
        return False
    return await gateway.announce(
        RoutedChannel.LEVEL_UP, embed=build_level_up_embed(member_id, result.new_level)
    )


async def announce_voice_level_up(gateway: GuildGateway, member_id: int, result: DeltaResult) -> bool:
    if not result.leveled_up:
        return False
    return await gateway.announce(
        RoutedChannel.LEVEL_UP, content=voice_level_up_text(member_id, result.new_level)
    )


async def report_error(
    gateways: Iterable[GuildGateway], label: str, err: BaseException | str
) -> int:
    """Post a diagnostic to each guild's log channel.  Returns how many landed."""
    content = error_report_text(label, err)[:_MAX_REPORT_LENGTH]
    delivered = 0
    for gateway in gateways:
        if await gateway.announce(RoutedChannel.LOG, content=content):
            delivered += 1
    logger.debug("Error report '%s' delivered to %d log channels", label, delivered)
    return delivered
