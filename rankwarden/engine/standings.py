"""
rankwarden.engine.standings — Standing Aggregator
==================================================

Derives rankings from the ledger on demand.  Nothing here is persisted.

Ties are broken by ledger iteration order (the member whose entry was
created first wins).  That is a simplification, not a fairness guarantee.
"""

from __future__ import annotations

from dataclasses import dataclass

from rankwarden.constants import LEADERBOARD_SIZE, Dimension
from rankwarden.engine.ledger import LedgerStore


@dataclass(frozen=True, slots=True)
class Standing:
    member_id: int
    value: int


def top_by_dimension(
    store: LedgerStore, guild_id: int, dimension: Dimension
) -> Standing | None:
    """The single top holder of *dimension*, or ``None``.

    A leader with zero XP is no leader: the badge is never awarded for
    inactivity.
    """
    best: Standing | None = None
    for member_id, entry in store.entries_for(guild_id):
        value = entry.get(dimension)
        if value <= 0:
            continue
        if best is None or value > best.value:
            best = Standing(member_id, value)
    return best


def ranking(
    store: LedgerStore,
    guild_id: int,
    dimension: Dimension,
    limit: int = LEADERBOARD_SIZE,
) -> list[Standing]:
    """Top *limit* members by *dimension*, descending, stable on ties."""
    standings = [
        Standing(member_id, entry.get(dimension))
        for member_id, entry in store.entries_for(guild_id)
    ]
    standings.sort(key=lambda s: s.value, reverse=True)
    return standings[:limit]
