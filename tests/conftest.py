"""
tests/conftest.py — Shared Test Fixtures
=========================================

- ``store`` — a :class:`LedgerStore` over an in-memory backend.
- ``db_engine`` — in-memory SQLite with the ledger table.
- ``gateway`` — a :class:`FakeGateway` standing in for one Discord guild.
"""

from __future__ import annotations

import pytest
from sqlalchemy import Engine, create_engine

from rankwarden.config import RoleNames
from rankwarden.constants import Badge, RoutedChannel
from rankwarden.database.models import Base
from rankwarden.engine.ledger import LedgerStore, MemoryBackend
from rankwarden.services.gateway import MemberView

GUILD_ID = 1


class FakeGateway:
    """In-memory guild: role holders, display names and routed channels.

    Every mutating call is recorded in :attr:`calls`.  Setting
    :attr:`fail` makes every mutating call report failure (like a
    permission error swallowed by ``best_effort``).
    """

    def __init__(self, guild_id: int = GUILD_ID) -> None:
        self.guild_id = guild_id
        self.holders: dict[Badge, set[int]] = {badge: set() for badge in Badge}
        self.names: dict[int, str] = {}
        self.bots: set[int] = set()
        self.channels: set[RoutedChannel] = set(RoutedChannel)
        self.fail = False
        self.calls: list[tuple] = []
        self.announcements: list[tuple[RoutedChannel, str | None, object]] = []
        self.sent: list[tuple[int, str]] = []
        self.roles_ensured = 0

    def add_member(self, member_id: int, name: str, *badges: Badge, bot: bool = False) -> None:
        self.names[member_id] = name
        for badge in badges:
            self.holders[badge].add(member_id)
        if bot:
            self.bots.add(member_id)

    @property
    def role_calls(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ("grant", "revoke")]

    async def ensure_roles(self) -> None:
        self.roles_ensured += 1

    async def role_holders(self, badge: Badge) -> set[int]:
        return set(self.holders[badge])

    async def member_ids(self) -> list[int]:
        return list(self.names)

    async def member_view(self, member_id: int) -> MemberView | None:
        if member_id not in self.names:
            return None
        badges = frozenset(b for b, holders in self.holders.items() if member_id in holders)
        return MemberView(member_id, self.names[member_id], badges, member_id in self.bots)

    async def grant(self, member_id: int, badge: Badge, *, reason: str) -> bool:
        self.calls.append(("grant", member_id, badge))
        if self.fail:
            return False
        self.holders[badge].add(member_id)
        return True

    async def revoke(self, member_id: int, badge: Badge, *, reason: str) -> bool:
        self.calls.append(("revoke", member_id, badge))
        if self.fail:
            return False
        self.holders[badge].discard(member_id)
        return True

    async def rename(self, member_id: int, nick: str) -> bool:
        self.calls.append(("rename", member_id, nick))
        if self.fail:
            return False
        self.names[member_id] = nick
        return True

    async def announce(self, channel: RoutedChannel, *, content=None, embed=None) -> bool:
        if self.fail or channel not in self.channels:
            return False
        self.announcements.append((channel, content, embed))
        return True

    async def send_to(self, channel_id: int, *, content: str) -> bool:
        if self.fail:
            return False
        self.sent.append((channel_id, content))
        return True


@pytest.fixture
def roles() -> RoleNames:
    return RoleNames()


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def store(backend: MemoryBackend) -> LedgerStore:
    return LedgerStore(backend)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with the ledger table.

    StaticPool so every thread (``run_db`` uses ``asyncio.to_thread``)
    shares the same in-memory database.
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine
