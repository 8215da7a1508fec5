"""
tests/test_gateway.py — Best-Effort Calls & Discord Gateway
============================================================

The Discord gateway is exercised against ``MagicMock`` guilds; no
network access is needed.
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from rankwarden.config import ChannelNames, RoleNames
from rankwarden.constants import Badge, RoutedChannel
from rankwarden.services.best_effort import best_effort
from rankwarden.services.gateway import DiscordGuildGateway, find_text_channel


def run_async(coro):
    """Run an async coroutine in a fresh event loop."""
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# best_effort
# ---------------------------------------------------------------------------
class TestBestEffort:
    def test_success_carries_value(self):
        async def ok():
            return 42

        result = run_async(best_effort(ok(), what="answer"))
        assert result.ok and bool(result)
        assert result.value == 42
        assert result.error is None

    def test_failure_is_captured(self):
        async def boom():
            raise RuntimeError("missing access")

        result = run_async(best_effort(boom(), what="grant"))
        assert not result
        assert isinstance(result.error, RuntimeError)
        assert result.value is None


# ---------------------------------------------------------------------------
# Discord gateway
# ---------------------------------------------------------------------------
def _role(name: str, members=(), position: int = 1):
    role = MagicMock()
    role.name = name
    role.members = list(members)
    role.position = position
    role.edit = AsyncMock()
    return role


def _member(member_id: int, display_name: str, roles=(), bot: bool = False):
    member = MagicMock()
    member.id = member_id
    member.display_name = display_name
    member.roles = list(roles)
    member.bot = bot
    member.add_roles = AsyncMock()
    member.remove_roles = AsyncMock()
    member.edit = AsyncMock()
    return member


def _text_channel(name: str):
    channel = MagicMock(spec=discord.TextChannel)
    channel.name = name
    channel.send = AsyncMock()
    return channel


@pytest.fixture
def roles() -> RoleNames:
    return RoleNames()


@pytest.fixture
def guild(roles):
    guild = MagicMock()
    guild.id = 1
    guild.roles = []
    guild.members = []
    guild.text_channels = []
    guild.me = SimpleNamespace(top_role=SimpleNamespace(position=10))
    guild.get_member = MagicMock(return_value=None)
    guild.fetch_member = AsyncMock(side_effect=discord.NotFound(MagicMock(status=404), "Unknown Member"))
    guild.create_role = AsyncMock(side_effect=lambda name, reason: _role(name))
    return guild


@pytest.fixture
def gateway(guild, roles) -> DiscordGuildGateway:
    return DiscordGuildGateway(guild, roles, ChannelNames())


class TestFindTextChannel:
    def test_case_insensitive(self):
        guild = SimpleNamespace(text_channels=[SimpleNamespace(name="Level-Up")])
        assert find_text_channel(guild, "level-up") is guild.text_channels[0]

    def test_missing(self):
        guild = SimpleNamespace(text_channels=[SimpleNamespace(name="general")])
        assert find_text_channel(guild, "logs") is None


class TestRoles:
    def test_ensure_roles_creates_missing(self, gateway, guild, roles):
        guild.roles = [_role(roles.newbie)]

        run_async(gateway.ensure_roles())

        created = [c.kwargs["name"] for c in guild.create_role.await_args_list]
        assert created == [roles.graduate, roles.text_leader, roles.voice_leader]

    def test_leader_roles_lifted_below_bot(self, gateway, guild):
        guild.roles = []
        created = []

        def create(name, reason):
            role = _role(name)
            created.append(role)
            return role

        guild.create_role.side_effect = create
        run_async(gateway.ensure_roles())

        newbie, graduate, text, voice = created
        newbie.edit.assert_not_awaited()
        graduate.edit.assert_not_awaited()
        assert text.edit.await_args.kwargs["position"] == 9
        assert voice.edit.await_args.kwargs["position"] == 9

    def test_create_failure_is_tolerated(self, gateway, guild):
        guild.create_role.side_effect = RuntimeError("missing permissions")
        run_async(gateway.ensure_roles())
        assert guild.create_role.await_count == 4

    def test_role_holders(self, gateway, guild, roles):
        guild.roles = [_role(roles.text_leader, members=[SimpleNamespace(id=5)])]
        assert run_async(gateway.role_holders(Badge.TEXT_LEADER)) == {5}
        assert run_async(gateway.role_holders(Badge.VOICE_LEADER)) == set()


class TestMembers:
    def test_member_view_reads_badges(self, gateway, guild, roles):
        member = _member(7, "🐣 Ada", roles=[SimpleNamespace(name=roles.newbie), SimpleNamespace(name="@everyone")])
        guild.get_member.return_value = member

        view = run_async(gateway.member_view(7))

        assert view.display_name == "🐣 Ada"
        assert view.badges == {Badge.NEWBIE}
        assert view.bot is False

    def test_member_view_falls_back_to_fetch(self, gateway, guild):
        member = _member(7, "Ada")
        guild.fetch_member = AsyncMock(return_value=member)
        assert run_async(gateway.member_view(7)).member_id == 7

    def test_unknown_member(self, gateway):
        assert run_async(gateway.member_view(7)) is None
        assert run_async(gateway.grant(7, Badge.NEWBIE, reason="test")) is False

    def test_grant_success(self, gateway, guild, roles):
        role = _role(roles.text_leader)
        guild.roles = [role]
        member = _member(7, "Ada")
        guild.get_member.return_value = member

        assert run_async(gateway.grant(7, Badge.TEXT_LEADER, reason="test")) is True
        member.add_roles.assert_awaited_once_with(role, reason="test")

    def test_grant_failure_returns_false(self, gateway, guild, roles):
        guild.roles = [_role(roles.text_leader)]
        member = _member(7, "Ada")
        member.add_roles.side_effect = RuntimeError("role hierarchy")
        guild.get_member.return_value = member

        assert run_async(gateway.grant(7, Badge.TEXT_LEADER, reason="test")) is False

    def test_revoke_without_role_is_false(self, gateway, guild):
        guild.get_member.return_value = _member(7, "Ada")
        assert run_async(gateway.revoke(7, Badge.VOICE_LEADER, reason="test")) is False

    def test_rename_empty_clears_nick(self, gateway, guild):
        member = _member(7, "💬")
        guild.get_member.return_value = member

        assert run_async(gateway.rename(7, "")) is True
        assert member.edit.await_args.kwargs["nick"] is None


class TestChannels:
    def test_announce_routes_by_name(self, gateway, guild):
        channel = _text_channel(ChannelNames().level_up)
        guild.text_channels = [_text_channel("general"), channel]

        assert run_async(gateway.announce(RoutedChannel.LEVEL_UP, content="hi")) is True
        channel.send.assert_awaited_once_with(content="hi")

    def test_announce_missing_channel(self, gateway):
        assert run_async(gateway.announce(RoutedChannel.LOG, content="hi")) is False

    def test_announce_send_failure(self, gateway, guild):
        channel = _text_channel(ChannelNames().log)
        channel.send.side_effect = RuntimeError("missing access")
        guild.text_channels = [channel]
        assert run_async(gateway.announce(RoutedChannel.LOG, content="hi")) is False

    def test_send_to_requires_text_channel(self, gateway, guild):
        guild.get_channel = MagicMock(return_value=SimpleNamespace(name="voice"))
        assert run_async(gateway.send_to(9, content="hi")) is False

        channel = _text_channel("welcome")
        guild.get_channel = MagicMock(return_value=channel)
        assert run_async(gateway.send_to(9, content="hi")) is True
