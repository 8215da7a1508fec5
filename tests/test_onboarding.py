"""
tests/test_onboarding.py — Join, Leave & Promotion Sweep
=========================================================
"""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeGateway
from rankwarden.constants import Badge, RoutedChannel
from rankwarden.engine.ledger import MemberMeta
from rankwarden.services.onboarding_service import DAY_MS, OnboardingService

A, B, C = 100, 200, 300
NOW = 1_700_000_000_000


def run_async(coro):
    """Run an async coroutine in a fresh event loop."""
    return asyncio.run(coro)


class FakeClock:
    def __init__(self, now: int = NOW) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def onboarding(store, roles, clock) -> OnboardingService:
    return OnboardingService(
        store,
        roles,
        arrival_message="Welcome {user}!",
        goodbye_message="Goodbye {user}.",
        newbie_days=14,
        clock=clock,
    )


class TestOnJoin:
    def test_full_flow(self, onboarding, store, gateway):
        gateway.add_member(A, "Alice")

        run_async(onboarding.on_join(gateway, A, None))

        assert gateway.roles_ensured == 1
        assert A in gateway.holders[Badge.NEWBIE]
        assert store.meta(1, A) == MemberMeta(joined_at=NOW, newbie_since=NOW, original_nick=None)
        assert gateway.names[A] == "🐣 Alice"
        assert gateway.announcements == [(RoutedChannel.ARRIVAL, f"Welcome <@{A}>!", None)]

    def test_original_nick_recorded(self, onboarding, store, gateway):
        gateway.add_member(A, "Ally")
        run_async(onboarding.on_join(gateway, A, "Ally"))
        assert store.meta(1, A).original_nick == "Ally"

    def test_fallback_welcome_when_arrival_channel_missing(self, onboarding, gateway):
        gateway.add_member(A, "Alice")
        gateway.channels.discard(RoutedChannel.ARRIVAL)
        onboarding.set_welcome(1, 555, "Hi {user}, read the rules")

        run_async(onboarding.on_join(gateway, A, None))

        assert gateway.sent == [(555, f"Hi <@{A}>, read the rules")]

    def test_fallback_without_message_uses_arrival_text(self, onboarding, gateway):
        gateway.add_member(A, "Alice")
        gateway.channels.discard(RoutedChannel.ARRIVAL)
        onboarding.set_welcome(1, 555, None)

        run_async(onboarding.on_join(gateway, A, None))

        assert gateway.sent == [(555, f"Welcome <@{A}>!")]

    def test_no_fallback_configured(self, onboarding, gateway):
        gateway.add_member(A, "Alice")
        gateway.channels.discard(RoutedChannel.ARRIVAL)
        run_async(onboarding.on_join(gateway, A, None))
        assert gateway.sent == []

    def test_failed_grant_still_records_member(self, onboarding, store, gateway):
        gateway.add_member(A, "Alice")
        gateway.fail = True
        run_async(onboarding.on_join(gateway, A, None))
        assert store.meta(1, A).newbie_since == NOW
        assert gateway.names[A] == "Alice"


class TestOnLeave:
    def test_default_template_posted_to_log(self, onboarding, gateway):
        run_async(onboarding.on_leave(gateway, A, "alice#0001"))
        assert gateway.announcements == [
            (RoutedChannel.LOG, f"📤 Goodbye alice#0001. ({A})", None),
        ]

    def test_custom_template_and_reset(self, onboarding, gateway):
        assert onboarding.set_goodbye(1, "Bye {user}") is True
        run_async(onboarding.on_leave(gateway, A, "alice"))
        assert gateway.announcements[-1][1] == f"📤 Bye alice ({A})"

        assert onboarding.set_goodbye(1, None) is False
        run_async(onboarding.on_leave(gateway, A, None))
        assert gateway.announcements[-1][1] == f"📤 Goodbye someone. ({A})"

    def test_templates_are_per_guild(self, onboarding):
        onboarding.set_goodbye(1, "Bye {user}")
        assert onboarding.goodbye_for(2) == "Goodbye {user}."


class TestPromotion:
    def _newbie(self, store, gateway, member_id, name, since):
        gateway.add_member(member_id, f"🐣 {name}", Badge.NEWBIE)
        store.put_meta(1, member_id, MemberMeta(joined_at=since, newbie_since=since))

    def test_is_promotion_due(self, onboarding):
        meta = MemberMeta(joined_at=0, newbie_since=NOW - 14 * DAY_MS)
        assert onboarding.is_promotion_due(meta, holds_newbie=True)
        assert not onboarding.is_promotion_due(meta, holds_newbie=False)
        assert not onboarding.is_promotion_due(
            MemberMeta(joined_at=0, newbie_since=NOW - 14 * DAY_MS + 1), holds_newbie=True,
        )
        assert not onboarding.is_promotion_due(MemberMeta(joined_at=0), holds_newbie=True)

    def test_promotes_only_due_members(self, onboarding, store, gateway, roles):
        self._newbie(store, gateway, A, "Alice", NOW - 15 * DAY_MS)
        self._newbie(store, gateway, B, "Bob", NOW - 3 * DAY_MS)

        promoted = run_async(onboarding.promote_due(gateway))

        assert promoted == [A]
        assert A not in gateway.holders[Badge.NEWBIE]
        assert A in gateway.holders[Badge.GRADUATE]
        assert gateway.names[A] == "🤖 Alice"
        assert store.meta(1, A).newbie_since is None
        assert B in gateway.holders[Badge.NEWBIE]
        assert store.meta(1, B).newbie_since == NOW - 3 * DAY_MS
        channel, content, _ = gateway.announcements[0]
        assert channel is RoutedChannel.LEVEL_UP
        assert roles.graduate in content and f"<@{A}>" in content

    def test_member_without_newbie_role_not_promoted(self, onboarding, store, gateway):
        gateway.add_member(C, "Cleo")
        store.put_meta(1, C, MemberMeta(joined_at=0, newbie_since=NOW - 30 * DAY_MS))

        assert run_async(onboarding.promote_due(gateway)) == []
        assert store.meta(1, C).newbie_since == NOW - 30 * DAY_MS

    def test_second_sweep_is_a_noop(self, onboarding, store, gateway):
        self._newbie(store, gateway, A, "Alice", NOW - 15 * DAY_MS)
        run_async(onboarding.promote_due(gateway))
        gateway.calls.clear()

        assert run_async(onboarding.promote_due(gateway)) == []
        assert gateway.calls == []

    def test_leader_badge_survives_promotion(self, onboarding, store, gateway):
        self._newbie(store, gateway, A, "Alice", NOW - 15 * DAY_MS)
        gateway.holders[Badge.TEXT_LEADER].add(A)
        gateway.names[A] = "🐣 💬 Alice"

        run_async(onboarding.promote_due(gateway))

        assert gateway.names[A] == "🤖 💬 Alice"

    def test_rejoin_during_promotion_keeps_fresh_record(self, onboarding, store, clock):
        class RejoiningGateway(FakeGateway):
            """Member leaves and rejoins while their newbie role is being revoked."""

            async def revoke(self, member_id, badge, *, reason):
                ok = await super().revoke(member_id, badge, reason=reason)
                clock.now = NOW + 30 * DAY_MS
                await onboarding.on_join(self, member_id, None)
                return ok

        gateway = RejoiningGateway()
        self._newbie(store, gateway, A, "Alice", NOW - 15 * DAY_MS)

        promoted = run_async(onboarding.promote_due(gateway))

        assert promoted == []
        assert store.meta(1, A).newbie_since == NOW + 30 * DAY_MS
        assert A in gateway.holders[Badge.NEWBIE]
        assert not any(c == RoutedChannel.LEVEL_UP for c, _, _ in gateway.announcements)

    def test_other_guilds_ignored(self, onboarding, store, gateway):
        store.put_meta(2, A, MemberMeta(joined_at=0, newbie_since=0))
        gateway.holders[Badge.NEWBIE].add(A)
        assert run_async(onboarding.promote_due(gateway)) == []
