"""
rankwarden.bot.core — Bot Instance & Cog Loader
================================================

Defines :class:`RankwardenBot`, the ``commands.Bot`` subclass that owns
every piece of shared state:

1. The ledger store and its debounced flusher.
2. The level curve, XP accumulator, presence tracker and message cooldown.
3. The badge reconciler (plus one lock per guild so passes never overlap),
   the onboarding service and the temp-role scheduler.
4. The keep-alive HTTP server, run with uvicorn on the bot's own loop.

Cogs reach all of it through ``self.bot.*``.  Uncaught loop exceptions
and client ``on_error`` events are reported to every guild's log channel;
the process keeps running.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
import time

import discord
import uvicorn
from discord.ext import commands

from rankwarden.api.main import create_app
from rankwarden.config import RankwardenConfig
from rankwarden.engine.accumulator import XpAccumulator
from rankwarden.engine.activity import MessageCooldown, VoiceSnapshot
from rankwarden.engine.curve import LevelCurve
from rankwarden.engine.ledger import DebouncedFlusher, LedgerStore
from rankwarden.engine.presence import PresenceTracker
from rankwarden.services.announcement_service import report_error
from rankwarden.services.badge_service import BadgeReconciler, ReconcileReport
from rankwarden.services.gateway import DiscordGuildGateway
from rankwarden.services.onboarding_service import OnboardingService
from rankwarden.services.temp_roles import TempRoleScheduler

logger = logging.getLogger(__name__)

# Cog modules to load on startup.
EXTENSIONS: list[str] = [
    "rankwarden.bot.cogs.social",
    "rankwarden.bot.cogs.voice",
    "rankwarden.bot.cogs.membership",
    "rankwarden.bot.cogs.meta",
    "rankwarden.bot.cogs.admin",
    "rankwarden.bot.cogs.tasks",
]


class RankwardenBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`RankwardenConfig` from ``config.yaml``.
    store:
        The loaded ledger.  The bot installs its debounced flusher as the
        store's ``on_dirty`` hook.
    http_port:
        Port for the keep-alive server, or ``None`` to skip it.
    """

    def __init__(
        self,
        cfg: RankwardenConfig,
        store: LedgerStore,
        http_port: int | None = None,
    ) -> None:
        # GUILD_MEMBERS is privileged (enable it in the Developer Portal).
        # Message content is not needed: XP counts messages, never reads them.
        intents = discord.Intents.default()
        intents.members = True
        intents.voice_states = True
        intents.presences = False

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            description=f"{cfg.community_name} — XP & rank badges",
        )

        self.cfg = cfg
        self.store = store
        self.flusher = DebouncedFlusher(store, delay=cfg.storage.flush_delay_seconds)
        store.on_dirty = self.flusher.schedule

        leveling = cfg.leveling
        self.curve = LevelCurve(leveling.level_base, leveling.level_growth)
        self.accumulator = XpAccumulator(store, self.curve)
        self.presence = PresenceTracker()
        self.cooldown = MessageCooldown(leveling.message_cooldown_seconds)
        self.reconciler = BadgeReconciler(store, cfg.roles)
        self.onboarding = OnboardingService(
            store,
            cfg.roles,
            arrival_message=cfg.arrival_message,
            goodbye_message=cfg.goodbye_message,
            newbie_days=leveling.newbie_days,
        )
        self.temp_roles = TempRoleScheduler()

        self.http_port = http_port
        self._http_server: uvicorn.Server | None = None
        self._http_task: asyncio.Task | None = None
        self._reconcile_locks: dict[int, asyncio.Lock] = {}
        self._background: set[asyncio.Task] = set()
        self._started = time.monotonic()

    # -----------------------------------------------------------------------
    # Shared helpers for cogs
    # -----------------------------------------------------------------------
    def gateway_for(self, guild: discord.Guild) -> DiscordGuildGateway:
        return DiscordGuildGateway(guild, self.cfg.roles, self.cfg.channels)

    def gateways(self) -> list[DiscordGuildGateway]:
        return [self.gateway_for(g) for g in self.guilds]

    def reconcile_lock(self, guild_id: int) -> asyncio.Lock:
        lock = self._reconcile_locks.get(guild_id)
        if lock is None:
            lock = self._reconcile_locks[guild_id] = asyncio.Lock()
        return lock

    async def reconcile_guild(self, guild: discord.Guild) -> ReconcileReport:
        """Run one badge pass for *guild*, serialized with any other pass."""
        async with self.reconcile_lock(guild.id):
            return await self.reconciler.reconcile(self.gateway_for(guild))

    def voice_snapshot(self, guild_id: int, member_id: int) -> VoiceSnapshot | None:
        """Live voice state from the member cache (the voice-tick lookup)."""
        guild = self.get_guild(guild_id)
        member = guild.get_member(member_id) if guild is not None else None
        if member is None:
            return None
        voice = member.voice
        if voice is None:
            return VoiceSnapshot(connected=False)
        return VoiceSnapshot(
            connected=voice.channel is not None,
            self_mute=voice.self_mute,
            self_deaf=voice.self_deaf,
        )

    # StatusSource for the keep-alive API
    def uptime_seconds(self) -> float:
        return time.monotonic() - self._started

    def guild_count(self) -> int:
        return len(self.guilds)

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load cogs, install the loop error reporter, start the HTTP server.

        A cog that fails to load is logged and skipped.
        """
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

        asyncio.get_running_loop().set_exception_handler(self._handle_loop_exception)

        if self.http_port is not None:
            config = uvicorn.Config(
                create_app(self),
                host="0.0.0.0",
                port=self.http_port,
                log_config=None,
                access_log=False,
            )
            self._http_server = uvicorn.Server(config)
            self._http_task = asyncio.create_task(self._http_server.serve(), name="keepalive-http")
            logger.info("HTTP keep-alive listening on :%d", self.http_port)

    async def on_ready(self) -> None:
        """Fired when the bot has connected and the cache is populated."""
        assert self.user is not None  # guaranteed after on_ready
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)

        # --- Slash-command sync ---------------------------------------------
        dev_guild_id = os.getenv("DEV_GUILD_ID")
        if dev_guild_id:
            guild = discord.Object(id=int(dev_guild_id))
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
            logger.info("Synced %d commands to dev guild %s", len(synced), dev_guild_id)
        else:
            synced = await self.tree.sync()
            logger.info("Synced %d commands globally", len(synced))

        # --- Marker roles -------------------------------------------------------
        for gateway in self.gateways():
            await gateway.ensure_roles()

    async def on_error(self, event_method: str, /, *args, **kwargs) -> None:
        logger.exception("Unhandled error in %s", event_method)
        err = sys.exc_info()[1]
        await report_error(self.gateways(), f"Client error in {event_method}", err or "unknown")

    def _handle_loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict) -> None:
        loop.default_exception_handler(context)
        err = context.get("exception") or context.get("message", "unknown")
        if self.is_closed():
            return
        task = loop.create_task(report_error(self.gateways(), "Unhandled loop error", err))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def close(self) -> None:
        """Graceful shutdown — stop timers and the HTTP server, flush the ledger."""
        logger.info("Bot shutting down…")
        await self.temp_roles.aclose()
        if self._http_server is not None:
            self._http_server.should_exit = True
        if self._http_task is not None:
            await asyncio.gather(self._http_task, return_exceptions=True)
        await self.flusher.aclose()
        await super().close()
