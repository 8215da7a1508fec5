"""
rankwarden.config — YAML Configuration Loader
==============================================

Reads ``config.yaml`` for the soft settings: community identity, marker
role names, routed channel names, leveling tuning and storage.  Secrets
(``DISCORD_TOKEN``, ``DATABASE_URL``) stay in ``.env``.

Usage::

    from rankwarden.config import load_config

    cfg = load_config()                 # reads ./config.yaml by default
    print(cfg.leveling.message_xp)      # 15
    print(cfg.roles.newbie)             # "🐣 Newbie.exe"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings objects
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RoleNames:
    """Names of the marker roles.  Looked up (and auto-created) by name."""

    newbie: str = "\U0001f423 Newbie.exe"
    graduate: str = "\U0001f916 NPC"
    text_leader: str = "\U0001f4ac Top Chatter"
    voice_leader: str = "\U0001f3a7 Top Voice"


@dataclass(frozen=True, slots=True)
class ChannelNames:
    """Exact names of the routed text channels (matched case-insensitively)."""

    log: str = "ℹ️᲼\U0001d543ogs"
    level_up: str = "⬆️᲼\U0001d543evel⋅up"
    arrival: str = "✈️᲼\U0001d538rrival⋅zone"


@dataclass(frozen=True, slots=True)
class LevelingSettings:
    """XP sources, level curve and onboarding timing."""

    message_xp: int = 15
    message_cooldown_seconds: float = 60.0
    voice_xp_per_minute: int = 5
    level_base: int = 100
    level_growth: float = 1.25
    newbie_days: int = 14


@dataclass(frozen=True, slots=True)
class StorageSettings:
    """Where the ledger document lives.

    ``backend`` is ``"json"`` (a single file at *path*) or ``"sql"``
    (``DATABASE_URL`` via SQLAlchemy).
    """

    backend: str = "json"
    path: str = "data.json"
    flush_delay_seconds: float = 0.5


@dataclass(frozen=True, slots=True)
class RankwardenConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    community_name: str
    roles: RoleNames = field(default_factory=RoleNames)
    channels: ChannelNames = field(default_factory=ChannelNames)
    leveling: LevelingSettings = field(default_factory=LevelingSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    http_port: int = 10000
    arrival_message: str = (
        "Welcome to the darkness, {user} — may your stay be pleasantly weird. "
        "No unsolicited pings; enjoy the chaos. \U0001f5a4"
    )
    goodbye_message: str = "Goodbye {user} — behave out there."


_STORAGE_BACKENDS = {"json", "sql"}


def _section(raw: dict, key: str) -> dict:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a mapping")
    return value


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def parse_config(raw: dict) -> RankwardenConfig:
    """Build a :class:`RankwardenConfig` from an already-parsed mapping.

    Raises
    ------
    KeyError
        If ``community_name`` is missing.
    ValueError
        If a section has the wrong shape or an unknown storage backend.
    """
    roles = _section(raw, "roles")
    channels = _section(raw, "channels")
    leveling = _section(raw, "leveling")
    storage = _section(raw, "storage")

    storage_settings = StorageSettings(**storage)
    if storage_settings.backend not in _STORAGE_BACKENDS:
        raise ValueError(
            f"Unknown storage backend '{storage_settings.backend}' "
            f"(expected one of {sorted(_STORAGE_BACKENDS)})"
        )

    defaults = RankwardenConfig(community_name="")
    return RankwardenConfig(
        community_name=raw["community_name"],
        roles=RoleNames(**roles),
        channels=ChannelNames(**channels),
        leveling=LevelingSettings(**leveling),
        storage=storage_settings,
        http_port=int(raw.get("http_port", defaults.http_port)),
        arrival_message=raw.get("arrival_message") or defaults.arrival_message,
        goodbye_message=raw.get("goodbye_message") or defaults.goodbye_message,
    )


def load_config(path: str | Path = "config.yaml") -> RankwardenConfig:
    """Read *path* and return a :class:`RankwardenConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return parse_config(raw)
