"""
Rankwarden — XP, Standings & Rank Badges for Discord
=====================================================
Onboards new members, tracks engagement through text and voice XP, and
reflects standing through marker roles and nickname badges.

Package layout::

    rankwarden/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Badges, dimensions, platform limits
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # ledger_records table
    ├── engine/
    │   ├── curve.py       # Level curve (XP ↔ level)
    │   ├── ledger.py      # Ledger store, backends, debounced flush
    │   ├── accumulator.py # Delta application + level-up detection
    │   ├── presence.py    # Voice presence state machine
    │   ├── activity.py    # Message cooldown + voice tick producers
    │   ├── standings.py   # Top holders and rankings
    │   └── nickname.py    # Badge glyph stripping + composition
    ├── services/
    │   ├── best_effort.py       # Discard-and-log wrapper for platform calls
    │   ├── gateway.py           # discord.Guild → role/nick/channel capability
    │   ├── badge_service.py     # Leader badge reconciliation
    │   ├── onboarding_service.py # Join, leave, newbie promotion
    │   ├── announcement_service.py # Channel routing + sends
    │   ├── embeds.py            # Embed builders
    │   └── temp_roles.py        # Time-boxed role grants
    ├── bot/
    │   ├── core.py        # Bot subclass, cog loader, error reporting
    │   └── cogs/          # social, voice, membership, meta, admin, tasks
    └── api/
        └── main.py        # Keep-alive FastAPI app
"""

__version__ = "0.1.0"
