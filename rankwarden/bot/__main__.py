"""
rankwarden.bot.__main__ — Entry point for ``python -m rankwarden.bot``
======================================================================

Wiring:
1. Load .env (secrets and deploy settings).
2. Load config.yaml (soft settings).
3. Open the ledger backend (JSON file or SQL) and load the store.
4. Create the RankwardenBot and hand it config + store.
5. Start the bot (blocking — runs the asyncio event loop).

Run with::

    python -m rankwarden.bot
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

from rankwarden.bot.core import RankwardenBot
from rankwarden.config import RankwardenConfig, load_config
from rankwarden.database.engine import create_db_engine, init_db
from rankwarden.engine.ledger import JsonFileBackend, LedgerStore, SqlBackend, StorageBackend

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("rankwarden")


def build_backend(cfg: RankwardenConfig) -> StorageBackend:
    if cfg.storage.backend == "sql":
        engine = create_db_engine()
        init_db(engine)
        return SqlBackend(engine)
    return JsonFileBackend(cfg.storage.path)


def main() -> None:
    """Bootstrap and run the Rankwarden bot."""

    # 1. Environment variables (secrets).
    load_dotenv()

    token = os.getenv("DISCORD_TOKEN")
    if not token or token == "your-discord-bot-token-here":
        logger.critical(
            "DISCORD_TOKEN is not set.  "
            "Copy .env.example → .env and paste your bot token."
        )
        sys.exit(1)

    # 2. Soft configuration.
    cfg = load_config()
    logger.info("Config loaded — Community: %s", cfg.community_name)

    # 3. Ledger.
    store = LedgerStore(build_backend(cfg))

    # 4. Bot.  PORT (set by most hosts) wins over the configured port.
    port = int(os.getenv("PORT") or cfg.http_port)
    bot = RankwardenBot(cfg=cfg, store=store, http_port=port)

    # 5. Run (blocks until Ctrl+C or SIGTERM).
    logger.info("Starting Rankwarden bot…")
    try:
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")
    finally:
        store.flush()


if __name__ == "__main__":
    main()
