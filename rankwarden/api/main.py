"""
rankwarden.api.main — Keep-Alive HTTP Endpoints
================================================

A tiny FastAPI app so hosting platforms that expect a web service see a
live port.  The bot serves it with uvicorn on its own event loop (see
:meth:`rankwarden.bot.core.RankwardenBot.setup_hook`).

- ``GET /`` → ``ok <iso timestamp>`` (plain text)
- ``GET /health`` → ``{"ok": true, "uptime": seconds, "guilds": n}``

For local poking without Discord::

    uvicorn rankwarden.api.main:app --port 10000
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from typing import Protocol

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

logger = logging.getLogger(__name__)


class StatusSource(Protocol):
    """What the health endpoint reports on (the running bot)."""

    def uptime_seconds(self) -> float: ...

    def guild_count(self) -> int: ...


class _StandaloneStatus:
    def __init__(self) -> None:
        self._started = time.monotonic()

    def uptime_seconds(self) -> float:
        return time.monotonic() - self._started

    def guild_count(self) -> int:
        return 0


def create_app(status: StatusSource | None = None) -> FastAPI:
    """Build the keep-alive app reporting on *status*."""
    source = status if status is not None else _StandaloneStatus()
    app = FastAPI(title="Rankwarden", docs_url=None, redoc_url=None, openapi_url=None)

    @app.get("/", response_class=PlainTextResponse)
    async def root() -> str:
        return f"ok {datetime.now(UTC).isoformat()}"

    @app.get("/health")
    async def health() -> dict:
        return {
            "ok": True,
            "uptime": round(source.uptime_seconds(), 3),
            "guilds": source.guild_count(),
        }

    return app


app = create_app()
