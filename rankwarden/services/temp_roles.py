"""
rankwarden.services.temp_roles — Time-Boxed Role Grants
========================================================

``/temprole`` grants a role and revokes it again after a duration.  The
revoke timer is an in-memory asyncio task: a restart before expiry
leaves the role granted for good.

Durations use short unit suffixes, optionally combined::

    "10s"  "15m"  "2h"  "1d"  "1w"  "1h30m"  "2 hours"  "500"  (bare = ms)
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from datetime import timedelta

from rankwarden.services.best_effort import best_effort

logger = logging.getLogger(__name__)

MIN_TEMP_ROLE = timedelta(seconds=10)

_UNIT_MS: dict[str, int] = {
    "ms": 1, "msec": 1, "msecs": 1, "millisecond": 1, "milliseconds": 1,
    "s": 1000, "sec": 1000, "secs": 1000, "second": 1000, "seconds": 1000,
    "m": 60_000, "min": 60_000, "mins": 60_000, "minute": 60_000, "minutes": 60_000,
    "h": 3_600_000, "hr": 3_600_000, "hrs": 3_600_000, "hour": 3_600_000, "hours": 3_600_000,
    "d": 86_400_000, "day": 86_400_000, "days": 86_400_000,
    "w": 604_800_000, "week": 604_800_000, "weeks": 604_800_000,
}

_PART = re.compile(r"\s*(\d+(?:\.\d+)?)\s*([a-z]*)", re.IGNORECASE)

TimerKey = tuple[int, int, int]  # (guild, member, role)


def parse_duration(text: str) -> timedelta | None:
    """Parse *text* into a duration, or ``None`` if it is not one.

    A bare number with no unit is read as milliseconds.  Below-minimum
    values still parse; the caller enforces :data:`MIN_TEMP_ROLE`.
    """
    text = (text or "").strip()
    if not text:
        return None

    total_ms = 0.0
    pos = 0
    parts = 0
    while pos < len(text):
        match = _PART.match(text, pos)
        if match is None or match.end() == pos:
            return None
        amount, unit = match.groups()
        unit = unit.lower() or "ms"
        if unit not in _UNIT_MS:
            return None
        total_ms += float(amount) * _UNIT_MS[unit]
        pos = match.end()
        parts += 1
        while pos < len(text) and text[pos].isspace():
            pos += 1

    if parts == 0 or total_ms <= 0:
        return None
    return timedelta(milliseconds=total_ms)


class TempRoleScheduler:
    """Pending revoke timers keyed by (guild, member, role).

    Scheduling a key that already has a timer replaces it, so re-running
    ``/temprole`` extends or shortens the grant instead of stacking.
    """

    def __init__(self) -> None:
        self._tasks: dict[TimerKey, asyncio.Task] = {}

    def schedule(
        self,
        key: TimerKey,
        delay: timedelta,
        revoke: Callable[[], Awaitable[object]],
    ) -> bool:
        """Start (or restart) the revoke timer.  Returns True if one was replaced."""
        replaced = self.cancel(key)
        task = asyncio.get_running_loop().create_task(
            self._run(key, delay.total_seconds(), revoke),
            name=f"temprole-{key[0]}-{key[1]}-{key[2]}",
        )
        self._tasks[key] = task
        return replaced

    def cancel(self, key: TimerKey) -> bool:
        task = self._tasks.pop(key, None)
        if task is None:
            return False
        task.cancel()
        return True

    def pending(self) -> list[TimerKey]:
        return list(self._tasks)

    async def _run(
        self,
        key: TimerKey,
        seconds: float,
        revoke: Callable[[], Awaitable[object]],
    ) -> None:
        try:
            await asyncio.sleep(seconds)
            await best_effort(revoke(), what=f"temp role expiry {key}")
            logger.info("Temp role expired: guild=%s member=%s role=%s", *key)
        finally:
            if self._tasks.get(key) is asyncio.current_task():
                del self._tasks[key]

    async def aclose(self) -> None:
        """Cancel every pending timer (the roles stay granted)."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
