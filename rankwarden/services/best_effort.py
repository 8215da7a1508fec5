"""
rankwarden.services.best_effort — Discard-and-Log Platform Calls
=================================================================

Role grants, renames and channel sends fail for boring reasons: the
network blips, the bot's role sits below the target's, a channel was
deleted.  None of those is fatal and none is retried; the next scheduled
reconciliation converges state again.

Every outbound platform call goes through :func:`best_effort`, which
turns an exception into an :class:`OpResult` the caller may inspect or
ignore.  Cancellation is the one exception that still propagates.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class OpResult(Generic[T]):
    """Outcome of a best-effort call."""

    ok: bool
    value: T | None = None
    error: BaseException | None = None

    def __bool__(self) -> bool:
        return self.ok


async def best_effort(awaitable: Awaitable[T], *, what: str) -> OpResult[T]:
    """Await *awaitable*, converting any ``Exception`` into a failed result.

    Parameters
    ----------
    awaitable:
        The platform call, e.g. ``member.add_roles(role)``.
    what:
        Short description for the log line (``"grant Top Voice to 123"``).
    """
    try:
        value = await awaitable
    except Exception as exc:
        logger.warning("Best-effort call failed: %s (%s: %s)", what, type(exc).__name__, exc)
        return OpResult(ok=False, error=exc)
    return OpResult(ok=True, value=value)
