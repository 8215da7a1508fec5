"""
rankwarden.engine.ledger — Ledger Store & Durable Write-Back
=============================================================

The ledger is a single in-memory document::

    {
      "members": { "<guild>:<member>": { joinedAt, newbieSince, originalNick } },
      "xp":      { "<guild>:<member>": { xp, text, voice } }
    }

:class:`LedgerStore` owns that document.  The XP accumulator and the
standing aggregator read and write it synchronously on the event loop;
durability is delegated to a pluggable backend:

- :class:`JsonFileBackend` — one JSON file, replaced atomically.
- :class:`SqlBackend`      — one ``ledger_records`` row per record.
- :class:`MemoryBackend`   — for tests.

Writes mark records dirty and fire the ``on_dirty`` hook, which the bot
wires to a :class:`DebouncedFlusher` (trailing-edge timer).  A crash inside
the debounce window loses at most that window's updates.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import math
import os
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from sqlalchemy import select

from rankwarden.constants import Dimension
from rankwarden.database.engine import get_session, run_db
from rankwarden.database.models import LedgerRecord

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

MEMBERS = "members"
XP = "xp"
SECTIONS: tuple[str, ...] = (MEMBERS, XP)

ChangedKeys = set[tuple[str, str]]


def empty_document() -> dict:
    return {MEMBERS: {}, XP: {}}


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------
def make_key(guild_id: int, member_id: int) -> str:
    """``guild:member`` composite key; the guild part is a scan prefix."""
    return f"{guild_id}:{member_id}"


def guild_prefix(guild_id: int) -> str:
    return f"{guild_id}:"


def member_from_key(key: str) -> int:
    return int(key.split(":", 1)[1])


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------
def _as_count(value) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        logger.warning("Non-finite XP counter %r treated as missing", value)
        return None
    return max(0, int(value))


def _as_timestamp(value, field_name: str) -> int | None:
    """Epoch-ms timestamp from a stored value; junk becomes ``None``."""
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            value = None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        logger.warning("Malformed member timestamp %s — dropping it", field_name)
        return None
    return int(value)


@dataclass(slots=True)
class LedgerEntry:
    """XP counters for one member of one guild."""

    total_xp: int = 0
    text_xp: int = 0
    voice_xp: int = 0

    def get(self, dimension: Dimension) -> int:
        if dimension is Dimension.TEXT:
            return self.text_xp
        if dimension is Dimension.VOICE:
            return self.voice_xp
        return self.total_xp

    def to_payload(self) -> dict:
        return {"xp": self.total_xp, "text": self.text_xp, "voice": self.voice_xp}

    @classmethod
    def from_payload(cls, payload: dict) -> tuple[LedgerEntry, bool]:
        """Parse a stored record, backfilling counters the old schema lacked.

        Returns ``(entry, backfilled)``.  Missing ``text``/``voice`` default
        to 0; a missing ``xp`` is rebuilt as ``text + voice``.
        """
        text = _as_count(payload.get("text"))
        voice = _as_count(payload.get("voice"))
        total = _as_count(payload.get("xp"))
        backfilled = text is None or voice is None or total is None

        text = text or 0
        voice = voice or 0
        if total is None:
            total = text + voice
        return cls(total_xp=total, text_xp=text, voice_xp=voice), backfilled


@dataclass(slots=True)
class MemberMeta:
    """Onboarding metadata.  Timestamps are epoch milliseconds."""

    joined_at: int
    newbie_since: int | None = None
    original_nick: str | None = None

    def to_payload(self) -> dict:
        return {
            "joinedAt": self.joined_at,
            "newbieSince": self.newbie_since,
            "originalNick": self.original_nick,
        }

    @classmethod
    def from_payload(cls, payload: dict) -> MemberMeta:
        nick = payload.get("originalNick")
        return cls(
            joined_at=_as_timestamp(payload.get("joinedAt"), "joinedAt") or 0,
            newbie_since=_as_timestamp(payload.get("newbieSince"), "newbieSince") or None,
            original_nick=nick if isinstance(nick, str) else None,
        )


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------
class StorageBackend(Protocol):
    """Durable home of the ledger document."""

    def load(self) -> dict: ...

    def save(self, document: dict, changed: ChangedKeys) -> None: ...


class MemoryBackend:
    """Keeps the last saved document in memory.  Used by tests."""

    def __init__(self, document: dict | None = None) -> None:
        self.document = copy.deepcopy(document) if document is not None else empty_document()
        self.saves = 0

    def load(self) -> dict:
        return copy.deepcopy(self.document)

    def save(self, document: dict, changed: ChangedKeys) -> None:
        self.document = copy.deepcopy(document)
        self.saves += 1


class JsonFileBackend:
    """Whole-document JSON file.  Writes go to a temp file, then ``os.replace``."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> dict:
        if not self.path.exists():
            logger.info("No ledger file at %s — starting empty", self.path)
            return empty_document()
        with open(self.path, encoding="utf-8") as fh:
            return json.load(fh)

    def save(self, document: dict, changed: ChangedKeys) -> None:
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class SqlBackend:
    """One ``ledger_records`` row per record; only changed records are written."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def load(self) -> dict:
        document = empty_document()
        with get_session(self._engine) as session:
            rows = session.scalars(select(LedgerRecord).order_by(LedgerRecord.id)).all()
            for row in rows:
                if row.section in document:
                    document[row.section][row.key] = dict(row.payload or {})
        return document

    def save(self, document: dict, changed: ChangedKeys) -> None:
        with get_session(self._engine) as session:
            # Walk the document (not the set) so new rows keep insertion order
            for section in SECTIONS:
                for key, payload in document[section].items():
                    if (section, key) not in changed:
                        continue
                    row = session.scalar(
                        select(LedgerRecord).where(
                            LedgerRecord.section == section,
                            LedgerRecord.key == key,
                        )
                    )
                    if row is None:
                        session.add(LedgerRecord(section=section, key=key, payload=dict(payload)))
                    else:
                        row.payload = dict(payload)
        logger.debug("SQL ledger flush: %d records", len(changed))


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------
def _normalize(raw) -> dict:
    """Coerce whatever the backend produced into a valid document shape."""
    if not isinstance(raw, dict):
        logger.warning("Ledger document is not a mapping — starting empty")
        return empty_document()
    document = empty_document()
    for section in SECTIONS:
        records = raw.get(section)
        if records is None:
            continue
        if not isinstance(records, dict):
            logger.warning("Ledger section '%s' is malformed — dropping it", section)
            continue
        kept = {str(k): v for k, v in records.items() if isinstance(v, dict) and _valid_key(str(k))}
        if len(kept) != len(records):
            logger.warning(
                "Dropped %d malformed records from ledger section '%s'",
                len(records) - len(kept), section,
            )
        document[section] = kept
    return document


def _valid_key(key: str) -> bool:
    guild, sep, member = key.partition(":")
    return bool(sep) and guild.isdigit() and member.isdigit()


class LedgerStore:
    """In-memory ledger document with dirty tracking and explicit flush.

    Parameters
    ----------
    backend:
        Where :meth:`flush` writes.  A failing or malformed load falls back
        to an empty ledger instead of aborting startup.
    on_dirty:
        Called after every mutation (typically ``DebouncedFlusher.schedule``).
    """

    def __init__(
        self,
        backend: StorageBackend,
        on_dirty: Callable[[], None] | None = None,
    ) -> None:
        self.backend = backend
        self.on_dirty = on_dirty
        self._changed: ChangedKeys = set()
        try:
            raw = backend.load()
        except Exception:
            logger.warning("Failed to load ledger — starting empty", exc_info=True)
            raw = empty_document()
        self._doc = _normalize(raw)
        logger.info(
            "Ledger loaded: %d XP entries, %d member records",
            len(self._doc[XP]), len(self._doc[MEMBERS]),
        )

    # -- mutation bookkeeping ------------------------------------------------
    def _write(self, section: str, key: str, payload: dict) -> None:
        self._doc[section][key] = payload
        self._changed.add((section, key))
        if self.on_dirty is not None:
            self.on_dirty()

    @property
    def dirty(self) -> bool:
        return bool(self._changed)

    # -- XP entries ----------------------------------------------------------
    def entry(self, guild_id: int, member_id: int) -> LedgerEntry:
        """Return a copy of the member's entry, creating or backfilling it."""
        key = make_key(guild_id, member_id)
        payload = self._doc[XP].get(key)
        if payload is None:
            entry = LedgerEntry()
            self._write(XP, key, entry.to_payload())
            return entry
        entry, backfilled = LedgerEntry.from_payload(payload)
        if backfilled:
            self._write(XP, key, entry.to_payload())
        return entry

    def put_entry(self, guild_id: int, member_id: int, entry: LedgerEntry) -> None:
        self._write(XP, make_key(guild_id, member_id), entry.to_payload())

    def entries_for(self, guild_id: int) -> list[tuple[int, LedgerEntry]]:
        """All XP entries of a guild, in insertion order (prefix scan)."""
        prefix = guild_prefix(guild_id)
        result: list[tuple[int, LedgerEntry]] = []
        for key in [k for k in self._doc[XP] if k.startswith(prefix)]:
            entry, backfilled = LedgerEntry.from_payload(self._doc[XP][key])
            if backfilled:
                self._write(XP, key, entry.to_payload())
            result.append((member_from_key(key), entry))
        return result

    def reset_guild(self, guild_id: int) -> int:
        """Zero every XP entry of a guild in place.  Returns the entry count."""
        prefix = guild_prefix(guild_id)
        keys = [k for k in self._doc[XP] if k.startswith(prefix)]
        for key in keys:
            self._write(XP, key, LedgerEntry().to_payload())
        return len(keys)

    # -- member metadata -----------------------------------------------------
    def meta(self, guild_id: int, member_id: int) -> MemberMeta | None:
        payload = self._doc[MEMBERS].get(make_key(guild_id, member_id))
        if payload is None:
            return None
        return MemberMeta.from_payload(payload)

    def put_meta(self, guild_id: int, member_id: int, meta: MemberMeta) -> None:
        key = make_key(guild_id, member_id)
        merged = dict(self._doc[MEMBERS].get(key) or {})
        merged.update(meta.to_payload())
        self._write(MEMBERS, key, merged)

    def members_for(self, guild_id: int) -> list[tuple[int, MemberMeta]]:
        prefix = guild_prefix(guild_id)
        return [
            (member_from_key(k), MemberMeta.from_payload(v))
            for k, v in self._doc[MEMBERS].items()
            if k.startswith(prefix)
        ]

    # -- durability ----------------------------------------------------------
    def snapshot(self) -> tuple[dict, ChangedKeys]:
        """Detach a deep copy of the document plus the changed-key set."""
        changed, self._changed = self._changed, set()
        return copy.deepcopy(self._doc), changed

    def _restore_changed(self, changed: ChangedKeys) -> None:
        self._changed |= changed

    def flush(self) -> bool:
        """Write pending changes synchronously.  Returns True if anything was saved."""
        if not self._changed:
            return False
        document, changed = self.snapshot()
        try:
            self.backend.save(document, changed)
        except Exception:
            logger.exception("Ledger flush failed (%d records pending)", len(changed))
            self._restore_changed(changed)
            return False
        return True

    async def flush_async(self) -> bool:
        """Snapshot on the loop, write on a worker thread."""
        if not self._changed:
            return False
        document, changed = self.snapshot()
        try:
            await run_db(self.backend.save, document, changed)
        except Exception:
            logger.exception("Ledger flush failed (%d records pending)", len(changed))
            self._restore_changed(changed)
            return False
        return True


# ---------------------------------------------------------------------------
# Debounced write-back
# ---------------------------------------------------------------------------
class DebouncedFlusher:
    """Coalesces ledger writes behind a short trailing-edge timer.

    :meth:`schedule` is the store's ``on_dirty`` hook.  Every call pushes
    the timer back by *delay* seconds; when it finally fires the store is
    flushed once.  Outside a running loop (scripts, sync tests) scheduling
    is a no-op and callers flush explicitly.
    """

    def __init__(self, store: LedgerStore, delay: float = 0.5) -> None:
        self._store = store
        self._delay = delay
        self._handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()
        self._lock = asyncio.Lock()

    def schedule(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self._delay, self._fire)

    @property
    def pending(self) -> bool:
        return self._handle is not None or bool(self._tasks)

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.get_running_loop().create_task(self._run(), name="ledger-flush")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self) -> None:
        async with self._lock:
            await self._store.flush_async()

    async def aclose(self) -> None:
        """Cancel the timer, wait for in-flight writes, and flush the rest."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        async with self._lock:
            await self._store.flush_async()
