"""
rankwarden.database.models — SQLAlchemy 2.0 Data Models
========================================================

The ledger is one logical document with two sections (``members`` and
``xp``) keyed by ``"<guild_id>:<member_id>"``.  When the SQL backend is
selected, every record of that document becomes one row here.

Tables:
- ledger_records — (section, key) → JSON payload
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Rankwarden ORM models."""


# ---------------------------------------------------------------------------
# ledger_records
# ---------------------------------------------------------------------------
class LedgerRecord(Base):
    """One record of the ledger document.

    ``section`` is ``"members"`` or ``"xp"``; ``key`` is the
    ``guild:member`` composite, which doubles as a prefix-scan handle.
    ``id`` preserves insertion order, which standings use to break ties.
    """

    __tablename__ = "ledger_records"
    __table_args__ = (
        UniqueConstraint("section", "key", name="uq_ledger_records_section_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    section: Mapped[str] = mapped_column(String(16), nullable=False)
    key: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
