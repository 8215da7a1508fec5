"""
tests/test_database.py — Engine, Schema & Session Helpers
==========================================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import inspect, select

from rankwarden.database.engine import create_db_engine, get_session, init_db
from rankwarden.database.models import LedgerRecord


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    init_db(engine)
    return engine


class TestEngine:
    def test_env_url_used_when_no_argument(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'env.db'}")
        assert create_db_engine().url.database.endswith("env.db")

    def test_init_db_is_idempotent(self, engine):
        init_db(engine)
        assert "ledger_records" in inspect(engine).get_table_names()


class TestGetSession:
    def test_commits_on_success(self, engine):
        with get_session(engine) as session:
            session.add(LedgerRecord(section="xp", key="1:10", payload={"xp": 5}))

        with get_session(engine) as session:
            # Read inside the session: commit on exit expires the instances
            rows = [(r.key, r.payload) for r in session.scalars(select(LedgerRecord))]
        assert rows == [("1:10", {"xp": 5})]

    def test_rolls_back_on_error(self, engine):
        with pytest.raises(RuntimeError):
            with get_session(engine) as session:
                session.add(LedgerRecord(section="xp", key="1:10", payload={"xp": 5}))
                session.flush()
                raise RuntimeError("boom")

        with get_session(engine) as session:
            assert session.scalars(select(LedgerRecord)).all() == []
