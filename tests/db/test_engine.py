"""
Engine configuration: SQLite runs file-backed with one connection per session.
"""

import pytest
from sqlalchemy import text
from sqlalchemy.pool import NullPool

from ledger_kernel.db.engine import (
    DATABASE_URL_ENV,
    database_url_from_env,
    get_engine,
    get_session_factory,
    init_engine_from_url,
    is_in_memory_sqlite,
    reset_engine,
)


@pytest.fixture
def file_engine(tmp_path):
    eng = init_engine_from_url(f"sqlite:///{tmp_path / 'engine.db'}")
    yield eng
    reset_engine()


class TestSqliteEngine:

    def test_one_connection_per_session(self, file_engine):
        assert isinstance(file_engine.pool, NullPool)

        factory = get_session_factory()
        first, second = factory(), factory()
        try:
            assert first.connection().connection.dbapi_connection is not (
                second.connection().connection.dbapi_connection
            )
        finally:
            first.close()
            second.close()

    def test_wal_journal_mode(self, file_engine):
        with get_engine().connect() as conn:
            assert conn.execute(text("PRAGMA journal_mode")).scalar_one().lower() == "wal"

    @pytest.mark.parametrize(
        "url",
        [
            "sqlite:///:memory:",
            "sqlite://",
            "sqlite:///file:ledger?mode=memory&cache=shared&uri=true",
        ],
    )
    def test_in_memory_rejected(self, url):
        assert is_in_memory_sqlite(url)
        with pytest.raises(ValueError, match="In-memory SQLite"):
            init_engine_from_url(url)

    def test_postgres_url_is_not_in_memory(self):
        assert not is_in_memory_sqlite("postgresql://user:pw@localhost/ledger")


class TestDatabaseUrlFromEnv:

    def test_unset_gives_none(self, monkeypatch):
        monkeypatch.delenv(DATABASE_URL_ENV, raising=False)
        assert database_url_from_env() is None

    def test_reads_variable(self, monkeypatch, tmp_path):
        url = f"sqlite:///{tmp_path / 'env.db'}"
        monkeypatch.setenv(DATABASE_URL_ENV, url)
        assert database_url_from_env() == url
