"""
User API Backend — Connection Provider Tests
==============================================

What:  Tests for DatabaseConfig, Database and QueryInstrumentation.
How:   Engine construction is checked with create_async_engine patched;
       instrumentation runs against a real in-memory SQLite engine.

What we test:
    ✅ The five DB_* values reach the engine URL unmodified
    ✅ One debug log + one timing metric per query, duration >= 0
    ✅ Failed queries are reported exactly once too
    ✅ Session scope commits on success, rolls back and re-raises on error
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import OperationalError

from userapi.config import Settings
from userapi.database import (
    Database,
    DatabaseConfig,
    QueryInstrumentation,
    QUERY_DURATION_METRIC,
    get_database,
)
from userapi.exceptions import DatabaseError


@pytest.fixture
def db_config():
    return DatabaseConfig(
        host="db.internal",
        port=6543,
        database="users",
        user="svc_user",
        password="p@ss:w/rd%",
    )


class _SessionContext:
    def __init__(self, session):
        self.session = session

    async def __aenter__(self):
        return self.session

    async def __aexit__(self, *exc_info):
        return False


class TestDatabaseConfig:

    def test_from_settings_reads_environment(self, monkeypatch):
        monkeypatch.setenv("DB_HOST", "pg.example.net")
        monkeypatch.setenv("DB_PORT", "5433")
        monkeypatch.setenv("DB_NAME", "accounts")
        monkeypatch.setenv("DB_USER", "webapp")
        monkeypatch.setenv("DB_PASSWORD", "s3cret")

        config = DatabaseConfig.from_settings(Settings(_env_file=None))

        assert config == DatabaseConfig(
            host="pg.example.net",
            port=5433,
            database="accounts",
            user="webapp",
            password="s3cret",
        )

    def test_url_carries_values_unmodified(self, db_config):
        url = db_config.url()

        assert url.drivername == "postgresql+asyncpg"
        assert url.host == "db.internal"
        assert url.port == 6543
        assert url.database == "users"
        assert url.username == "svc_user"
        assert url.password == "p@ss:w/rd%"


class TestDatabaseConstruction:

    def test_engine_built_once_from_config(self, db_config):
        with patch("userapi.database.create_async_engine") as mock_create:
            Database(db_config, instrumentation=MagicMock())

        mock_create.assert_called_once()
        url = mock_create.call_args.args[0]
        assert (url.host, url.port, url.database, url.username, url.password) == (
            "db.internal", 6543, "users", "svc_user", "p@ss:w/rd%",
        )

    def test_from_settings_passes_pool_options(self, monkeypatch):
        monkeypatch.setenv("DB_POOL_SIZE", "7")
        settings = Settings(_env_file=None)

        with patch("userapi.database.create_async_engine") as mock_create:
            Database.from_settings(settings, instrumentation=MagicMock())

        kwargs = mock_create.call_args.kwargs
        assert kwargs["pool_size"] == 7
        assert kwargs["max_overflow"] == settings.db_max_overflow
        assert kwargs["pool_pre_ping"] is True

    def test_instrumentation_attached_to_engine(self, db_config):
        instrumentation = MagicMock()
        with patch("userapi.database.create_async_engine") as mock_create:
            database = Database(db_config, instrumentation=instrumentation)

        instrumentation.attach.assert_called_once_with(mock_create.return_value)
        assert database.instrumentation is instrumentation

    def test_real_engine_gets_listeners(self, db_config):
        database = Database(db_config)

        assert database.engine.url.host == "db.internal"
        assert event.contains(
            database.engine.sync_engine,
            "after_cursor_execute",
            database.instrumentation.after_cursor_execute,
        )


class TestQueryInstrumentation:

    def setup_method(self):
        self.logger = MagicMock()
        self.metrics = MagicMock()
        self.engine = create_engine("sqlite://")
        # First connect may run dialect setup; keep it out of the counts
        with self.engine.connect():
            pass
        QueryInstrumentation(logger=self.logger, metrics=self.metrics).attach(self.engine)

    def teardown_method(self):
        self.engine.dispose()

    def test_one_log_and_one_timing_per_query(self):
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        self.logger.debug.assert_called_once_with("SELECT 1")
        self.metrics.timing.assert_called_once()
        name, duration = self.metrics.timing.call_args.args
        assert name == QUERY_DURATION_METRIC
        assert duration >= 0

    def test_each_query_reported(self):
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            conn.execute(text("SELECT 2"))
            conn.execute(text("SELECT 3"))

        assert self.logger.debug.call_count == 3
        assert self.metrics.timing.call_count == 3

    def test_failed_query_reported_once(self):
        with self.engine.connect() as conn:
            with pytest.raises(OperationalError):
                conn.execute(text("SELECT * FROM no_such_table"))

        self.logger.debug.assert_called_once_with("SELECT * FROM no_such_table")
        self.metrics.timing.assert_called_once()
        assert self.metrics.timing.call_args.args[1] >= 0

    def test_attaches_to_async_engine_sync_engine(self, db_config):
        engine = MagicMock()
        instrumentation = QueryInstrumentation(logger=self.logger, metrics=self.metrics)

        with patch("userapi.database.event.listen") as mock_listen:
            instrumentation.attach(engine)

        targets = {call.args[0] for call in mock_listen.call_args_list}
        assert targets == {engine.sync_engine}
        assert mock_listen.call_count == 3


class TestSessionScope:

    def _database(self, db_config, session):
        with patch("userapi.database.create_async_engine"):
            database = Database(db_config, instrumentation=MagicMock())
        database.session_factory = lambda: _SessionContext(session)
        return database

    @pytest.mark.asyncio
    async def test_commits_on_success(self, db_config, mock_db_session):
        database = self._database(db_config, mock_db_session)

        async with database.session() as session:
            assert session is mock_db_session

        mock_db_session.commit.assert_awaited_once()
        mock_db_session.rollback.assert_not_awaited()
        mock_db_session.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_rolls_back_and_reraises(self, db_config, mock_db_session):
        database = self._database(db_config, mock_db_session)

        with pytest.raises(RuntimeError):
            async with database.session():
                raise RuntimeError("boom")

        mock_db_session.rollback.assert_awaited_once()
        mock_db_session.commit.assert_not_awaited()
        mock_db_session.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_ping_runs_select_one(self, db_config):
        conn = AsyncMock()
        with patch("userapi.database.create_async_engine") as mock_create:
            mock_create.return_value.connect = MagicMock(return_value=_SessionContext(conn))
            database = Database(db_config, instrumentation=MagicMock())

        await database.ping()

        statement = conn.execute.await_args.args[0]
        assert str(statement) == "SELECT 1"


class TestGetDatabase:

    def test_returns_handle_from_app_state(self):
        handle = MagicMock()
        request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(database=handle)))

        assert get_database(request) is handle

    def test_missing_handle_is_database_error(self):
        request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(database=None)))

        with pytest.raises(DatabaseError):
            get_database(request)
