"""Tests for the database engine and session management module."""

import pytest
from sqlalchemy.pool import StaticPool

import location_api.core.database as db_module
from location_api.core.database import (
    dispose_engine,
    engine_options,
    get_engine,
    get_session_factory,
    init_engine,
)


class TestGetEngine:
    """Tests for get_engine."""

    def test_raises_when_not_initialized(self) -> None:
        # Save and clear module state
        original_engine = db_module._engine
        db_module._engine = None
        try:
            with pytest.raises(RuntimeError, match="Database engine not initialized"):
                get_engine()
        finally:
            db_module._engine = original_engine

    async def test_returns_engine_when_initialized(self) -> None:
        engine = init_engine("sqlite+aiosqlite:///:memory:")
        try:
            assert get_engine() is engine
            assert get_session_factory() is not None
        finally:
            await dispose_engine()


class TestGetSessionFactory:
    """Tests for get_session_factory."""

    def test_raises_when_not_initialized(self) -> None:
        original_factory = db_module._session_factory
        db_module._session_factory = None
        try:
            with pytest.raises(RuntimeError, match="Session factory not initialized"):
                get_session_factory()
        finally:
            db_module._session_factory = original_factory


class TestDisposeEngine:
    """Tests for dispose_engine."""

    async def test_clears_state(self) -> None:
        init_engine("sqlite+aiosqlite:///:memory:")
        await dispose_engine()
        assert db_module._engine is None
        assert db_module._session_factory is None

    async def test_noop_when_not_initialized(self) -> None:
        await dispose_engine()
        await dispose_engine()


class TestEngineOptions:
    """Tests for engine_options."""

    def test_in_memory_sqlite_uses_static_pool(self) -> None:
        options = engine_options("sqlite+aiosqlite:///:memory:")
        assert options["poolclass"] is StaticPool
        assert options["connect_args"] == {"check_same_thread": False}
        assert "pool_size" not in options

    def test_file_sqlite_has_no_pool_sizing(self) -> None:
        assert engine_options("sqlite+aiosqlite:///./dev.db") == {}

    def test_postgres_pool_sizing(self) -> None:
        options = engine_options("postgresql+asyncpg://localhost/db")
        assert options["pool_size"] == 10
        assert options["max_overflow"] == 5

    def test_postgres_schema_sets_search_path(self) -> None:
        options = engine_options("postgresql+asyncpg://localhost/db", schema="pr_42")
        assert options["connect_args"] == {"server_settings": {"search_path": "pr_42,public"}}

    def test_overrides_kept(self) -> None:
        options = engine_options("postgresql+asyncpg://localhost/db", echo=True, pool_size=2)
        assert options["echo"] is True
        assert options["pool_size"] == 2
