"""Tests for the expiring key-value stores."""

import tempfile
from pathlib import Path

import pytest

from src.infrastructure.cache import (
    CacheError,
    InMemoryKeyValueStore,
    SQLiteKeyValueStore,
)
from src.infrastructure.database import Database


@pytest.fixture
async def database() -> Database:
    """Create a temporary test database."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db = Database(Path(tmpdir) / "cache.db")
        await db.connect()
        yield db
        await db.disconnect()


@pytest.fixture
async def sqlite_store(database: Database) -> SQLiteKeyValueStore:
    """Create a SQLite store over the test database."""
    return SQLiteKeyValueStore(database)


class TestSQLiteKeyValueStore:
    """Tests for SQLiteKeyValueStore."""

    async def test_get_missing_key_returns_none(
        self, sqlite_store: SQLiteKeyValueStore
    ) -> None:
        """Absent keys should read as None."""
        assert await sqlite_store.get("answer:missing") is None

    async def test_put_then_get_returns_record(
        self, sqlite_store: SQLiteKeyValueStore
    ) -> None:
        """Stored records should come back as equal dicts."""
        record = {"key": "answer:k", "answer": "Bali", "usage": {"inputTokens": 3}}

        await sqlite_store.put("answer:k", record, ttl_seconds=60)

        assert await sqlite_store.get("answer:k") == record

    async def test_put_overwrites_existing_key(
        self, sqlite_store: SQLiteKeyValueStore
    ) -> None:
        """A second put replaces the first record."""
        await sqlite_store.put("k", {"v": 1}, ttl_seconds=60)
        await sqlite_store.put("k", {"v": 2}, ttl_seconds=60)

        assert await sqlite_store.get("k") == {"v": 2}
        assert await sqlite_store.count() == 1

    async def test_purge_removes_only_expired_rows(
        self, sqlite_store: SQLiteKeyValueStore
    ) -> None:
        """purge_expired deletes rows whose TTL has elapsed."""
        await sqlite_store.put("old", {"v": 1}, ttl_seconds=-1)
        await sqlite_store.put("new", {"v": 2}, ttl_seconds=3600)

        deleted = await sqlite_store.purge_expired()

        assert deleted == 1
        assert await sqlite_store.get("old") is None
        assert await sqlite_store.get("new") == {"v": 2}

    async def test_get_does_not_filter_expired_rows(
        self, sqlite_store: SQLiteKeyValueStore
    ) -> None:
        """Expiry is judged by the caller from the record itself."""
        await sqlite_store.put("old", {"v": 1}, ttl_seconds=-1)

        assert await sqlite_store.get("old") == {"v": 1}

    async def test_malformed_row_raises_cache_error(
        self, database: Database, sqlite_store: SQLiteKeyValueStore
    ) -> None:
        """Rows that are not JSON objects surface as CacheError."""
        await database.execute(
            "INSERT INTO cache_entries (key, record, expires_at) VALUES (?, ?, ?)",
            ("broken", "{not json", 9999999999.0),
        )
        await database.execute(
            "INSERT INTO cache_entries (key, record, expires_at) VALUES (?, ?, ?)",
            ("list", "[1, 2]", 9999999999.0),
        )

        with pytest.raises(CacheError):
            await sqlite_store.get("broken")
        with pytest.raises(CacheError):
            await sqlite_store.get("list")

    async def test_unserializable_record_raises_cache_error(
        self, sqlite_store: SQLiteKeyValueStore
    ) -> None:
        """Records must be JSON-serializable."""
        with pytest.raises(CacheError):
            await sqlite_store.put("k", {"v": object()}, ttl_seconds=60)

    async def test_disconnected_database_raises_cache_error(self) -> None:
        """An unusable database surfaces as CacheError, not RuntimeError."""
        store = SQLiteKeyValueStore(Database("/nonexistent/never-connected.db"))

        with pytest.raises(CacheError):
            await store.get("k")
        with pytest.raises(CacheError):
            await store.put("k", {"v": 1}, ttl_seconds=60)


class TestInMemoryKeyValueStore:
    """Tests for InMemoryKeyValueStore."""

    async def test_put_then_get_returns_copy(self) -> None:
        """Callers cannot mutate stored records through returned dicts."""
        store = InMemoryKeyValueStore()
        await store.put("k", {"items": ["a"]}, ttl_seconds=60)

        record = await store.get("k")
        record["items"].append("b")

        assert await store.get("k") == {"items": ["a"]}

    async def test_get_missing_key_returns_none(self) -> None:
        """Absent keys should read as None."""
        assert await InMemoryKeyValueStore().get("missing") is None

    async def test_purge_removes_expired(self) -> None:
        """purge_expired drops only elapsed records."""
        store = InMemoryKeyValueStore()
        await store.put("old", {"v": 1}, ttl_seconds=-1)
        await store.put("new", {"v": 2}, ttl_seconds=60)

        assert await store.purge_expired() == 1
        assert await store.count() == 1
