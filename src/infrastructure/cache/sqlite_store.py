"""SQLite-backed expiring key-value store."""

import json
import sqlite3
import time
from typing import Any

import structlog

from src.infrastructure.cache.exceptions import CacheError
from src.infrastructure.database import Database

logger = structlog.get_logger()


class SQLiteKeyValueStore:
    """Expiring key-value store on top of the shared SQLite database.

    Records are stored as JSON alongside an absolute ``expires_at`` epoch.
    ``get`` does not filter on expiry: expired rows are removed lazily by
    ``purge_expired`` and the caller decides whether a record is live.
    """

    def __init__(self, database: Database) -> None:
        """Initialize the store.

        Args:
            database: Connected database holding the ``cache_entries`` table.
        """
        self._db = database

    async def get(self, key: str) -> dict[str, Any] | None:
        """Return the record stored under ``key``, or None if absent.

        Raises:
            CacheError: If the database cannot be read or the row is not JSON.
        """
        try:
            row = await self._db.fetch_one(
                "SELECT record FROM cache_entries WHERE key = ?",
                (key,),
            )
        except (sqlite3.Error, RuntimeError) as e:
            raise CacheError(f"Cache read failed: {e}") from e

        if row is None:
            return None

        try:
            record = json.loads(row["record"])
        except (TypeError, ValueError) as e:
            raise CacheError(f"Cache record for {key[:24]} is not valid JSON") from e

        if not isinstance(record, dict):
            raise CacheError(f"Cache record for {key[:24]} is not an object")

        return record

    async def put(self, key: str, record: dict[str, Any], ttl_seconds: int) -> None:
        """Insert or replace the record under ``key``.

        Raises:
            CacheError: If the record cannot be serialized or written.
        """
        try:
            payload = json.dumps(record)
        except (TypeError, ValueError) as e:
            raise CacheError(f"Cache record is not serializable: {e}") from e

        expires_at = time.time() + ttl_seconds

        try:
            await self._db.execute(
                """
                INSERT INTO cache_entries (key, record, expires_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    record = excluded.record,
                    expires_at = excluded.expires_at
                """,
                (key, payload, expires_at),
            )
        except (sqlite3.Error, RuntimeError) as e:
            raise CacheError(f"Cache write failed: {e}") from e

        logger.debug(
            "cache_store_put",
            key_prefix=key[:24],
            ttl_seconds=ttl_seconds,
            record_size=len(payload),
        )

    async def purge_expired(self) -> int:
        """Delete every row whose TTL has elapsed.

        Returns:
            Number of rows deleted.
        """
        try:
            cursor = await self._db.execute(
                "DELETE FROM cache_entries WHERE expires_at <= ?",
                (time.time(),),
            )
        except (sqlite3.Error, RuntimeError) as e:
            raise CacheError(f"Cache purge failed: {e}") from e

        deleted = cursor.rowcount
        if deleted > 0:
            logger.info("cache_store_purged", count=deleted)
        return deleted

    async def count(self) -> int:
        """Return the number of stored rows, expired or not."""
        try:
            row = await self._db.fetch_one("SELECT COUNT(*) AS n FROM cache_entries")
        except (sqlite3.Error, RuntimeError) as e:
            raise CacheError(f"Cache count failed: {e}") from e
        return int(row["n"]) if row is not None else 0
