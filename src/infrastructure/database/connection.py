"""SQLite database connection management."""

import sqlite3
from pathlib import Path

import aiosqlite
import structlog

logger = structlog.get_logger()

# SQL for creating tables
_CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS cache_entries (
    key TEXT PRIMARY KEY,
    record TEXT NOT NULL,
    expires_at REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_cache_entries_expires ON cache_entries(expires_at);
"""


class Database:
    """Async SQLite database wrapper.

    Provides connection management and query execution for SQLite.
    Uses aiosqlite for async operations.
    """

    def __init__(self, db_path: str | Path) -> None:
        """Initialize the database.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = Path(db_path)
        self._connection: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Connect to the database and create tables if needed."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)
        self._connection.row_factory = aiosqlite.Row

        # WAL keeps concurrent readers off the writer's lock
        await self._connection.execute("PRAGMA journal_mode = WAL")

        await self._connection.executescript(_CREATE_TABLES)
        await self._connection.commit()

        logger.info("database_connected", path=str(self._db_path))

    async def disconnect(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.info("database_disconnected", path=str(self._db_path))

    async def execute(
        self,
        sql: str,
        parameters: tuple[object, ...] | dict[str, object] | None = None,
    ) -> aiosqlite.Cursor:
        """Execute a SQL statement and commit.

        Raises:
            RuntimeError: If database is not connected.
        """
        if not self._connection:
            raise RuntimeError("Database not connected")

        if parameters:
            cursor = await self._connection.execute(sql, parameters)
        else:
            cursor = await self._connection.execute(sql)

        await self._connection.commit()
        return cursor

    async def fetch_one(
        self,
        sql: str,
        parameters: tuple[object, ...] | dict[str, object] | None = None,
    ) -> sqlite3.Row | None:
        """Fetch a single row, or None when the query matches nothing."""
        cursor = await self.execute(sql, parameters)
        return await cursor.fetchone()


# Global database instance
_database: Database | None = None


def get_database() -> Database:
    """Get the global database instance.

    Raises:
        RuntimeError: If database not initialized.
    """
    if _database is None:
        raise RuntimeError("Database not initialized. Call init_database first.")
    return _database


async def init_database(db_path: str | Path) -> Database:
    """Initialize and connect to the database.

    Args:
        db_path: Path to the SQLite database file.

    Returns:
        Connected database instance.

    Raises:
        sqlite3.Error, OSError: If the database cannot be opened; the
            global instance is left unset.
    """
    global _database
    database = Database(db_path)
    await database.connect()
    _database = database
    return _database


async def close_database() -> None:
    """Disconnect and forget the global database instance."""
    global _database
    if _database is not None:
        await _database.disconnect()
        _database = None
