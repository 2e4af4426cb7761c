"""Expiring key-value cache infrastructure for answers and suggestions."""

from src.infrastructure.cache.exceptions import CacheError, CacheRecordError
from src.infrastructure.cache.memory_store import InMemoryKeyValueStore
from src.infrastructure.cache.protocol import (
    CacheEntry,
    KeyValueStore,
    SuggestionCacheEntry,
)
from src.infrastructure.cache.sqlite_store import SQLiteKeyValueStore

__all__ = [
    "CacheEntry",
    "CacheError",
    "CacheRecordError",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "SQLiteKeyValueStore",
    "SuggestionCacheEntry",
]
