"""Answer and suggestion caching over an expiring key-value store."""

from typing import Any

import structlog

from src.infrastructure.cache import (
    CacheEntry,
    CacheError,
    KeyValueStore,
    SuggestionCacheEntry,
)
from src.modules.chat.normalizer import derive_key

logger = structlog.get_logger()

ANSWER_KEY_PREFIX = "answer:"
SUGGESTION_KEY_PREFIX = "suggestions:"
SECONDS_PER_HOUR = 3600


def answer_key(query: str) -> str:
    """Cache key for the answer to ``query``."""
    return f"{ANSWER_KEY_PREFIX}{derive_key(query)}"


class ResponseCache:
    """Get/put contract used by the chat service and the suggestion engine.

    Answers and suggestions share one store; their keys carry different
    prefixes so they can never collide. Every store failure degrades to a
    miss (reads) or a no-op (writes) and is only logged. Entries past
    their ``expires_at`` are misses even if the store still returns them.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        answer_ttl_hours: int = 24,
        suggestion_ttl_hours: int = 24,
    ) -> None:
        """Initialize the cache.

        Args:
            store: Backing key-value store.
            answer_ttl_hours: Lifetime of answer entries.
            suggestion_ttl_hours: Lifetime of suggestion entries.
        """
        self._store = store
        self.answer_ttl_seconds = answer_ttl_hours * SECONDS_PER_HOUR
        self.suggestion_ttl_seconds = suggestion_ttl_hours * SECONDS_PER_HOUR

    async def get(self, key: str) -> CacheEntry | None:
        """Return the live answer entry for ``key``, or None."""
        record = await self._read(key)
        if record is None:
            return None

        try:
            entry = CacheEntry.from_record(record)
        except CacheError as e:
            logger.warning("cache_record_invalid", key_prefix=key[:24], error=str(e))
            return None

        if entry.is_expired():
            logger.debug(
                "cache_miss_expired",
                key_prefix=key[:24],
                expires_at=entry.expires_at.isoformat(),
            )
            return None

        logger.info("cache_hit", key_prefix=key[:24], answer_length=len(entry.answer))
        return entry

    async def put(self, entry: CacheEntry) -> None:
        """Store an answer entry under its own key."""
        await self._write(entry.key, entry.to_record(), self.answer_ttl_seconds)

    async def get_suggestions(self, key: str) -> SuggestionCacheEntry | None:
        """Return the live suggestion entry for ``key``, or None."""
        record = await self._read(key)
        if record is None:
            return None

        try:
            entry = SuggestionCacheEntry.from_record(record)
        except CacheError as e:
            logger.warning("cache_record_invalid", key_prefix=key[:24], error=str(e))
            return None

        if entry.is_expired():
            logger.debug("suggestion_cache_miss_expired", key_prefix=key[:24])
            return None

        return entry

    async def put_suggestions(self, entry: SuggestionCacheEntry) -> None:
        """Store a suggestion entry under its own key."""
        await self._write(entry.key, entry.to_record(), self.suggestion_ttl_seconds)

    async def _read(self, key: str) -> dict[str, Any] | None:
        try:
            return await self._store.get(key)
        except CacheError as e:
            logger.warning("cache_lookup_failed", key_prefix=key[:24], error=str(e))
            return None

    async def _write(self, key: str, record: dict[str, Any], ttl_seconds: int) -> None:
        try:
            await self._store.put(key, record, ttl_seconds)
        except CacheError as e:
            logger.warning("cache_write_failed", key_prefix=key[:24], error=str(e))
