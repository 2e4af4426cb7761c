"""In-process expiring key-value store."""

import copy
import time
from typing import Any


class InMemoryKeyValueStore:
    """Dict-backed store with the same semantics as the SQLite store.

    Used when no database is configured and in tests. Expired records are
    kept until ``purge_expired`` runs, so expiry checks stay with the caller.
    """

    def __init__(self) -> None:
        self._items: dict[str, tuple[dict[str, Any], float]] = {}

    async def get(self, key: str) -> dict[str, Any] | None:
        item = self._items.get(key)
        if item is None:
            return None
        return copy.deepcopy(item[0])

    async def put(self, key: str, record: dict[str, Any], ttl_seconds: int) -> None:
        self._items[key] = (copy.deepcopy(record), time.time() + ttl_seconds)

    async def purge_expired(self) -> int:
        now = time.time()
        expired = [k for k, (_, expires_at) in self._items.items() if expires_at <= now]
        for key in expired:
            del self._items[key]
        return len(expired)

    async def count(self) -> int:
        return len(self._items)
