"""Protocol and record types for the expiring response cache."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

from src.infrastructure.cache.exceptions import CacheRecordError


def _now_utc() -> datetime:
    """Return current UTC time (for dataclass default)."""
    return datetime.now(UTC)


def _parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp, assuming UTC when naive."""
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


@dataclass(frozen=True)
class CacheEntry:
    """A cached answer.

    Created on a cache miss after a successful completion and never
    modified afterwards. The entry is logically dead once ``expires_at``
    has passed, whether or not the store has deleted it yet.
    """

    key: str
    original_query: str
    answer: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""
    created_at: datetime = field(default_factory=_now_utc)
    expires_at: datetime = field(default_factory=_now_utc)

    @classmethod
    def create(
        cls,
        *,
        key: str,
        original_query: str,
        answer: str,
        ttl_seconds: int,
        input_tokens: int = 0,
        output_tokens: int = 0,
        model: str = "",
    ) -> "CacheEntry":
        """Build a fresh entry that expires ``ttl_seconds`` from now."""
        created_at = _now_utc()
        return cls(
            key=key,
            original_query=original_query,
            answer=answer,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model=model,
            created_at=created_at,
            expires_at=created_at + timedelta(seconds=ttl_seconds),
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        """Return True once ``now`` has reached the expiry time."""
        return (now or _now_utc()) >= self.expires_at

    def to_record(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible store record."""
        return {
            "key": self.key,
            "originalQuery": self.original_query,
            "answer": self.answer,
            "usage": {
                "inputTokens": self.input_tokens,
                "outputTokens": self.output_tokens,
                "model": self.model,
            },
            "createdAt": self.created_at.isoformat(),
            "expiresAt": self.expires_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "CacheEntry":
        """Rebuild an entry from a store record.

        Raises:
            CacheRecordError: If the record is missing fields or malformed.
        """
        try:
            usage = record.get("usage") or {}
            return cls(
                key=str(record["key"]),
                original_query=str(record.get("originalQuery", "")),
                answer=str(record["answer"]),
                input_tokens=int(usage.get("inputTokens", 0)),
                output_tokens=int(usage.get("outputTokens", 0)),
                model=str(usage.get("model", "")),
                created_at=_parse_timestamp(record["createdAt"]),
                expires_at=_parse_timestamp(record["expiresAt"]),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise CacheRecordError(f"Malformed answer record: {e}") from e


@dataclass(frozen=True)
class SuggestionCacheEntry:
    """Cached follow-up suggestions for one conversation position."""

    key: str
    suggestions: list[str]
    expires_at: datetime = field(default_factory=_now_utc)

    def is_expired(self, now: datetime | None = None) -> bool:
        """Return True once ``now`` has reached the expiry time."""
        return (now or _now_utc()) >= self.expires_at

    def to_record(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible store record."""
        return {
            "key": self.key,
            "suggestions": list(self.suggestions),
            "expiresAt": self.expires_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "SuggestionCacheEntry":
        """Rebuild an entry from a store record.

        Raises:
            CacheRecordError: If the record is missing fields or malformed.
        """
        try:
            suggestions = record["suggestions"]
            if not isinstance(suggestions, list):
                raise TypeError("suggestions must be a list")
            return cls(
                key=str(record["key"]),
                suggestions=[str(s) for s in suggestions],
                expires_at=_parse_timestamp(record["expiresAt"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CacheRecordError(f"Malformed suggestion record: {e}") from e


class KeyValueStore(Protocol):
    """Protocol for expiring key-value stores.

    Implementations only need single-key atomic get/put. Physical
    deletion of expired rows is the store's business; callers must still
    check the record's own expiry because a store may return a record
    that has not been purged yet.
    """

    async def get(self, key: str) -> dict[str, Any] | None:
        """Return the record stored under ``key``, or None if absent.

        Raises:
            CacheError: If the store cannot be reached or read.
        """
        ...

    async def put(self, key: str, record: dict[str, Any], ttl_seconds: int) -> None:
        """Store ``record`` under ``key`` for ``ttl_seconds``.

        Raises:
            CacheError: If the store cannot be written.
        """
        ...
