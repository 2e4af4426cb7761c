"""Process-wide cache of the reference document."""

import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from src.infrastructure.content import ContentFetchError, ContentStore
from src.infrastructure.observability import traced

logger = structlog.get_logger()


@dataclass
class ReferenceDocument:
    """The cached document and the monotonic time it was fetched."""

    content: str
    fetched_at: float


class ReferenceContentAccessor:
    """Serves the reference document from a soft, TTL-bound cache.

    The cached copy is refreshed lazily on the first call after the TTL
    elapses. When a refresh fails the previous copy is served, however
    old; with no previous copy the document is empty, which callers treat
    as "no grounding context". Concurrent refreshes may overwrite each
    other, which is harmless since they all fetch the same content.
    """

    def __init__(
        self,
        store: ContentStore,
        identifier: str,
        *,
        ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the accessor.

        Args:
            store: External store the document is fetched from.
            identifier: Location of the document within the store.
            ttl_seconds: How long a fetched copy is served without refreshing.
            clock: Monotonic time source (injected in tests).
        """
        self._store = store
        self._identifier = identifier
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._document: ReferenceDocument | None = None

    @property
    def document(self) -> ReferenceDocument | None:
        """The currently cached copy, if any."""
        return self._document

    def is_fresh(self) -> bool:
        """Whether the cached copy is still within its TTL."""
        if self._document is None:
            return False
        return self._clock() - self._document.fetched_at < self._ttl_seconds

    @traced(span_name="reference.get_document")
    async def get_document(self) -> str:
        """Return the document text, refreshing it when stale."""
        if self._document is not None and self.is_fresh():
            return self._document.content

        try:
            content = await self._store.fetch(self._identifier)
        except ContentFetchError as e:
            if self._document is not None:
                logger.warning(
                    "reference_fetch_failed_serving_stale",
                    source=e.source,
                    error=str(e),
                    stale_seconds=round(self._clock() - self._document.fetched_at),
                )
                return self._document.content

            logger.error("reference_unavailable", source=e.source, error=str(e))
            return ""

        self._document = ReferenceDocument(content=content, fetched_at=self._clock())
        logger.info(
            "reference_refreshed",
            source=self._identifier,
            content_length=len(content),
        )
        return content
