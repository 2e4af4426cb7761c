"""Content store selection."""

from src.infrastructure.content.file_store import FileContentStore
from src.infrastructure.content.http_store import HttpContentStore
from src.infrastructure.content.protocol import ContentStore


def build_content_store(source: str, *, timeout_seconds: float = 10.0) -> ContentStore:
    """Pick a content store implementation for ``source``.

    http(s) URLs are fetched over HTTP; anything else is a file path.
    """
    if source.startswith(("http://", "https://")):
        return HttpContentStore(timeout_seconds=timeout_seconds)
    return FileContentStore()
