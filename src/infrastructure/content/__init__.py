"""Reference content store abstraction layer."""

from src.infrastructure.content.exceptions import ContentFetchError
from src.infrastructure.content.factory import build_content_store
from src.infrastructure.content.file_store import FileContentStore
from src.infrastructure.content.http_store import HttpContentStore
from src.infrastructure.content.protocol import ContentStore

__all__ = [
    "ContentFetchError",
    "ContentStore",
    "FileContentStore",
    "HttpContentStore",
    "build_content_store",
]
