"""Protocol definition for reference content stores."""

from typing import Protocol


class ContentStore(Protocol):
    """Protocol for the external store holding the reference document.

    This allows swapping a local file for an object store or HTTP origin
    without touching the accessor that caches the document.
    """

    async def fetch(self, identifier: str) -> str:
        """Fetch the document text.

        Args:
            identifier: Store-specific location (file path, URL, ...).

        Returns:
            The document content.

        Raises:
            ContentFetchError: If the document cannot be fetched.
        """
        ...
