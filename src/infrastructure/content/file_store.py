"""Local file content store."""

import asyncio
from pathlib import Path

import structlog

from src.infrastructure.content.exceptions import ContentFetchError

logger = structlog.get_logger()

SUPPORTED_EXTENSIONS = (".md", ".txt", ".json")


class FileContentStore:
    """Reads the reference document from the local filesystem.

    Supports markdown, text and JSON catalog files. The read runs in a
    worker thread so it does not block the event loop.
    """

    async def fetch(self, identifier: str) -> str:
        """Read the file at ``identifier``.

        Raises:
            ContentFetchError: If the file is missing, unsupported or unreadable.
        """
        file_path = Path(identifier)

        if not file_path.exists():
            raise ContentFetchError(f"File not found: {file_path}", source=identifier)

        suffix = file_path.suffix.lower()
        if suffix not in SUPPORTED_EXTENSIONS:
            raise ContentFetchError(
                f"Unsupported file format: {suffix}. "
                f"Supported: {', '.join(SUPPORTED_EXTENSIONS)}",
                source=identifier,
            )

        try:
            content = await asyncio.to_thread(file_path.read_text, encoding="utf-8")
        except UnicodeDecodeError as e:
            raise ContentFetchError(
                f"Failed to decode file as UTF-8: {e}", source=identifier
            ) from e
        except OSError as e:
            raise ContentFetchError(f"Failed to read file: {e}", source=identifier) from e

        logger.debug(
            "reference_file_loaded",
            file_path=str(file_path),
            content_length=len(content),
        )
        return content
