"""Exceptions for reference content store operations."""


class ContentFetchError(Exception):
    """Raised when the reference document cannot be fetched."""

    def __init__(self, message: str, *, source: str) -> None:
        self.source = source
        super().__init__(message)
