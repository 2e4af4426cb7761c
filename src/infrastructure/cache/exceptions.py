"""Exceptions for cache store operations."""


class CacheError(Exception):
    """Base exception for cache operations."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class CacheRecordError(CacheError):
    """Raised when a stored record cannot be decoded."""
