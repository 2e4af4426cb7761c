"""Custom exceptions for LLM provider operations."""


class LLMProviderError(Exception):
    """Base exception for LLM provider errors.

    ``kind`` classifies the failure for callers that surface it to users:
    access_denied, invalid_request, rate_limited, timeout, unavailable,
    not_configured or unknown.
    """

    default_kind = "unknown"

    def __init__(
        self,
        message: str,
        *,
        provider: str = "unknown",
        kind: str | None = None,
    ) -> None:
        self.provider = provider
        self.kind = kind or self.default_kind
        super().__init__(message)


class LLMAccessDeniedError(LLMProviderError):
    """Raised when the provider rejects our credentials or permissions."""

    default_kind = "access_denied"


class LLMInvalidRequestError(LLMProviderError):
    """Raised when the provider rejects the request as malformed."""

    default_kind = "invalid_request"


class LLMTimeoutError(LLMProviderError):
    """Raised when an LLM request times out."""

    default_kind = "timeout"


class LLMRateLimitError(LLMProviderError):
    """Raised when rate limited by the LLM provider."""

    default_kind = "rate_limited"


class LLMConfigurationError(LLMProviderError):
    """Raised when there's a configuration issue (e.g., missing API key)."""

    default_kind = "not_configured"
