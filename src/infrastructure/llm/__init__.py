"""LLM provider abstraction layer."""

from src.infrastructure.llm.exceptions import (
    LLMAccessDeniedError,
    LLMConfigurationError,
    LLMInvalidRequestError,
    LLMProviderError,
    LLMRateLimitError,
    LLMTimeoutError,
)
from src.infrastructure.llm.openrouter import OpenRouterProvider
from src.infrastructure.llm.protocol import Completion, LLMProvider

__all__ = [
    "Completion",
    "LLMAccessDeniedError",
    "LLMConfigurationError",
    "LLMInvalidRequestError",
    "LLMProvider",
    "LLMProviderError",
    "LLMRateLimitError",
    "LLMTimeoutError",
    "OpenRouterProvider",
]
