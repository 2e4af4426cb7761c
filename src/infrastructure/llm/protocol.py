"""Protocol definition for LLM providers."""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class Completion:
    """Result of a completion call."""

    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""


class LLMProvider(Protocol):
    """Protocol for LLM provider implementations.

    This allows swapping between different LLM backends (OpenRouter, direct
    Anthropic, Bedrock, local models) without changing business logic.
    """

    async def complete(
        self,
        system_prompt: str,
        turns: list[dict[str, str]],
        *,
        max_output_tokens: int,
        model: str | None = None,
    ) -> Completion:
        """Generate a completion for a conversation.

        Args:
            system_prompt: The system message setting context/behavior.
            turns: Strictly alternating turns as
                [{"role": "user"|"assistant", "content": "..."}],
                starting and ending with a user turn.
            max_output_tokens: Ceiling on generated tokens.
            model: Optional model override. Uses provider default if not specified.

        Returns:
            The completion text with token usage.

        Raises:
            LLMAccessDeniedError: If credentials are rejected.
            LLMInvalidRequestError: If the request is rejected as malformed.
            LLMRateLimitError: If rate limited by the provider.
            LLMTimeoutError: If the request times out.
            LLMProviderError: For any other failure.
        """
        ...
