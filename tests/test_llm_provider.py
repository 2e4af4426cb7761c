"""Tests for LLM provider infrastructure."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from openai import (
    APIConnectionError,
    APITimeoutError,
    AuthenticationError,
    BadRequestError,
    InternalServerError,
    RateLimitError,
)

from src.infrastructure.llm import (
    Completion,
    LLMAccessDeniedError,
    LLMConfigurationError,
    LLMInvalidRequestError,
    LLMProviderError,
    LLMRateLimitError,
    LLMTimeoutError,
    OpenRouterProvider,
)

TURNS = [{"role": "user", "content": "What packages exist in Thailand?"}]


def _mock_response(content: str | None = "Test response") -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    response.usage.prompt_tokens = 120
    response.usage.completion_tokens = 30
    response.model = "anthropic/claude-3-haiku"
    return response


def _status_error(cls: type, status_code: int, message: str) -> Exception:
    return cls(message=message, response=MagicMock(status_code=status_code), body=None)


class TestOpenRouterProviderInit:
    """Tests for OpenRouterProvider initialization."""

    def test_init_with_valid_api_key(self):
        """Provider should initialize with valid API key."""
        provider = OpenRouterProvider(api_key="test-key")

        assert provider._default_model == "anthropic/claude-3-haiku"
        assert provider._timeout == 30.0

    def test_init_with_empty_api_key_raises(self):
        """Provider should raise error with empty API key."""
        with pytest.raises(LLMConfigurationError) as exc_info:
            OpenRouterProvider(api_key="")

        assert "API key is required" in str(exc_info.value)
        assert exc_info.value.provider == "openrouter"
        assert exc_info.value.kind == "not_configured"

    def test_init_with_custom_circuit_breaker_settings(self):
        """Provider should accept custom circuit breaker settings."""
        provider = OpenRouterProvider(
            api_key="test-key",
            circuit_breaker_fail_max=3,
            circuit_breaker_timeout=30.0,
        )

        assert provider._breaker._fail_max == 3


class TestOpenRouterProviderComplete:
    """Tests for OpenRouterProvider.complete() method."""

    @pytest.fixture
    def provider(self):
        """Create a provider with a mocked client."""
        return OpenRouterProvider(api_key="test-key")

    async def test_complete_returns_text_and_usage(self, provider):
        """Complete should return content and token counts."""
        provider._client.chat.completions.create = AsyncMock(
            return_value=_mock_response()
        )

        result = await provider.complete(
            "You are TravelBuddy.", TURNS, max_output_tokens=1000
        )

        assert result == Completion(
            text="Test response",
            input_tokens=120,
            output_tokens=30,
            model="anthropic/claude-3-haiku",
        )

    async def test_complete_sends_system_prompt_then_turns(self, provider):
        """The system prompt is prepended to the conversation."""
        provider._client.chat.completions.create = AsyncMock(
            return_value=_mock_response()
        )
        turns = [
            {"role": "user", "content": "Thailand?"},
            {"role": "assistant", "content": "Bangkok."},
            {"role": "user", "content": "Price?"},
        ]

        await provider.complete("You are TravelBuddy.", turns, max_output_tokens=200)

        call_kwargs = provider._client.chat.completions.create.call_args.kwargs
        assert call_kwargs["messages"] == [
            {"role": "system", "content": "You are TravelBuddy."},
            *turns,
        ]
        assert call_kwargs["max_tokens"] == 200

    async def test_complete_with_custom_model(self, provider):
        """Complete should use specified model."""
        provider._client.chat.completions.create = AsyncMock(
            return_value=_mock_response()
        )

        await provider.complete(
            "You are TravelBuddy.",
            TURNS,
            max_output_tokens=1000,
            model="anthropic/claude-sonnet-4",
        )

        call_kwargs = provider._client.chat.completions.create.call_args.kwargs
        assert call_kwargs["model"] == "anthropic/claude-sonnet-4"

    async def test_complete_handles_empty_response_content(self, provider):
        """Complete should handle None content gracefully."""
        provider._client.chat.completions.create = AsyncMock(
            return_value=_mock_response(content=None)
        )

        result = await provider.complete(
            "You are TravelBuddy.", TURNS, max_output_tokens=1000
        )

        assert result.text == ""

    async def test_complete_timeout_raises_llm_timeout_error(self, provider):
        """Complete should raise LLMTimeoutError on timeout."""
        provider._client.chat.completions.create = AsyncMock(
            side_effect=APITimeoutError(request=MagicMock())
        )

        with pytest.raises(LLMTimeoutError) as exc_info:
            await provider.complete(
                "You are TravelBuddy.", TURNS, max_output_tokens=1000
            )

        assert "timed out" in str(exc_info.value)
        assert exc_info.value.kind == "timeout"

    async def test_rate_limit_is_classified_not_retried(self, provider):
        """Rate limiting surfaces immediately as LLMRateLimitError."""
        provider._client.chat.completions.create = AsyncMock(
            side_effect=_status_error(RateLimitError, 429, "Rate limited")
        )

        with pytest.raises(LLMRateLimitError) as exc_info:
            await provider.complete(
                "You are TravelBuddy.", TURNS, max_output_tokens=1000
            )

        assert exc_info.value.kind == "rate_limited"
        assert provider._client.chat.completions.create.call_count == 1

    async def test_authentication_error_is_access_denied(self, provider):
        """Rejected credentials map to access_denied."""
        provider._client.chat.completions.create = AsyncMock(
            side_effect=_status_error(AuthenticationError, 401, "No auth")
        )

        with pytest.raises(LLMAccessDeniedError) as exc_info:
            await provider.complete(
                "You are TravelBuddy.", TURNS, max_output_tokens=1000
            )

        assert exc_info.value.kind == "access_denied"

    async def test_context_overflow_is_invalid_request(self, provider):
        """Oversized conversations map to invalid_request with a hint."""
        provider._client.chat.completions.create = AsyncMock(
            side_effect=_status_error(
                BadRequestError, 400, "This model's maximum context length is 200000"
            )
        )

        with pytest.raises(LLMInvalidRequestError) as exc_info:
            await provider.complete(
                "You are TravelBuddy.", TURNS, max_output_tokens=1000
            )

        assert "too long" in str(exc_info.value)
        assert exc_info.value.kind == "invalid_request"

    async def test_server_error_is_unavailable(self, provider):
        """5xx responses map to unavailable."""
        provider._client.chat.completions.create = AsyncMock(
            side_effect=_status_error(InternalServerError, 502, "Bad gateway")
        )

        with pytest.raises(LLMProviderError) as exc_info:
            await provider.complete(
                "You are TravelBuddy.", TURNS, max_output_tokens=1000
            )

        assert exc_info.value.kind == "unavailable"

    async def test_unexpected_error_is_unknown(self, provider):
        """Anything else maps to unknown."""
        provider._client.chat.completions.create = AsyncMock(
            side_effect=ValueError("weird")
        )

        with pytest.raises(LLMProviderError) as exc_info:
            await provider.complete(
                "You are TravelBuddy.", TURNS, max_output_tokens=1000
            )

        assert exc_info.value.kind == "unknown"


class TestOpenRouterProviderResilience:
    """Tests for retry and circuit breaker behavior."""

    async def test_retries_on_connection_error(self):
        """Provider should retry on connection errors."""
        provider = OpenRouterProvider(api_key="test-key")

        # Fail once, then succeed
        provider._client.chat.completions.create = AsyncMock(
            side_effect=[
                APIConnectionError(request=MagicMock()),
                _mock_response("Success after retry"),
            ]
        )

        result = await provider.complete(
            "You are TravelBuddy.", TURNS, max_output_tokens=1000
        )

        assert result.text == "Success after retry"
        assert provider._client.chat.completions.create.call_count == 2

    async def test_connection_error_after_retries_is_unavailable(self):
        """Persistent connection failures map to unavailable."""
        provider = OpenRouterProvider(api_key="test-key")
        provider._client.chat.completions.create = AsyncMock(
            side_effect=APIConnectionError(request=MagicMock())
        )

        with pytest.raises(LLMProviderError) as exc_info:
            await provider.complete(
                "You are TravelBuddy.", TURNS, max_output_tokens=1000
            )

        assert "Unable to connect" in str(exc_info.value)
        assert exc_info.value.kind == "unavailable"

    async def test_circuit_breaker_opens_after_failures(self):
        """Circuit breaker should open after repeated failures.

        aiobreaker opens the circuit and raises CircuitBreakerError when the
        failure count reaches fail_max, so with fail_max=3 the third call
        reports the open circuit instead of the server error.
        """
        provider = OpenRouterProvider(
            api_key="test-key",
            circuit_breaker_fail_max=3,
            circuit_breaker_timeout=60.0,
        )
        provider._client.chat.completions.create = AsyncMock(
            side_effect=_status_error(InternalServerError, 500, "Server error")
        )

        for _ in range(2):
            with pytest.raises(LLMProviderError, match="returned an error"):
                await provider.complete(
                    "You are TravelBuddy.", TURNS, max_output_tokens=1000
                )

        with pytest.raises(LLMProviderError) as exc_info:
            await provider.complete(
                "You are TravelBuddy.", TURNS, max_output_tokens=1000
            )

        assert "temporarily unavailable" in str(exc_info.value)
        assert exc_info.value.kind == "unavailable"
        assert provider._client.chat.completions.create.call_count == 3

    async def test_client_errors_do_not_open_circuit(self):
        """Invalid requests say nothing about provider health."""
        provider = OpenRouterProvider(
            api_key="test-key",
            circuit_breaker_fail_max=2,
        )
        provider._client.chat.completions.create = AsyncMock(
            side_effect=_status_error(BadRequestError, 400, "bad request")
        )

        for _ in range(4):
            with pytest.raises(LLMInvalidRequestError):
                await provider.complete(
                    "You are TravelBuddy.", TURNS, max_output_tokens=1000
                )

    async def test_rate_limits_do_not_open_circuit(self):
        """Throttled calls leave the breaker closed for the next request."""
        provider = OpenRouterProvider(
            api_key="test-key",
            circuit_breaker_fail_max=5,
        )
        provider._client.chat.completions.create = AsyncMock(
            side_effect=[_status_error(RateLimitError, 429, "Rate limited")] * 5
            + [_mock_response("Bangkok City Break")]
        )

        for _ in range(5):
            with pytest.raises(LLMRateLimitError):
                await provider.complete(
                    "You are TravelBuddy.", TURNS, max_output_tokens=1000
                )

        result = await provider.complete(
            "You are TravelBuddy.", TURNS, max_output_tokens=1000
        )

        assert result.text == "Bangkok City Break"
        assert provider._client.chat.completions.create.call_count == 6
