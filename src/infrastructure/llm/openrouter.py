"""OpenRouter LLM provider implementation."""

from datetime import timedelta

import structlog
from aiobreaker import CircuitBreaker, CircuitBreakerError
from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    AuthenticationError,
    BadRequestError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    UnprocessableEntityError,
)
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.infrastructure.llm.exceptions import (
    LLMAccessDeniedError,
    LLMConfigurationError,
    LLMInvalidRequestError,
    LLMProviderError,
    LLMRateLimitError,
    LLMTimeoutError,
)
from src.infrastructure.llm.protocol import Completion
from src.infrastructure.observability import get_tracer

logger = structlog.get_logger()
tracer = get_tracer(__name__)


class OpenRouterProvider:
    """LLM provider using OpenRouter's OpenAI-compatible API.

    Includes resilience patterns:
    - Retries with exponential backoff for transient transport failures
    - Circuit breaker to fail fast after repeated failures
    - Configurable timeouts

    Rate limiting is classified and raised, never retried here; callers
    decide whether a throttled request is worth another attempt.
    """

    PROVIDER_NAME = "openrouter"
    BASE_URL = "https://openrouter.ai/api/v1"

    def __init__(
        self,
        api_key: str,
        *,
        default_model: str = "anthropic/claude-3-haiku",
        timeout_seconds: float = 30.0,
        circuit_breaker_fail_max: int = 5,
        circuit_breaker_timeout: float = 60.0,
    ) -> None:
        """Initialize the OpenRouter provider.

        Args:
            api_key: OpenRouter API key.
            default_model: Default model to use for completions.
            timeout_seconds: Request timeout in seconds.
            circuit_breaker_fail_max: Open circuit after this many failures.
            circuit_breaker_timeout: Time in seconds before attempting recovery.

        Raises:
            LLMConfigurationError: If API key is missing.
        """
        if not api_key:
            raise LLMConfigurationError(
                "OpenRouter API key is required", provider=self.PROVIDER_NAME
            )

        self._client = AsyncOpenAI(
            base_url=self.BASE_URL,
            api_key=api_key,
            timeout=timeout_seconds,
        )
        self._default_model = default_model
        self._timeout = timeout_seconds

        # Client-side mistakes and throttling say nothing about provider health
        self._breaker = CircuitBreaker(
            fail_max=circuit_breaker_fail_max,
            timeout_duration=timedelta(seconds=circuit_breaker_timeout),
            exclude=[LLMAccessDeniedError, LLMInvalidRequestError, LLMRateLimitError],
        )

    async def complete(
        self,
        system_prompt: str,
        turns: list[dict[str, str]],
        *,
        max_output_tokens: int,
        model: str | None = None,
    ) -> Completion:
        """Generate a completion for a conversation using OpenRouter.

        Args:
            system_prompt: The system message setting context/behavior.
            turns: Alternating user/assistant turns ending with a user turn.
            max_output_tokens: Ceiling on generated tokens.
            model: Optional model override.

        Returns:
            The completion text with token usage.

        Raises:
            LLMAccessDeniedError: If credentials are rejected.
            LLMInvalidRequestError: If the request is rejected as malformed.
            LLMRateLimitError: If rate limited.
            LLMTimeoutError: If the request times out.
            LLMProviderError: If the completion fails for any other reason.
        """
        model_to_use = model or self._default_model

        with tracer.start_as_current_span("llm.complete") as span:
            span.set_attribute("llm.provider", self.PROVIDER_NAME)
            span.set_attribute("llm.model", model_to_use)
            span.set_attribute("llm.turn_count", len(turns))
            span.set_attribute("llm.max_output_tokens", max_output_tokens)
            total_input_length = sum(len(t.get("content", "")) for t in turns)
            span.set_attribute("llm.input_length", total_input_length)

            try:
                result: Completion = await self._complete_with_resilience(
                    system_prompt=system_prompt,
                    turns=turns,
                    max_output_tokens=max_output_tokens,
                    model=model_to_use,
                )
                span.set_attribute("llm.output_length", len(result.text))
                span.set_attribute("llm.input_tokens", result.input_tokens)
                span.set_attribute("llm.output_tokens", result.output_tokens)
                return result

            except CircuitBreakerError as e:
                span.record_exception(e)
                logger.warning(
                    "circuit_breaker_open",
                    provider=self.PROVIDER_NAME,
                    model=model_to_use,
                )
                raise LLMProviderError(
                    "Service temporarily unavailable. Please try again in a moment.",
                    provider=self.PROVIDER_NAME,
                    kind="unavailable",
                ) from e

            except APITimeoutError as e:
                # After all retries exhausted
                span.record_exception(e)
                logger.warning(
                    "llm_timeout",
                    provider=self.PROVIDER_NAME,
                    model=model_to_use,
                    timeout_seconds=self._timeout,
                )
                raise LLMTimeoutError(
                    f"Request timed out after {self._timeout}s",
                    provider=self.PROVIDER_NAME,
                ) from e

            except APIConnectionError as e:
                # After all retries exhausted
                span.record_exception(e)
                logger.error(
                    "llm_connection_error",
                    provider=self.PROVIDER_NAME,
                    model=model_to_use,
                    error=str(e),
                )
                raise LLMProviderError(
                    "Unable to connect to LLM service",
                    provider=self.PROVIDER_NAME,
                    kind="unavailable",
                ) from e

            except LLMProviderError as e:
                span.record_exception(e)
                raise

    @retry(
        retry=retry_if_exception_type((APIConnectionError, APITimeoutError)),
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, max=5),
        reraise=True,
    )
    async def _complete_with_resilience(
        self,
        system_prompt: str,
        turns: list[dict[str, str]],
        max_output_tokens: int,
        model: str,
    ) -> Completion:
        """Internal method with retry and circuit breaker logic."""
        return await self._breaker.call_async(  # type: ignore[no-any-return]
            self._do_complete, system_prompt, turns, max_output_tokens, model
        )

    async def _do_complete(
        self,
        system_prompt: str,
        turns: list[dict[str, str]],
        max_output_tokens: int,
        model: str,
    ) -> Completion:
        """Execute the actual API call.

        Note: APIConnectionError and APITimeoutError are intentionally NOT caught
        here - they bubble up to allow retry logic in _complete_with_resilience.
        """
        logger.debug(
            "llm_request_start",
            provider=self.PROVIDER_NAME,
            model=model,
            turn_count=len(turns),
            max_output_tokens=max_output_tokens,
        )

        all_messages: list[dict[str, str]] = [
            {"role": "system", "content": system_prompt}
        ]
        all_messages.extend(turns)

        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=all_messages,  # type: ignore[arg-type]
                max_tokens=max_output_tokens,
            )

        except RateLimitError as e:
            logger.warning(
                "llm_rate_limited",
                provider=self.PROVIDER_NAME,
                model=model,
            )
            raise LLMRateLimitError(
                "Rate limited by OpenRouter. Please try again shortly.",
                provider=self.PROVIDER_NAME,
            ) from e

        except (AuthenticationError, PermissionDeniedError) as e:
            logger.error(
                "llm_access_denied",
                provider=self.PROVIDER_NAME,
                model=model,
                status_code=e.status_code,
            )
            raise LLMAccessDeniedError(
                "The assistant is not authorized to use the language model.",
                provider=self.PROVIDER_NAME,
            ) from e

        except (BadRequestError, UnprocessableEntityError, NotFoundError) as e:
            error_str = str(e).lower()
            if "context" in error_str and (
                "length" in error_str or "limit" in error_str
            ):
                logger.warning(
                    "llm_context_overflow",
                    provider=self.PROVIDER_NAME,
                    model=model,
                    turn_count=len(turns),
                )
                raise LLMInvalidRequestError(
                    "Conversation is too long. Please start a new chat.",
                    provider=self.PROVIDER_NAME,
                ) from e

            logger.error(
                "llm_invalid_request",
                provider=self.PROVIDER_NAME,
                model=model,
                status_code=e.status_code,
            )
            raise LLMInvalidRequestError(
                "The request was rejected by the language model.",
                provider=self.PROVIDER_NAME,
            ) from e

        except (APIConnectionError, APITimeoutError):
            # Let these bubble up for retry logic
            raise

        except APIStatusError as e:
            logger.error(
                "llm_status_error",
                provider=self.PROVIDER_NAME,
                model=model,
                status_code=e.status_code,
            )
            raise LLMProviderError(
                "The language model service returned an error.",
                provider=self.PROVIDER_NAME,
                kind="unavailable" if e.status_code >= 500 else "unknown",
            ) from e

        except Exception as e:
            logger.error(
                "llm_unexpected_error",
                provider=self.PROVIDER_NAME,
                model=model,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise LLMProviderError(
                "An unexpected error occurred",
                provider=self.PROVIDER_NAME,
            ) from e

        content = response.choices[0].message.content or ""
        usage = response.usage
        input_tokens = int(getattr(usage, "prompt_tokens", 0) or 0)
        output_tokens = int(getattr(usage, "completion_tokens", 0) or 0)

        logger.debug(
            "llm_request_success",
            provider=self.PROVIDER_NAME,
            model=model,
            response_length=len(content),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )

        return Completion(
            text=content,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model=getattr(response, "model", None) or model,
        )
