"""Chat service orchestrating caching, conversation repair and generation."""

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

import structlog

from src.infrastructure.cache import CacheEntry
from src.infrastructure.llm import LLMProvider
from src.infrastructure.observability import add_span_attributes, get_tracer
from src.modules.chat.conversation import DEFAULT_WINDOW, assemble_conversation
from src.modules.chat.normalizer import is_generic_follow_up
from src.modules.chat.prompts import build_answer_prompt
from src.modules.chat.reference import ReferenceContentAccessor
from src.modules.chat.response_cache import ResponseCache, answer_key
from src.modules.chat.schemas import ChatResult, ConversationTurn, TokenUsage
from src.modules.chat.suggestions import SuggestionEngine

logger = structlog.get_logger()
tracer = get_tracer(__name__)


class ChatService:
    """Answers catalog questions while avoiding redundant completions.

    Per request: derive the cache key, skip the cache for generic
    follow-ups, serve a live cached answer without calling the backend,
    otherwise repair the history, ask the backend and cache the answer.
    Suggestions are generated on every path under a deadline.

    Only the completion call can fail a request; cache and catalog
    problems are absorbed by the components below.
    """

    def __init__(
        self,
        llm_provider: LLMProvider,
        response_cache: ResponseCache,
        reference: ReferenceContentAccessor,
        suggestion_engine: SuggestionEngine,
        *,
        max_output_tokens: int = 1000,
        conversation_window: int = DEFAULT_WINDOW,
        cache_enabled: bool = True,
        model: str | None = None,
    ) -> None:
        """Initialize the chat service.

        Args:
            llm_provider: Completion backend for answers.
            response_cache: Shared answer/suggestion cache.
            reference: Accessor for the catalog document.
            suggestion_engine: Follow-up suggestion generator.
            max_output_tokens: Output ceiling for answers.
            conversation_window: Most recent history turns considered.
            cache_enabled: When False the answer cache is never read or written.
            model: Optional model override.
        """
        self._llm = llm_provider
        self._cache = response_cache
        self._reference = reference
        self._suggestions = suggestion_engine
        self._max_output_tokens = max_output_tokens
        self._window = conversation_window
        self._cache_enabled = cache_enabled
        self._model = model

    async def answer(
        self,
        query: str,
        conversation_history: Iterable[Any] | None = None,
    ) -> ChatResult:
        """Answer ``query`` in the context of the client's history.

        Args:
            query: The user's question.
            conversation_history: Prior turns as supplied by the client,
                in any shape; invalid entries are repaired or dropped.

        Returns:
            ChatResult with the answer, cache flag, usage and suggestions.

        Raises:
            LLMProviderError: If the completion backend fails.
        """
        history = list(conversation_history or [])
        bypass = is_generic_follow_up(query)
        key = answer_key(query)
        use_cache = self._cache_enabled and not bypass

        with tracer.start_as_current_span("chat.answer"):
            add_span_attributes(
                {
                    "chat.query_length": len(query),
                    "chat.history_length": len(history),
                    "chat.cache_bypassed": bypass,
                }
            )

            conversation = assemble_conversation(query, history, window=self._window)
            cached = await self._cache.get(key) if use_cache else None
            add_span_attributes({"chat.cache_hit": cached is not None})

            if cached is not None:
                answer = cached.answer
                usage = TokenUsage(
                    input_tokens=cached.input_tokens,
                    output_tokens=cached.output_tokens,
                    model=cached.model,
                )
                logger.info("chat_answer_from_cache", key_prefix=key[:24])
            else:
                catalog = await self._reference.get_document()
                completion = await self._llm.complete(
                    build_answer_prompt(catalog),
                    [turn.to_message() for turn in conversation],
                    max_output_tokens=self._max_output_tokens,
                    model=self._model,
                )
                answer = completion.text
                usage = TokenUsage(
                    input_tokens=completion.input_tokens,
                    output_tokens=completion.output_tokens,
                    model=completion.model,
                )
                logger.info(
                    "chat_answer_generated",
                    key_prefix=key[:24],
                    bypassed_cache=bypass,
                    turn_count=len(conversation),
                    answer_length=len(answer),
                    input_tokens=usage.input_tokens,
                    output_tokens=usage.output_tokens,
                )

                if use_cache and answer.strip():
                    await self._cache.put(
                        CacheEntry.create(
                            key=key,
                            original_query=query,
                            answer=answer,
                            ttl_seconds=self._cache.answer_ttl_seconds,
                            input_tokens=usage.input_tokens,
                            output_tokens=usage.output_tokens,
                            model=usage.model,
                        )
                    )

            updated = [*conversation, ConversationTurn(role="assistant", content=answer)]
            suggestions = await self._suggestions.suggest_within_timeout(updated)

        return ChatResult(
            answer=answer,
            cached=cached is not None,
            suggestions=suggestions,
            usage=usage,
            timestamp=datetime.now(UTC).isoformat(),
            cache_key=key,
            bypassed_cache=bypass,
            conversation=conversation,
        )

    async def initial_suggestions(self) -> list[str]:
        """Suggestions for a conversation that has not started yet."""
        return await self._suggestions.suggest_within_timeout([])
