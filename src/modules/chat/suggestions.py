"""Follow-up question suggestions."""

import ast
import asyncio
import json
import re
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.infrastructure.cache import SuggestionCacheEntry
from src.infrastructure.llm import LLMProvider, LLMProviderError, LLMRateLimitError
from src.modules.chat.normalizer import derive_key
from src.modules.chat.prompts import build_suggestion_prompt
from src.modules.chat.reference import ReferenceContentAccessor
from src.modules.chat.response_cache import SUGGESTION_KEY_PREFIX, ResponseCache
from src.modules.chat.schemas import ConversationTurn

logger = structlog.get_logger()

INITIAL_SUGGESTIONS_KEY = f"{SUGGESTION_KEY_PREFIX}initial"
MAX_SUGGESTIONS = 5
MAX_SUGGESTION_LENGTH = 100

DEFAULT_INITIAL_SUGGESTIONS = [
    "What travel packages are available?",
    "Which destinations in Asia do you cover?",
    "What is the cheapest package?",
    "Are there packages from Bengaluru?",
    "What is included in a package?",
]

DEFAULT_FOLLOW_UP_SUGGESTIONS = [
    "Tell me more about this package",
    "What other destinations are available?",
    "What does the price include?",
    "Are there shorter trips?",
]

_LIST_LITERAL_PATTERN = re.compile(r"\[.*\]", re.DOTALL)
_FENCE_PATTERN = re.compile(r"^\s*```.*$", re.MULTILINE)
_LIST_MARKER_PATTERN = re.compile(r"^(?:[-*•]+|\d+[.):]|\(\d+\))\s*")
_TRAILING_SEPARATOR_PATTERN = re.compile(r"[\"']?\s*,\s*$")


def default_suggestions(history: list[ConversationTurn]) -> list[str]:
    """Static suggestions for when nothing better is available."""
    if history:
        return list(DEFAULT_FOLLOW_UP_SUGGESTIONS)
    return list(DEFAULT_INITIAL_SUGGESTIONS)


def suggestion_key(history: list[ConversationTurn]) -> str:
    """Cache key for suggestions at this point of the conversation.

    The opening screen shares one sentinel key; afterwards the key is a
    digest of the most recent exchange.
    """
    if not history:
        return INITIAL_SUGGESTIONS_KEY
    last_exchange = " ".join(turn.content for turn in history[-2:])
    return f"{SUGGESTION_KEY_PREFIX}{derive_key(last_exchange)}"


def _clean(item: str) -> str:
    return item.strip().strip("\"'").strip()


def _literal_items(literal: str) -> list[str]:
    """Strings from a list literal in JSON or Python syntax.

    Object entries contribute their first string value, which covers the
    ``[{"question": "..."}]`` shape.
    """
    try:
        parsed = json.loads(literal)
    except ValueError:
        try:
            parsed = ast.literal_eval(literal)
        except (ValueError, TypeError, SyntaxError, MemoryError, RecursionError):
            return []
    if not isinstance(parsed, list):
        return []

    items: list[str] = []
    for entry in parsed:
        if isinstance(entry, dict):
            entry = next((v for v in entry.values() if isinstance(v, str)), None)
        if isinstance(entry, str) and _clean(entry):
            items.append(_clean(entry))
    return items


def parse_suggestions(text: str) -> list[str]:
    """Extract suggestion strings from a model response.

    Code fences are dropped, then a bracketed list literal is tried
    (JSON first, Python syntax second). Otherwise there is one suggestion
    per line with list markers and trailing separators removed. Returns
    [] when nothing usable is found.
    """
    text = _FENCE_PATTERN.sub("", text)

    match = _LIST_LITERAL_PATTERN.search(text)
    if match:
        items = _literal_items(match.group(0))
        if items:
            return items

    suggestions: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped.strip("[]{},"):
            continue
        candidate = _LIST_MARKER_PATTERN.sub("", stripped)
        candidate = _TRAILING_SEPARATOR_PATTERN.sub("", candidate).strip("[]")
        candidate = _clean(candidate)
        if not candidate or candidate.endswith(":"):
            continue
        if len(candidate) < MAX_SUGGESTION_LENGTH:
            suggestions.append(candidate)
    return suggestions


class SuggestionEngine:
    """Generates and caches follow-up questions.

    ``suggest`` runs the full pipeline: cache lookup, a completion call
    retried with exponential backoff while the backend is rate limiting,
    parsing, and a best-effort cache write. ``suggest_within_timeout``
    races that pipeline against a fixed deadline so that a slow backend
    never holds up an answer; a pipeline that loses the race keeps
    running in the background for its cache write.
    """

    def __init__(
        self,
        llm_provider: LLMProvider,
        cache: ResponseCache,
        reference: ReferenceContentAccessor,
        *,
        max_output_tokens: int = 200,
        max_retries: int = 2,
        backoff_seconds: float = 0.5,
        timeout_seconds: float = 3.0,
        model: str | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the engine.

        Args:
            llm_provider: Completion backend.
            cache: Shared response cache (suggestion entries).
            reference: Accessor for the catalog the suggestions must stay within.
            max_output_tokens: Output ceiling for suggestion completions.
            max_retries: Extra attempts after a rate-limited call.
            backoff_seconds: Delay before the first retry; doubles each time.
            timeout_seconds: Deadline for ``suggest_within_timeout``.
            model: Optional model override.
            sleep: Awaitable sleep used between retries (injected in tests).
        """
        self._llm = llm_provider
        self._cache = cache
        self._reference = reference
        self._max_output_tokens = max_output_tokens
        self._max_retries = max_retries
        self._backoff_seconds = backoff_seconds
        self._timeout_seconds = timeout_seconds
        self._model = model
        self._sleep = sleep
        self._background: set[asyncio.Task[list[str]]] = set()

    @property
    def pending_count(self) -> int:
        """Number of suggestion pipelines still running, abandoned ones included."""
        return len(self._background)

    async def suggest(self, history: list[ConversationTurn]) -> list[str]:
        """Return 4-5 follow-up questions for the conversation so far."""
        key = suggestion_key(history)

        cached = await self._cache.get_suggestions(key)
        if cached is not None and cached.suggestions:
            logger.debug("suggestions_cache_hit", key_prefix=key[:24])
            return list(cached.suggestions)

        catalog = await self._reference.get_document()
        system_prompt, user_message = build_suggestion_prompt(catalog, history)

        try:
            text = await self._complete_with_backoff(system_prompt, user_message)
        except LLMRateLimitError:
            logger.warning(
                "suggestions_rate_limit_exhausted",
                attempts=self._max_retries + 1,
            )
            return default_suggestions(history)
        except LLMProviderError as e:
            logger.warning("suggestions_backend_failed", kind=e.kind, error=str(e))
            return default_suggestions(history)

        suggestions = parse_suggestions(text)[:MAX_SUGGESTIONS]
        if not suggestions:
            logger.info("suggestions_unparseable", response_length=len(text))
            suggestions = default_suggestions(history)

        await self._cache.put_suggestions(
            SuggestionCacheEntry(
                key=key,
                suggestions=suggestions,
                expires_at=datetime.now(UTC)
                + timedelta(seconds=self._cache.suggestion_ttl_seconds),
            )
        )
        return suggestions

    async def suggest_within_timeout(self, history: list[ConversationTurn]) -> list[str]:
        """Run ``suggest`` but give up after the configured deadline.

        On timeout the static defaults are returned and the pipeline is
        left to finish on its own; it is not cancelled.
        The pipeline is tracked from the start, so cancelling the caller
        mid-wait leaves it running until ``drain``.
        """
        task = asyncio.create_task(self.suggest(list(history)))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        done, _ = await asyncio.wait({task}, timeout=self._timeout_seconds)

        if task in done:
            self._background.discard(task)
            error = task.exception()
            if error is not None:
                logger.error(
                    "suggestions_failed",
                    error=str(error),
                    error_type=type(error).__name__,
                )
                return default_suggestions(history)
            return task.result()

        logger.warning(
            "suggestions_timed_out",
            timeout_seconds=self._timeout_seconds,
            history_length=len(history),
        )
        task.add_done_callback(self._on_abandoned_done)
        return default_suggestions(history)

    async def drain(self) -> None:
        """Wait for abandoned pipelines to finish (used on shutdown)."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def _on_abandoned_done(self, task: asyncio.Task[list[str]]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "suggestions_background_failed",
                error=str(error),
                error_type=type(error).__name__,
            )
        else:
            logger.debug("suggestions_background_completed")

    async def _complete_with_backoff(self, system_prompt: str, user_message: str) -> str:
        """Call the backend, retrying only while it reports rate limiting."""
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(LLMRateLimitError),
            stop=stop_after_attempt(self._max_retries + 1),
            wait=wait_exponential(multiplier=self._backoff_seconds, exp_base=2),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                completion = await self._llm.complete(
                    system_prompt,
                    [{"role": "user", "content": user_message}],
                    max_output_tokens=self._max_output_tokens,
                    model=self._model,
                )
        return completion.text

    def _log_retry(self, retry_state: RetryCallState) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.info(
            "suggestions_rate_limited_retrying",
            attempt=retry_state.attempt_number,
            delay_seconds=delay,
        )
