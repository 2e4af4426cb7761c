"""Chat API endpoints."""

from typing import Annotated, Any
from uuid import uuid4

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from src.api.rate_limit import get_rate_limit_string, limiter
from src.config import Settings, get_settings
from src.infrastructure.cache import (
    InMemoryKeyValueStore,
    KeyValueStore,
    SQLiteKeyValueStore,
)
from src.infrastructure.content import build_content_store
from src.infrastructure.database import get_database
from src.infrastructure.llm import LLMProviderError, OpenRouterProvider
from src.modules.chat import (
    ChatService,
    ReferenceContentAccessor,
    ResponseCache,
    SuggestionEngine,
)

logger = structlog.get_logger()

router = APIRouter()

# Input constraints
MAX_QUERY_LENGTH = 2000

# HTTP status for each completion failure kind
ERROR_STATUS_CODES = {
    "access_denied": 502,
    "invalid_request": 400,
    "rate_limited": 429,
    "timeout": 504,
    "unavailable": 503,
    "not_configured": 503,
    "unknown": 500,
}

# Singletons (per process)
_llm_provider_instance: dict[str, OpenRouterProvider] = {}
_memory_store_instance: dict[str, InMemoryKeyValueStore] = {}
_reference_instance: dict[str, ReferenceContentAccessor] = {}
_suggestion_engine_instance: dict[str, SuggestionEngine] = {}


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatRequest(BaseModel):
    """Incoming chat request.

    History entries are accepted in any shape; the chat service repairs
    or drops whatever is not a usable user/assistant turn. A history that
    is not a list at all (including null) is treated as empty.
    """

    query: str = Field(
        min_length=1,
        max_length=MAX_QUERY_LENGTH,
        validation_alias=AliasChoices("query", "input"),
    )
    conversation_history: list[Any] = Field(
        default_factory=list,
        validation_alias=AliasChoices("conversationHistory", "conversation_history"),
    )

    @field_validator("conversation_history", mode="before")
    @classmethod
    def _history_as_list(cls, value: Any) -> list[Any]:
        return value if isinstance(value, list) else []


class UsageResponse(_CamelModel):
    """Token usage for the answer."""

    input_tokens: int
    output_tokens: int
    model: str


class ChatResponse(_CamelModel):
    """Successful chat response."""

    answer: str
    cached: bool
    suggestions: list[str]
    usage: UsageResponse
    timestamp: str
    request_id: str


class SuggestionsResponse(_CamelModel):
    """Initial suggestions response."""

    suggestions: list[str]
    request_id: str


def error_response(kind: str, message: str) -> JSONResponse:
    """Build the ``{errorKind, message}`` error body for a failure kind."""
    return JSONResponse(
        status_code=ERROR_STATUS_CODES.get(kind, 500),
        content={"errorKind": kind, "message": message},
    )


def get_llm_provider(
    settings: Annotated[Settings, Depends(get_settings)],
) -> OpenRouterProvider | None:
    """Get the LLM provider singleton if configured, None otherwise.

    One provider per process so the circuit breaker sees every request.
    """
    if settings.openrouter_api_key is None:
        return None

    if settings.llm_model not in _llm_provider_instance:
        _llm_provider_instance[settings.llm_model] = OpenRouterProvider(
            api_key=settings.openrouter_api_key.get_secret_value(),
            default_model=settings.llm_model,
            timeout_seconds=settings.llm_timeout_seconds,
            circuit_breaker_fail_max=settings.circuit_breaker_fail_max,
            circuit_breaker_timeout=settings.circuit_breaker_timeout,
        )

    return _llm_provider_instance[settings.llm_model]


def get_key_value_store() -> KeyValueStore:
    """Get the cache store: SQLite when the database is up, memory otherwise."""
    try:
        return SQLiteKeyValueStore(get_database())
    except RuntimeError:
        if "default" not in _memory_store_instance:
            logger.warning("cache_store_memory_fallback")
            _memory_store_instance["default"] = InMemoryKeyValueStore()
        return _memory_store_instance["default"]


def get_response_cache(
    settings: Annotated[Settings, Depends(get_settings)],
    store: Annotated[KeyValueStore, Depends(get_key_value_store)],
) -> ResponseCache:
    """Build the response cache over the current store."""
    return ResponseCache(
        store,
        answer_ttl_hours=settings.cache_ttl_hours,
        suggestion_ttl_hours=settings.suggestion_cache_ttl_hours,
    )


def get_reference_accessor(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ReferenceContentAccessor:
    """Get or create the process-wide reference document accessor."""
    source = settings.reference_source

    if source not in _reference_instance:
        _reference_instance[source] = ReferenceContentAccessor(
            build_content_store(
                source, timeout_seconds=settings.reference_timeout_seconds
            ),
            source,
            ttl_seconds=settings.reference_ttl_seconds,
        )

    return _reference_instance[source]


def get_suggestion_engine(
    settings: Annotated[Settings, Depends(get_settings)],
    llm_provider: Annotated[OpenRouterProvider | None, Depends(get_llm_provider)],
    response_cache: Annotated[ResponseCache, Depends(get_response_cache)],
    reference: Annotated[ReferenceContentAccessor, Depends(get_reference_accessor)],
) -> SuggestionEngine | None:
    """Get or create the suggestion engine singleton.

    The engine owns the set of abandoned background pipelines, so it must
    outlive individual requests.
    """
    if llm_provider is None:
        return None

    if "default" not in _suggestion_engine_instance:
        _suggestion_engine_instance["default"] = SuggestionEngine(
            llm_provider,
            response_cache,
            reference,
            max_output_tokens=settings.suggestion_max_tokens,
            max_retries=settings.suggestion_max_retries,
            backoff_seconds=settings.suggestion_backoff_seconds,
            timeout_seconds=settings.suggestion_timeout_seconds,
        )

    return _suggestion_engine_instance["default"]


def get_chat_service(
    settings: Annotated[Settings, Depends(get_settings)],
    llm_provider: Annotated[OpenRouterProvider | None, Depends(get_llm_provider)],
    response_cache: Annotated[ResponseCache, Depends(get_response_cache)],
    reference: Annotated[ReferenceContentAccessor, Depends(get_reference_accessor)],
    suggestion_engine: Annotated[
        SuggestionEngine | None, Depends(get_suggestion_engine)
    ],
) -> ChatService | None:
    """Get the chat service if the LLM is configured, None otherwise."""
    if llm_provider is None or suggestion_engine is None:
        return None

    return ChatService(
        llm_provider,
        response_cache,
        reference,
        suggestion_engine,
        max_output_tokens=settings.llm_max_tokens,
        conversation_window=settings.conversation_window,
        cache_enabled=settings.cache_enabled,
    )


async def drain_background_suggestions() -> None:
    """Let abandoned suggestion pipelines finish their cache writes."""
    for engine in _suggestion_engine_instance.values():
        await engine.drain()


@router.post("/chat", response_model=ChatResponse)
@limiter.limit(get_rate_limit_string)
async def chat(
    request: Request,  # noqa: ARG001 - required by slowapi
    body: ChatRequest,
    chat_service: Annotated[ChatService | None, Depends(get_chat_service)],
) -> ChatResponse | JSONResponse:
    """Answer a question about the travel package catalog.

    Returns ``{errorKind, message}`` with a matching status code when the
    completion backend fails or is not configured.
    """
    request_id = uuid4().hex
    structlog.contextvars.bind_contextvars(request_id=request_id)

    try:
        if chat_service is None:
            logger.warning("llm_not_configured")
            return error_response(
                "not_configured",
                "The assistant is not configured yet. Please try again later.",
            )

        try:
            result = await chat_service.answer(
                body.query,
                conversation_history=body.conversation_history,
            )
        except LLMProviderError as e:
            logger.error(
                "llm_error",
                error=str(e),
                kind=e.kind,
                provider=e.provider,
                query_length=len(body.query),
            )
            return error_response(e.kind, str(e))

        return ChatResponse(
            answer=result.answer,
            cached=result.cached,
            suggestions=result.suggestions,
            usage=UsageResponse(
                input_tokens=result.usage.input_tokens,
                output_tokens=result.usage.output_tokens,
                model=result.usage.model,
            ),
            timestamp=result.timestamp,
            request_id=request_id,
        )
    finally:
        structlog.contextvars.unbind_contextvars("request_id")


@router.get("/suggestions", response_model=SuggestionsResponse)
@limiter.limit(get_rate_limit_string)
async def suggestions(
    request: Request,  # noqa: ARG001 - required by slowapi
    chat_service: Annotated[ChatService | None, Depends(get_chat_service)],
) -> SuggestionsResponse | JSONResponse:
    """Return opening suggestions for a new conversation."""
    if chat_service is None:
        return error_response(
            "not_configured",
            "The assistant is not configured yet. Please try again later.",
        )

    return SuggestionsResponse(
        suggestions=await chat_service.initial_suggestions(),
        request_id=uuid4().hex,
    )
