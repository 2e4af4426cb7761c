"""Application configuration using pydantic-settings."""

from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "TravelBuddy"
    app_version: str = "0.1.0"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # LLM Provider (OpenRouter)
    openrouter_api_key: SecretStr | None = None
    llm_model: str = "anthropic/claude-3-haiku"
    llm_timeout_seconds: float = 30.0
    llm_max_tokens: int = 1000
    suggestion_max_tokens: int = 200

    # Rate limiting
    rate_limit_requests: int = 10
    rate_limit_window: str = "minute"

    # Circuit breaker
    circuit_breaker_fail_max: int = 5
    circuit_breaker_timeout: float = 60.0

    # Response cache
    cache_enabled: bool = True
    cache_ttl_hours: int = 24  # Answer entries
    suggestion_cache_ttl_hours: int = 24
    database_path: str = "./data/travelbuddy.db"

    # Conversation
    conversation_window: int = 20  # Most recent turns kept from client history

    # Suggestions
    suggestion_timeout_seconds: float = 3.0
    suggestion_max_retries: int = 2  # Extra attempts when rate limited
    suggestion_backoff_seconds: float = 0.5  # Doubles each attempt

    # Reference document (file path or http(s) URL)
    reference_source: str = "./documents/travel_packages.md"
    reference_ttl_seconds: int = 3600
    reference_timeout_seconds: float = 10.0

    # Observability
    log_level: str = "INFO"
    log_json: bool = False
    tracing_enabled: bool = False
    otlp_endpoint: str | None = None
    tracing_console_export: bool = False
    tracing_sample_rate: float = 1.0


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
