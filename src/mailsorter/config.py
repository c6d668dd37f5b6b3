"""Configuration management for Mailsorter.

This module handles application configuration using Pydantic settings.
Configuration can be loaded from environment variables or .env files.

Settings instances are frozen: a reload produces a new snapshot instead of
mutating the one that in-flight requests already hold.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with
    the MAILSORTER_ prefix (e.g., MAILSORTER_CLASSIFIER_API_KEY).
    """

    model_config = SettingsConfigDict(
        env_prefix="MAILSORTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Classification service (chat-completions API)
    classifier_api_url: str = Field(
        default="https://api.mistral.ai/v1/chat/completions",
        description="Chat-completions endpoint used for classification",
    )
    classifier_api_key: str | None = Field(
        default=None,
        description="Bearer token for the classification service",
    )
    classifier_model: str = Field(
        default="mistral-small-latest",
        description="Model name sent with every classification request",
    )
    classifier_timeout: int = Field(
        default=30,
        description="Timeout for a single classification HTTP call in seconds",
    )
    classifier_temperature: float = Field(
        default=0.3,
        description="Sampling temperature; kept low for consistent answers",
    )
    classifier_max_tokens: int = Field(
        default=500,
        description="Maximum tokens requested per classification answer",
    )

    # Gmail Configuration
    gmail_credentials_path: Path = Field(
        default=Path("credentials.json"),
        description="Path to Gmail API credentials file",
    )
    gmail_token_path: Path = Field(
        default=Path("token.json"),
        description="Path to Gmail API token file",
    )
    gmail_scope: str = Field(
        default="https://www.googleapis.com/auth/gmail.modify",
        description="OAuth scope used for Gmail access; labels and archiving need gmail.modify",
    )
    gmail_user_id: str = Field(
        default="me",
        description="Gmail API userId used for every call",
    )

    # Storage
    database_url: str = Field(
        default="sqlite:///mailsorter.sqlite3",
        description="SQLAlchemy database URL (SQLite or PostgreSQL)",
    )

    # Request budgets
    analyze_timeout_seconds: int = Field(
        default=60,
        description="Ceiling for one batch message analysis request",
    )
    bulk_apply_timeout_seconds: int = Field(
        default=120,
        description="Ceiling for one bulk apply request; remaining items stay pending",
    )
    sender_analysis_max_messages: int = Field(
        default=20,
        description="Maximum messages fetched when analyzing a sender",
    )
    sender_prompt_examples: int = Field(
        default=5,
        description="Maximum subjects embedded in a sender analysis prompt",
    )
    snippet_max_chars: int = Field(
        default=200,
        description="Snippet truncation length used in prompts",
    )
    bulk_apply_max_messages: int = Field(
        default=500,
        description="Maximum messages touched by one bulk apply request",
    )
    suggestions_page_size: int = Field(
        default=100,
        description="Maximum suggestions returned by a listing call",
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost"],
        description="Origins allowed to call the HTTP API",
    )

    @property
    def classifier_configured(self) -> bool:
        return bool(self.classifier_api_key)


@lru_cache
def get_settings() -> Settings:
    """Get the current settings snapshot.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()


def reload_settings() -> Settings:
    """Drop the cached snapshot and build a fresh one from the environment.

    Callers that already hold the previous snapshot keep using it until their
    operation completes.
    """
    get_settings.cache_clear()
    return get_settings()
