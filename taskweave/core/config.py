"""Configuration management using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

    # Provider credentials
    anthropic_api_key: SecretStr | None = Field(
        default=None,
        description="Anthropic API key for Claude access",
    )
    openai_api_key: SecretStr | None = Field(
        default=None,
        description="OpenAI API key",
    )
    perplexity_api_key: SecretStr | None = Field(
        default=None,
        description="Perplexity API key for research generation",
    )

    # Local providers
    ollama_base_url: str = Field(
        default="http://localhost:11434",
        description="Base URL of the local Ollama server",
    )
    claude_cli_path: str | None = Field(
        default=None,
        description="Path to the claude CLI (auto-detected if unset)",
    )

    # Taskweave Configuration
    taskweave_log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    taskweave_debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    taskweave_log_file: str | None = Field(
        default=None,
        description="Optional log file path (rotated daily)",
    )
    taskweave_max_retries: int = Field(
        default=1,
        ge=0,
        le=10,
        description="Retries per role after the first failed attempt",
    )
    taskweave_retry_initial_delay: float = Field(
        default=1.0,
        ge=0.0,
        description="Initial backoff in seconds (doubles on every retry)",
    )
    taskweave_object_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts a CLI provider makes to produce schema-valid JSON",
    )

    def api_key_for(self, provider_id: str) -> str | None:
        """Get the environment-level API key for a provider, if any."""
        secret: SecretStr | None = getattr(self, f"{provider_id.replace('-', '_')}_api_key", None)
        if secret is None:
            return None
        value = secret.get_secret_value().strip()
        return value or None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings instance loaded from environment.

    Example:
        >>> settings = get_settings()
        >>> settings.taskweave_max_retries
        1
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
