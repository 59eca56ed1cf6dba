"""Provider registry - maps provider ids to provider implementations."""

from dataclasses import dataclass

from loguru import logger

from taskweave.core.config import Settings, get_settings
from taskweave.providers.anthropic import AnthropicProvider
from taskweave.providers.base import BaseProvider
from taskweave.providers.claude_code import ClaudeCodeProvider
from taskweave.providers.ollama import OllamaProvider
from taskweave.providers.openai import OpenAIProvider, PerplexityProvider


@dataclass(frozen=True)
class ProviderDescriptor:
    """Registry entry for one provider."""

    provider_id: str
    requires_api_key: bool
    provider: BaseProvider


class ProviderRegistry:
    """
    Explicit provider table, built once at startup.

    Example:
        >>> registry = ProviderRegistry()
        >>> registry.register(OllamaProvider())
        >>> registry.get("ollama").requires_api_key
        False
    """

    def __init__(self) -> None:
        self._providers: dict[str, ProviderDescriptor] = {}

    def register(self, provider: BaseProvider, provider_id: str | None = None) -> None:
        """Register a provider under its own id (or an explicit override)."""
        key = provider_id or provider.provider_id
        if key in self._providers:
            logger.debug(f"Replacing registered provider '{key}'")
        self._providers[key] = ProviderDescriptor(
            provider_id=key,
            requires_api_key=provider.requires_api_key,
            provider=provider,
        )

    def get(self, provider_id: str) -> ProviderDescriptor | None:
        """Get a provider descriptor by id."""
        return self._providers.get(provider_id)

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._providers

    def provider_ids(self) -> list[str]:
        """List registered provider ids."""
        return sorted(self._providers)


def create_default_registry(settings: Settings | None = None) -> ProviderRegistry:
    """Build the registry with every built-in provider.

    Args:
        settings: Optional settings override.

    Returns:
        Populated ProviderRegistry.
    """
    settings = settings or get_settings()
    attempts = settings.taskweave_object_max_attempts

    registry = ProviderRegistry()
    registry.register(AnthropicProvider(object_max_attempts=attempts))
    registry.register(OpenAIProvider(object_max_attempts=attempts))
    registry.register(PerplexityProvider(object_max_attempts=attempts))
    registry.register(
        OllamaProvider(base_url=settings.ollama_base_url, object_max_attempts=attempts)
    )
    registry.register(
        ClaudeCodeProvider(claude_path=settings.claude_cli_path, object_max_attempts=attempts)
    )
    return registry
