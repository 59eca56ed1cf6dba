"""LLM providers - one implementation per backend, behind a common contract."""

from taskweave.providers.anthropic import AnthropicProvider
from taskweave.providers.base import BaseProvider
from taskweave.providers.claude_code import ClaudeCodeProvider
from taskweave.providers.ollama import OllamaProvider
from taskweave.providers.openai import OpenAIProvider, PerplexityProvider
from taskweave.providers.registry import (
    ProviderDescriptor,
    ProviderRegistry,
    create_default_registry,
)

__all__ = [
    "AnthropicProvider",
    "BaseProvider",
    "ClaudeCodeProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "PerplexityProvider",
    "ProviderDescriptor",
    "ProviderRegistry",
    "create_default_registry",
]
