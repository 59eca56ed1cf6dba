"""Pytest configuration and shared fixtures."""

import os
from collections.abc import Generator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from loguru import logger

# Set test environment
os.environ.setdefault("TASKWEAVE_LOG_LEVEL", "DEBUG")


# =============================================================================
# SETTINGS / LOGGING
# =============================================================================


@pytest.fixture
def mock_settings() -> Generator:
    """Clear cached settings around a test."""
    from taskweave.core.config import clear_settings_cache

    clear_settings_cache()

    yield

    clear_settings_cache()


@pytest.fixture
def log_records() -> Generator[list[tuple[str, str]], None, None]:
    """Capture loguru output as (level, message) tuples."""
    records: list[tuple[str, str]] = []
    handler_id = logger.add(
        lambda message: records.append(
            (message.record["level"].name, message.record["message"])
        ),
        level="DEBUG",
        format="{message}",
    )

    yield records

    logger.remove(handler_id)


def messages_at(records: list[tuple[str, str]], level: str) -> list[str]:
    """Messages captured at one level."""
    return [message for lvl, message in records if lvl == level]


# =============================================================================
# AI SERVICE COLLABORATORS
# =============================================================================


ROLE_MODELS = {
    "main": ("anthropic", "claude-opus-4-20250514"),
    "fallback": ("anthropic", "claude-sonnet-4-20250514"),
    "research": ("perplexity", "sonar-pro"),
}

ROLE_PARAMETERS = {
    "main": {"max_tokens": 100, "temperature": 0.5},
    "fallback": {"max_tokens": 200, "temperature": 0.6},
    "research": {"max_tokens": 300, "temperature": 0.7},
}


@pytest.fixture
def mock_config() -> MagicMock:
    """Config collaborator with main/fallback on Anthropic and research on Perplexity."""
    config = MagicMock()
    for role, (provider, model_id) in ROLE_MODELS.items():
        getattr(config, f"get_{role}_provider").return_value = provider
        getattr(config, f"get_{role}_model_id").return_value = model_id
    config.get_parameters_for_role.side_effect = lambda role, root: dict(ROLE_PARAMETERS[role])
    config.is_api_key_set.return_value = True
    config.resolve_api_key.side_effect = lambda provider, session, root: f"{provider}-key"
    return config


def make_mock_provider(provider_id: str, requires_api_key: bool = True) -> MagicMock:
    """Provider double exposing the three async operations."""
    provider = MagicMock()
    provider.provider_id = provider_id
    provider.requires_api_key = requires_api_key
    provider.generate_text = AsyncMock(
        return_value={"text": f"{provider_id} text", "usage": {"input_tokens": 10, "output_tokens": 20}}
    )
    provider.stream_text = AsyncMock(
        return_value={"text_stream": None, "text": f"{provider_id} stream", "usage": {}}
    )
    provider.generate_object = AsyncMock()
    return provider


@pytest.fixture
def mock_providers() -> dict[str, MagicMock]:
    """One provider double per built-in provider id."""
    return {
        "anthropic": make_mock_provider("anthropic"),
        "perplexity": make_mock_provider("perplexity"),
        "openai": make_mock_provider("openai"),
        "ollama": make_mock_provider("ollama", requires_api_key=False),
        "claude-code": make_mock_provider("claude-code", requires_api_key=False),
    }


@pytest.fixture
def mock_registry(mock_providers: dict[str, MagicMock]) -> Any:
    """Registry holding the provider doubles."""
    from taskweave.providers.registry import ProviderRegistry

    registry = ProviderRegistry()
    for provider_id, provider in mock_providers.items():
        registry.register(provider, provider_id=provider_id)
    return registry


async def no_sleep(_delay: float) -> None:
    """Backoff stand-in that returns immediately."""
    return None


@pytest.fixture
def sleeps() -> list[float]:
    """Recorded backoff delays."""
    return []


@pytest.fixture
def ai_service(mock_config: MagicMock, mock_registry: Any, sleeps: list[float]) -> Any:
    """AIService wired to the mock config and providers, without real sleeps."""
    from taskweave.ai.retry import RetryController
    from taskweave.ai.service import AIService
    from taskweave.core.config import Settings

    async def record_sleep(delay: float) -> None:
        sleeps.append(delay)

    return AIService(
        config=mock_config,
        registry=mock_registry,
        retry=RetryController(max_retries=1, initial_delay=1.0, sleep=record_sleep),
        settings=Settings(_env_file=None),
    )


# =============================================================================
# DOCUMENTS / TASKS
# =============================================================================


@pytest.fixture
def sample_prd() -> str:
    """A small PRD with an overview and three sections."""
    return """Todo App PRD
A web app for managing personal todo lists.

# Authentication
Users register and log in with email and password.
Sessions expire after 24 hours.

## Todo Management
Users create, edit and delete todos.
### Install dependencies
Todos have due dates.

## Sharing
Users share lists with other users.
"""


def prd_response(task_specs: list[tuple[int, list[int]]], **metadata: Any) -> Any:
    """Build a PrdResponse from (id, dependencies) pairs."""
    from taskweave.decomposition.models import PrdResponse

    return PrdResponse.model_validate(
        {
            "tasks": [
                {
                    "id": task_id,
                    "title": f"Task {task_id}",
                    "description": f"Description {task_id}",
                    "dependencies": deps,
                }
                for task_id, deps in task_specs
            ],
            "metadata": {
                "projectName": metadata.get("project_name", "Test"),
                "totalTasks": len(task_specs),
                "sourceFile": metadata.get("source_file", "prd.md"),
                "generatedAt": "2025-01-01",
            },
        }
    )


# Markers
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
