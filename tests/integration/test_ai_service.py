"""Integration tests for the AI service fallback sequence.

The service is wired to a mocked config collaborator and provider doubles;
retry, availability and telemetry are the real implementations.
"""

from typing import Any
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import messages_at, prd_response
from taskweave.ai.service import AIService
from taskweave.core.context import RunContext
from taskweave.core.errors import (
    AllRolesExhaustedError,
    FatalProviderError,
    MissingCredentialError,
    NoProviderConfiguredError,
    TransientProviderError,
)
from taskweave.decomposition.models import PrdResponse
from taskweave.providers.openai import OpenAIProvider

OK = {"text": "recovered", "usage": {"input_tokens": 1, "output_tokens": 2}}


def completion(text: str) -> SimpleNamespace:
    """Chat completion shaped like the OpenAI SDK response."""
    return SimpleNamespace(
        choices=[SimpleNamespace(finish_reason="stop", message=SimpleNamespace(content=text))],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5),
    )


class TestFallbackSequence:
    @pytest.mark.asyncio
    async def test_main_succeeds(
        self,
        ai_service: AIService,
        mock_providers: dict[str, MagicMock],
        log_records: list[tuple[str, str]],
    ) -> None:
        result = await ai_service.generate_text_service(
            prompt="Hello", system_prompt="Be terse.", context=RunContext(project_root="/p")
        )

        assert result.role == "main"
        assert result.provider_id == "anthropic"
        assert result.model_id == "claude-opus-4-20250514"
        assert result.text == "anthropic text"
        mock_providers["anthropic"].generate_text.assert_awaited_once_with(
            api_key="anthropic-key",
            model_id="claude-opus-4-20250514",
            max_tokens=100,
            temperature=0.5,
            messages=[
                {"role": "system", "content": "Be terse."},
                {"role": "user", "content": "Hello"},
            ],
        )
        assert mock_providers["perplexity"].generate_text.await_count == 0
        assert messages_at(log_records, "INFO").count("New AI service call with role: main") == 1

    @pytest.mark.asyncio
    async def test_main_fails_fallback_succeeds(
        self, ai_service: AIService, mock_providers: dict[str, MagicMock]
    ) -> None:
        mock_providers["anthropic"].generate_text.side_effect = [
            FatalProviderError("invalid model", "anthropic"),
            OK,
        ]

        result = await ai_service.generate_text_service(prompt="Hello")

        assert result.role == "fallback"
        assert result.text == "recovered"
        second_call = mock_providers["anthropic"].generate_text.call_args_list[1].kwargs
        assert second_call["model_id"] == "claude-sonnet-4-20250514"
        assert second_call["max_tokens"] == 200

    @pytest.mark.asyncio
    async def test_research_is_last_resort(
        self,
        ai_service: AIService,
        mock_providers: dict[str, MagicMock],
        log_records: list[tuple[str, str]],
    ) -> None:
        mock_providers["anthropic"].generate_text.side_effect = FatalProviderError(
            "invalid x-api-key", "anthropic"
        )

        result = await ai_service.generate_text_service(prompt="Hello")

        assert result.role == "research"
        assert result.text == "perplexity text"
        assert mock_providers["perplexity"].generate_text.call_args.kwargs["api_key"] == "perplexity-key"
        errors = messages_at(log_records, "ERROR")
        assert (
            "Service call failed for role main (Provider: anthropic, "
            "Model: claude-opus-4-20250514): invalid x-api-key"
        ) in errors
        assert any(m.startswith("Service call failed for role fallback") for m in errors)

    @pytest.mark.asyncio
    async def test_start_at_fallback(
        self, ai_service: AIService, mock_providers: dict[str, MagicMock]
    ) -> None:
        result = await ai_service.generate_text_service(prompt="Hello", role="fallback")

        assert result.role == "fallback"
        mock_providers["anthropic"].generate_text.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unknown_role_starts_at_main(self, ai_service: AIService) -> None:
        result = await ai_service.generate_text_service(prompt="Hello", role="summarize")
        assert result.role == "main"


class TestRetry:
    @pytest.mark.asyncio
    async def test_transient_error_retried_once(
        self,
        ai_service: AIService,
        mock_providers: dict[str, MagicMock],
        sleeps: list[float],
    ) -> None:
        mock_providers["anthropic"].generate_text.side_effect = [
            TransientProviderError("overloaded", "anthropic"),
            OK,
        ]

        result = await ai_service.generate_text_service(prompt="Hello")

        assert result.role == "main"
        assert mock_providers["anthropic"].generate_text.await_count == 2
        assert sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_retry_budget_then_next_role(
        self,
        ai_service: AIService,
        mock_providers: dict[str, MagicMock],
        sleeps: list[float],
    ) -> None:
        mock_providers["anthropic"].generate_text.side_effect = TransientProviderError(
            "rate limit", "anthropic"
        )

        result = await ai_service.generate_text_service(prompt="Hello")

        # Two attempts each for main and fallback, then research succeeds.
        assert mock_providers["anthropic"].generate_text.await_count == 4
        assert sleeps == [1.0, 1.0]
        assert result.role == "research"


class TestAvailability:
    @pytest.mark.asyncio
    async def test_all_keys_missing(
        self,
        ai_service: AIService,
        mock_config: MagicMock,
        mock_providers: dict[str, MagicMock],
        log_records: list[tuple[str, str]],
    ) -> None:
        mock_config.is_api_key_set.return_value = False

        with pytest.raises(AllRolesExhaustedError) as exc_info:
            await ai_service.generate_text_service(prompt="Hello")

        assert "AI service call failed for all configured roles" in str(exc_info.value)
        assert exc_info.value.roles_attempted == ["main", "fallback", "research"]
        assert isinstance(exc_info.value.last_error, MissingCredentialError)
        warnings = messages_at(log_records, "WARNING")
        for role, provider in (("main", "anthropic"), ("fallback", "anthropic"), ("research", "perplexity")):
            assert (
                f"Skipping role '{role}' (Provider: {provider}): API key not set or invalid."
            ) in warnings
        assert "All roles in the sequence [main, fallback, research] failed." in messages_at(
            log_records, "ERROR"
        )
        for provider in mock_providers.values():
            provider.generate_text.assert_not_awaited()
        mock_config.resolve_api_key.assert_not_called()

    @pytest.mark.asyncio
    async def test_credential_free_provider(
        self,
        ai_service: AIService,
        mock_config: MagicMock,
        mock_providers: dict[str, MagicMock],
    ) -> None:
        mock_config.get_main_provider.return_value = "claude-code"
        mock_config.get_main_model_id.return_value = "sonnet"
        mock_config.is_api_key_set.return_value = False

        result = await ai_service.generate_text_service(prompt="Hello")

        assert result.provider_id == "claude-code"
        kwargs = mock_providers["claude-code"].generate_text.call_args.kwargs
        assert kwargs["api_key"] is None
        mock_config.is_api_key_set.assert_not_called()
        mock_config.resolve_api_key.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_provider_for_role(
        self,
        ai_service: AIService,
        mock_config: MagicMock,
        log_records: list[tuple[str, str]],
    ) -> None:
        mock_config.get_main_provider.return_value = None

        result = await ai_service.generate_text_service(prompt="Hello")

        assert result.role == "fallback"
        assert any(
            m.startswith("Skipping role 'main'") for m in messages_at(log_records, "WARNING")
        )

    @pytest.mark.asyncio
    async def test_unregistered_provider(
        self, ai_service: AIService, mock_config: MagicMock, log_records: list[tuple[str, str]]
    ) -> None:
        mock_config.get_main_provider.return_value = "mystery"

        result = await ai_service.generate_text_service(prompt="Hello")

        assert result.role == "fallback"
        assert any("not registered" in m for m in messages_at(log_records, "ERROR"))

    @pytest.mark.asyncio
    async def test_no_provider_anywhere(self, ai_service: AIService, mock_config: MagicMock) -> None:
        for role in ("main", "fallback", "research"):
            getattr(mock_config, f"get_{role}_provider").return_value = None

        with pytest.raises(AllRolesExhaustedError) as exc_info:
            await ai_service.generate_text_service(prompt="Hello")

        assert isinstance(exc_info.value.last_error, NoProviderConfiguredError)


class TestContextPassThrough:
    @pytest.mark.asyncio
    async def test_none_project_root(self, ai_service: AIService, mock_config: MagicMock) -> None:
        await ai_service.generate_text_service(prompt="Hello", context=RunContext())

        mock_config.get_main_provider.assert_called_with(None)
        mock_config.get_parameters_for_role.assert_called_with("main", None)
        mock_config.is_api_key_set.assert_called_with("anthropic", None, None)

    @pytest.mark.asyncio
    async def test_session_passed_unmodified(
        self, ai_service: AIService, mock_config: MagicMock
    ) -> None:
        session = {"env": {"ANTHROPIC_API_KEY": "sk-session"}}
        snapshot = {"env": dict(session["env"])}

        await ai_service.generate_text_service(
            prompt="Hello", context=RunContext(project_root="/p", session=session)
        )

        assert mock_config.is_api_key_set.call_args.args[1] is session
        assert mock_config.resolve_api_key.call_args.args == ("anthropic", session, "/p")
        assert session == snapshot


class TestAggregateError:
    @pytest.mark.asyncio
    async def test_last_error_reported(
        self,
        ai_service: AIService,
        mock_providers: dict[str, MagicMock],
    ) -> None:
        mock_providers["anthropic"].generate_text.side_effect = FatalProviderError("bad model")
        mock_providers["perplexity"].generate_text.side_effect = FatalProviderError(
            "research quota exceeded"
        )

        with pytest.raises(AllRolesExhaustedError) as exc_info:
            await ai_service.generate_text_service(prompt="Hello")

        assert "research quota exceeded" in str(exc_info.value)
        assert ai_service.telemetry.records == []


class TestServices:
    @pytest.mark.asyncio
    async def test_generate_object_records_telemetry(
        self, ai_service: AIService, mock_providers: dict[str, MagicMock]
    ) -> None:
        response = prd_response([(1, []), (2, [1])])
        mock_providers["anthropic"].generate_object.return_value = {
            "object": response,
            "usage": {"input_tokens": 1000, "output_tokens": 500},
        }

        result = await ai_service.generate_object_service(
            prompt="Make tasks",
            schema=PrdResponse,
            object_name="tasks_data",
            command_name="parse-prd",
        )

        assert isinstance(result.object, PrdResponse)
        assert [t.id for t in result.object.tasks] == [1, 2]
        kwargs = mock_providers["anthropic"].generate_object.call_args.kwargs
        assert kwargs["schema"] is PrdResponse
        assert kwargs["object_name"] == "tasks_data"
        assert result.telemetry.command_name == "parse-prd"
        assert result.telemetry.total_cost > 0
        assert ai_service.telemetry.records == [result.telemetry]

    @pytest.mark.asyncio
    async def test_invalid_object_moves_to_next_role(
        self, ai_service: AIService, mock_providers: dict[str, MagicMock], sleeps: list[float]
    ) -> None:
        mock_providers["anthropic"].generate_object.return_value = {
            "object": {"tasks": "nope"},
            "usage": {},
        }
        mock_providers["perplexity"].generate_object.return_value = {
            "object": prd_response([(1, [])]),
            "usage": {},
        }

        result = await ai_service.generate_object_service(prompt="Make tasks", schema=PrdResponse)

        assert result.role == "research"
        # Schema failures are retryable, so main and fallback each try twice.
        assert mock_providers["anthropic"].generate_object.await_count == 4

    @pytest.mark.asyncio
    async def test_stream_text(self, ai_service: AIService, mock_providers: dict[str, MagicMock]) -> None:
        async def chunks() -> Any:
            yield "a"
            yield "b"

        mock_providers["anthropic"].stream_text.return_value = {
            "text_stream": chunks(),
            "text": "ab",
            "usage": {},
        }

        result = await ai_service.stream_text_service(prompt="Hello")

        assert [c async for c in result.text_stream] == ["a", "b"]
        assert result.text == "ab"


class TestStructuredOutputRecovery:
    @pytest.mark.asyncio
    async def test_unparsable_json_mode_output_reissued_on_same_role(
        self, ai_service: AIService, mock_config: MagicMock
    ) -> None:
        mock_config.get_main_provider.return_value = "openai"
        mock_config.get_main_model_id.return_value = "gpt-4o"
        ai_service.registry.register(OpenAIProvider(object_max_attempts=3))

        client = MagicMock()
        client.chat.completions.create = AsyncMock(
            side_effect=[
                completion("Sure! here it is: [not json"),
                completion(prd_response([(1, [])]).model_dump_json(by_alias=True)),
            ]
        )
        client.close = AsyncMock()

        with patch("taskweave.providers.openai.AsyncOpenAI", return_value=client):
            result = await ai_service.generate_object_service(prompt="Make tasks", schema=PrdResponse)

        assert result.role == "main"
        assert result.provider_id == "openai"
        assert client.chat.completions.create.await_count == 2
        assert [t.id for t in result.object.tasks] == [1]
