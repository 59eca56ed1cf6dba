"""
Unified AI service with role fallback.

Every generation request walks the fixed role sequence
``[main, fallback, research]`` starting at the requested role. For each role
the provider is resolved, credential-gated, invoked through the retry
controller, and the first success is returned. If every role is skipped or
fails, one ``AllRolesExhaustedError`` carries the last role's error.

Calls are strictly sequential: roles are tried one at a time and there is no
fan-out across providers.
"""

from collections.abc import AsyncIterator
from dataclasses import dataclass
from functools import lru_cache, partial
from typing import Any

from loguru import logger
from pydantic import BaseModel

from taskweave.ai.availability import AvailabilityGate
from taskweave.ai.config_manager import ConfigManager
from taskweave.ai.invoker import ProviderInvoker, ServiceType
from taskweave.ai.retry import RetryController
from taskweave.ai.roles import Role, RoleResolver, role_sequence_for
from taskweave.ai.telemetry import TelemetryAggregator, TokenUsage, UsageRecord
from taskweave.core.config import Settings, get_settings
from taskweave.core.context import RunContext
from taskweave.core.errors import (
    AllRolesExhaustedError,
    FatalProviderError,
    MissingCredentialError,
    NoProviderConfiguredError,
)
from taskweave.providers.registry import ProviderRegistry, create_default_registry


@dataclass
class GenerationResult:
    """Result of a successful AI service call."""

    role: str
    provider_id: str
    model_id: str | None
    usage: TokenUsage
    telemetry: UsageRecord
    text: str | None = None
    object: BaseModel | None = None
    text_stream: AsyncIterator[str] | None = None


class AIService:
    """
    Role-aware entry point for all generation calls.

    Example:
        >>> service = AIService()
        >>> result = await service.generate_text_service(
        ...     role="main",
        ...     context=RunContext.for_path("."),
        ...     system_prompt="You are terse.",
        ...     prompt="Say hi",
        ... )
        >>> result.text
        'Hi'
    """

    def __init__(
        self,
        config: Any | None = None,
        registry: ProviderRegistry | None = None,
        retry: RetryController | None = None,
        telemetry: TelemetryAggregator | None = None,
        invoker: ProviderInvoker | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.config = config or ConfigManager(settings)
        self.registry = registry or create_default_registry(settings)
        self.retry = retry or RetryController(
            max_retries=settings.taskweave_max_retries,
            initial_delay=settings.taskweave_retry_initial_delay,
        )
        self.telemetry = telemetry or TelemetryAggregator()
        self.invoker = invoker or ProviderInvoker()
        self.resolver = RoleResolver(self.config)
        self.gate = AvailabilityGate(self.config, self.registry)

    # =========================================================================
    # PUBLIC SERVICES
    # =========================================================================

    async def generate_text_service(
        self,
        *,
        prompt: str,
        role: Role | str = Role.MAIN,
        context: RunContext | None = None,
        system_prompt: str | None = None,
        command_name: str | None = None,
    ) -> GenerationResult:
        """Generate text, falling back across roles."""
        return await self._run(
            ServiceType.GENERATE_TEXT,
            role=role,
            context=context,
            system_prompt=system_prompt,
            prompt=prompt,
            command_name=command_name,
        )

    async def stream_text_service(
        self,
        *,
        prompt: str,
        role: Role | str = Role.MAIN,
        context: RunContext | None = None,
        system_prompt: str | None = None,
        command_name: str | None = None,
    ) -> GenerationResult:
        """Generate text exposed as a stream, falling back across roles."""
        return await self._run(
            ServiceType.STREAM_TEXT,
            role=role,
            context=context,
            system_prompt=system_prompt,
            prompt=prompt,
            command_name=command_name,
        )

    async def generate_object_service(
        self,
        *,
        prompt: str,
        schema: type[BaseModel],
        object_name: str = "generated_object",
        role: Role | str = Role.MAIN,
        context: RunContext | None = None,
        system_prompt: str | None = None,
        command_name: str | None = None,
    ) -> GenerationResult:
        """Generate a schema-validated object, falling back across roles."""
        return await self._run(
            ServiceType.GENERATE_OBJECT,
            role=role,
            context=context,
            system_prompt=system_prompt,
            prompt=prompt,
            command_name=command_name,
            schema=schema,
            object_name=object_name,
        )

    # =========================================================================
    # FALLBACK SEQUENCE
    # =========================================================================

    async def _run(
        self,
        service_type: ServiceType,
        *,
        role: Role | str,
        context: RunContext | None,
        system_prompt: str | None,
        prompt: str,
        command_name: str | None,
        schema: type[BaseModel] | None = None,
        object_name: str | None = None,
    ) -> GenerationResult:
        context = context or RunContext()
        sequence = role_sequence_for(role)

        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        attempted: list[str] = []
        last_error: BaseException | None = None

        for current in sequence:
            role_name = current.value
            attempted.append(role_name)
            logger.info(f"New AI service call with role: {role_name}")

            try:
                role_config = self.resolver.resolve(current, context.project_root)
            except NoProviderConfiguredError as e:
                logger.warning(f"Skipping role '{role_name}': {e}")
                last_error = e
                continue

            provider_id = role_config.provider_id
            model_id = role_config.model_id

            descriptor = self.registry.get(provider_id)
            if descriptor is None:
                last_error = FatalProviderError(
                    f"Provider '{provider_id}' is not registered", provider_id
                )
                logger.error(
                    f"Service call failed for role {role_name} (Provider: {provider_id}, "
                    f"Model: {model_id}): {last_error}"
                )
                continue

            if not self.gate.is_available(provider_id, context.session, context.project_root):
                logger.warning(
                    f"Skipping role '{role_name}' (Provider: {provider_id}): "
                    "API key not set or invalid."
                )
                last_error = MissingCredentialError(provider_id)
                continue

            api_key = None
            if descriptor.requires_api_key:
                api_key = self.config.resolve_api_key(
                    provider_id, context.session, context.project_root
                )

            call = partial(
                self.invoker.invoke,
                descriptor,
                service_type,
                api_key=api_key,
                model_id=model_id,
                max_tokens=role_config.max_tokens,
                temperature=role_config.temperature,
                messages=messages,
                schema=schema,
                object_name=object_name,
            )

            try:
                response = await self.retry.run(call, role=role_name, provider_id=provider_id)
            except Exception as e:
                last_error = e
                logger.error(
                    f"Service call failed for role {role_name} (Provider: {provider_id}, "
                    f"Model: {model_id}): {e}"
                )
                continue

            record = self.telemetry.record(
                role=role_name,
                provider_id=provider_id,
                model_id=model_id,
                usage=response.usage,
                command_name=command_name,
            )
            return GenerationResult(
                role=role_name,
                provider_id=provider_id,
                model_id=model_id,
                usage=response.usage,
                telemetry=record,
                text=response.text,
                object=response.object,
                text_stream=response.text_stream,
            )

        logger.error(f"All roles in the sequence [{', '.join(attempted)}] failed.")
        raise AllRolesExhaustedError(attempted, last_error)


@lru_cache
def get_ai_service() -> AIService:
    """Get the shared AIService instance built from default settings."""
    return AIService()
