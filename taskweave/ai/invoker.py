"""Provider invoker - one call shape for every provider."""

from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

from loguru import logger
from pydantic import BaseModel

from taskweave.ai.telemetry import TokenUsage
from taskweave.core.errors import FatalProviderError
from taskweave.providers.json_output import validate_object
from taskweave.providers.registry import ProviderDescriptor


class ServiceType(str, Enum):
    """Provider operation to invoke."""

    GENERATE_TEXT = "generate_text"
    STREAM_TEXT = "stream_text"
    GENERATE_OBJECT = "generate_object"


@dataclass
class ProviderResponse:
    """Normalized provider output."""

    usage: TokenUsage
    text: str | None = None
    object: BaseModel | None = None
    text_stream: AsyncIterator[str] | None = None


class ProviderInvoker:
    """
    Call a provider with the uniform keyword contract.

    Every provider receives ``api_key, model_id, max_tokens, temperature,
    messages``; credential-free providers get ``api_key=None`` explicitly.
    Object calls add ``schema`` and ``object_name`` and the returned object
    is validated against the schema here as well, so providers with native
    structured output are held to the same contract.
    """

    async def invoke(
        self,
        descriptor: ProviderDescriptor,
        service_type: ServiceType,
        *,
        api_key: str | None,
        model_id: str | None,
        max_tokens: int,
        temperature: float,
        messages: list[dict[str, str]],
        schema: type[BaseModel] | None = None,
        object_name: str | None = None,
    ) -> ProviderResponse:
        """
        Invoke one provider operation.

        Raises:
            SchemaValidationError: Object did not satisfy the schema (retryable).
            FatalProviderError: Provider returned an unusable response shape.
        """
        provider = descriptor.provider
        call_kwargs: dict[str, Any] = {
            "api_key": api_key,
            "model_id": model_id,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": messages,
        }

        logger.debug(
            f"Invoking {descriptor.provider_id}.{service_type.value} (model={model_id})"
        )

        if service_type is ServiceType.GENERATE_OBJECT:
            if schema is None:
                raise ValueError("generate_object requires a schema")
            raw = await provider.generate_object(
                **call_kwargs,
                schema=schema,
                object_name=object_name or "generated_object",
            )
            self._check_shape(descriptor, raw, "object")
            return ProviderResponse(
                object=validate_object(raw["object"], schema),
                usage=TokenUsage.from_provider(raw.get("usage")),
            )

        if service_type is ServiceType.STREAM_TEXT:
            raw = await provider.stream_text(**call_kwargs)
            self._check_shape(descriptor, raw, "text")
            return ProviderResponse(
                text=raw["text"],
                text_stream=raw.get("text_stream"),
                usage=TokenUsage.from_provider(raw.get("usage")),
            )

        raw = await provider.generate_text(**call_kwargs)
        self._check_shape(descriptor, raw, "text")
        return ProviderResponse(
            text=raw["text"],
            usage=TokenUsage.from_provider(raw.get("usage")),
        )

    @staticmethod
    def _check_shape(descriptor: ProviderDescriptor, raw: Any, key: str) -> None:
        if not isinstance(raw, dict) or key not in raw:
            raise FatalProviderError(
                f"Provider {descriptor.provider_id} returned no '{key}' in its response",
                descriptor.provider_id,
            )
