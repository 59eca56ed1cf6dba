"""
Base provider interface for Taskweave.

Every LLM backend (remote API or local CLI) implements this contract so the
AI service layer can call any of them the same way.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from functools import partial
from typing import Any, ClassVar

from loguru import logger
from pydantic import BaseModel

from taskweave.core.errors import (
    MalformedStructuredOutputError,
    SchemaValidationError,
    TruncationSuspectedError,
)
from taskweave.providers.json_output import json_instruction, parse_json_object, validate_object

Message = dict[str, str]


def split_messages(messages: list[Message]) -> tuple[str, list[Message]]:
    """Separate the system prompt from the conversation messages."""
    system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
    rest = [m for m in messages if m["role"] != "system"]
    return system, rest


def empty_usage() -> dict[str, int]:
    """Usage record for providers that report no token counts."""
    return {"input_tokens": 0, "output_tokens": 0, "total_tokens": 0}


def json_messages(messages: list[Message], schema: type[BaseModel], object_name: str) -> list[Message]:
    """Append the bare-JSON instruction for ``schema`` to the system prompt."""
    system, rest = split_messages(messages)
    return [
        {"role": "system", "content": system + json_instruction(schema, object_name)},
        *rest,
    ]


async def _single_chunk(text: str) -> AsyncIterator[str]:
    yield text


class BaseProvider(ABC):
    """
    Abstract LLM provider.

    Subclasses implement ``generate_text``. ``stream_text`` and
    ``generate_object`` have default implementations built on top of it,
    which providers with native support may override.

    Attributes:
        provider_id: Registry key, e.g. ``"anthropic"``.
        requires_api_key: False for local providers (no credential check).
    """

    provider_id: ClassVar[str]
    requires_api_key: ClassVar[bool] = True

    def __init__(self, object_max_attempts: int = 3) -> None:
        self.object_max_attempts = object_max_attempts

    @abstractmethod
    async def generate_text(
        self,
        *,
        api_key: str | None,
        model_id: str,
        max_tokens: int,
        temperature: float,
        messages: list[Message],
    ) -> dict[str, Any]:
        """Generate text.

        Returns:
            ``{"text": str, "usage": {...}}``
        """

    async def stream_text(
        self,
        *,
        api_key: str | None,
        model_id: str,
        max_tokens: int,
        temperature: float,
        messages: list[Message],
    ) -> dict[str, Any]:
        """Generate text and expose it as a stream.

        The full response is produced first and then yielded as a single
        chunk; token-by-token delivery is not supported.

        Returns:
            ``{"text_stream": AsyncIterator[str], "text": str, "usage": {...}}``
        """
        result = await self.generate_text(
            api_key=api_key,
            model_id=model_id,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=messages,
        )
        return {
            "text_stream": _single_chunk(result["text"]),
            "text": result["text"],
            "usage": result.get("usage") or empty_usage(),
        }

    async def generate_object(
        self,
        *,
        api_key: str | None,
        model_id: str,
        max_tokens: int,
        temperature: float,
        messages: list[Message],
        schema: type[BaseModel],
        object_name: str = "generated_object",
    ) -> dict[str, Any]:
        """Generate a schema-valid object by asking for bare JSON.

        Returns:
            ``{"object": BaseModel, "usage": {...}}`` with usage summed across
            attempts.

        Raises:
            TruncationSuspectedError: Output looks cut off.
            MalformedStructuredOutputError: No attempt produced valid data.
        """
        request = partial(
            self.generate_text,
            api_key=api_key,
            model_id=model_id,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=json_messages(messages, schema, object_name),
        )
        return await self._generate_object_attempts(request, schema, object_name)

    async def _generate_object_attempts(
        self,
        request: Callable[[], Awaitable[dict[str, Any]]],
        schema: type[BaseModel],
        object_name: str,
    ) -> dict[str, Any]:
        """Issue a JSON request until its text parses into the schema.

        Malformed or schema-invalid responses re-issue the whole request up to
        ``object_max_attempts`` times. Suspected truncation is raised at once
        since repeating the same request would truncate again.
        """
        logger.debug(f"Generating object '{object_name}' with {self.provider_id}")

        usage = empty_usage()
        last_error: Exception | None = None

        for attempt in range(1, self.object_max_attempts + 1):
            result = await request()
            for key, value in (result.get("usage") or {}).items():
                if key in usage and isinstance(value, int):
                    usage[key] += value

            text = result["text"]
            logger.debug(f"Raw response from {self.provider_id}: {text[:500]}...")

            try:
                data = parse_json_object(text)
                obj = validate_object(data, schema)
                return {"object": obj, "usage": usage}
            except TruncationSuspectedError:
                raise
            except (MalformedStructuredOutputError, SchemaValidationError) as e:
                last_error = e
                logger.warning(
                    f"Attempt {attempt}/{self.object_max_attempts} for '{object_name}' "
                    f"failed: {e}"
                )

        raise MalformedStructuredOutputError(
            f"Failed to generate valid object after {self.object_max_attempts} attempts: "
            f"{last_error}"
        )
