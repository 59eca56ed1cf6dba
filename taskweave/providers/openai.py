"""OpenAI-compatible chat completion providers (OpenAI, Perplexity)."""

from functools import partial
from typing import Any

import openai
from loguru import logger
from openai import AsyncOpenAI
from pydantic import BaseModel

from taskweave.core.errors import FatalProviderError, TransientProviderError
from taskweave.providers.base import BaseProvider, Message, json_messages

_TRANSIENT_STATUS_CODES = {408, 429, 500, 502, 503, 504}


class OpenAIProvider(BaseProvider):
    """Chat completions through the OpenAI SDK.

    Object generation uses JSON mode (``response_format=json_object``); output
    that still fails to parse or validate re-issues the request up to
    ``object_max_attempts`` times.
    """

    provider_id = "openai"
    base_url: str | None = None
    supports_json_mode = True

    async def _complete(
        self,
        *,
        api_key: str | None,
        model_id: str,
        max_tokens: int,
        temperature: float,
        messages: list[Message],
        **extra: Any,
    ) -> dict[str, Any]:
        client = AsyncOpenAI(api_key=api_key, base_url=self.base_url)

        logger.debug(
            f"Calling {self.provider_id} chat completions (model={model_id}, max_tokens={max_tokens})"
        )

        try:
            response = await client.chat.completions.create(
                model=model_id,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
                **extra,
            )
        except (openai.APIConnectionError, openai.RateLimitError) as e:
            raise TransientProviderError(f"{self.provider_id}: {e}", self.provider_id) from e
        except openai.APIStatusError as e:
            error_cls = (
                TransientProviderError
                if e.status_code in _TRANSIENT_STATUS_CODES
                else FatalProviderError
            )
            raise error_cls(
                f"{self.provider_id} API error {e.status_code}: {e.message}", self.provider_id
            ) from e
        finally:
            await client.close()

        choice = response.choices[0]
        if choice.finish_reason == "length":
            logger.warning(f"{self.provider_id} response hit max_tokens ({max_tokens})")

        usage = response.usage
        input_tokens = usage.prompt_tokens if usage else 0
        output_tokens = usage.completion_tokens if usage else 0
        return {
            "text": choice.message.content or "",
            "usage": {
                "input_tokens": input_tokens,
                "output_tokens": output_tokens,
                "total_tokens": input_tokens + output_tokens,
            },
        }

    async def generate_text(
        self,
        *,
        api_key: str | None,
        model_id: str,
        max_tokens: int,
        temperature: float,
        messages: list[Message],
    ) -> dict[str, Any]:
        return await self._complete(
            api_key=api_key,
            model_id=model_id,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=messages,
        )

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
        if not self.supports_json_mode:
            return await super().generate_object(
                api_key=api_key,
                model_id=model_id,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=messages,
                schema=schema,
                object_name=object_name,
            )

        request = partial(
            self._complete,
            api_key=api_key,
            model_id=model_id,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=json_messages(messages, schema, object_name),
            response_format={"type": "json_object"},
        )
        return await self._generate_object_attempts(request, schema, object_name)


class PerplexityProvider(OpenAIProvider):
    """Perplexity's OpenAI-compatible API, used for research generation."""

    provider_id = "perplexity"
    base_url = "https://api.perplexity.ai"
    supports_json_mode = False
