"""Anthropic Messages API provider."""

from typing import Any

import anthropic
from anthropic import AsyncAnthropic
from loguru import logger

from taskweave.core.errors import FatalProviderError, TransientProviderError
from taskweave.providers.base import BaseProvider, Message, split_messages

# Anthropic returns 529 when the API is overloaded.
_TRANSIENT_STATUS_CODES = {408, 429, 500, 502, 503, 504, 529}


class AnthropicProvider(BaseProvider):
    """Generate with Claude through the Anthropic SDK."""

    provider_id = "anthropic"

    async def generate_text(
        self,
        *,
        api_key: str | None,
        model_id: str,
        max_tokens: int,
        temperature: float,
        messages: list[Message],
    ) -> dict[str, Any]:
        system, rest = split_messages(messages)
        client = AsyncAnthropic(api_key=api_key)

        logger.debug(f"Calling Anthropic API (model={model_id}, max_tokens={max_tokens})")

        kwargs: dict[str, Any] = {
            "model": model_id,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": rest,
        }
        if system:
            kwargs["system"] = system

        try:
            response = await client.messages.create(**kwargs)
        except (anthropic.APIConnectionError, anthropic.RateLimitError) as e:
            raise TransientProviderError(f"Anthropic: {e}", self.provider_id) from e
        except anthropic.APIStatusError as e:
            error_cls = (
                TransientProviderError
                if e.status_code in _TRANSIENT_STATUS_CODES
                else FatalProviderError
            )
            raise error_cls(f"Anthropic API error {e.status_code}: {e.message}", self.provider_id) from e
        finally:
            await client.close()

        text = "".join(block.text for block in response.content if block.type == "text")
        if response.stop_reason == "max_tokens":
            logger.warning(f"Anthropic response hit max_tokens ({max_tokens}); output may be cut off")

        return {
            "text": text,
            "usage": {
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
            },
        }
