"""Local Ollama provider (no API key)."""

from functools import partial
from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel

from taskweave.core.errors import FatalProviderError, TransientProviderError
from taskweave.providers.base import BaseProvider, Message, json_messages


class OllamaProvider(BaseProvider):
    """
    Generate with a locally running Ollama server.

    Uses the non-streaming ``/api/chat`` endpoint. Object generation adds
    ``"format": "json"`` so the model is constrained to JSON output.
    """

    provider_id = "ollama"
    requires_api_key = False

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        timeout_seconds: float = 600.0,
        object_max_attempts: int = 3,
    ) -> None:
        super().__init__(object_max_attempts=object_max_attempts)
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    async def _chat(
        self,
        *,
        model_id: str,
        max_tokens: int,
        temperature: float,
        messages: list[Message],
        json_format: bool = False,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": model_id,
            "messages": messages,
            "stream": False,
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }
        if json_format:
            payload["format"] = "json"

        logger.debug(f"Calling Ollama at {self.base_url} (model={model_id}, json={json_format})")

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout_seconds
            ) as client:
                response = await client.post("/api/chat", json=payload)
                response.raise_for_status()
        except (httpx.TimeoutException, httpx.NetworkError) as e:
            raise TransientProviderError(f"Ollama network error: {e}", self.provider_id) from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            error_cls = TransientProviderError if status >= 500 else FatalProviderError
            raise error_cls(f"Ollama HTTP {status}: {e.response.text[:200]}", self.provider_id) from e

        data = response.json()
        input_tokens = int(data.get("prompt_eval_count") or 0)
        output_tokens = int(data.get("eval_count") or 0)
        return {
            "text": (data.get("message") or {}).get("content", ""),
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
        return await self._chat(
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
        request = partial(
            self._chat,
            model_id=model_id,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=json_messages(messages, schema, object_name),
            json_format=True,
        )
        return await self._generate_object_attempts(request, schema, object_name)
