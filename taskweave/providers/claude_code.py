"""
Claude Code CLI provider.

Shells out to the locally installed, already-authenticated ``claude`` CLI in
non-interactive mode instead of calling the Anthropic API, so no API key is
needed. The CLI reports no token counts; usage is recorded as zero.
"""

import asyncio
import os
import shutil
from typing import Any

from loguru import logger

from taskweave.core.errors import FatalProviderError, TransientProviderError
from taskweave.providers.base import BaseProvider, Message, empty_usage, split_messages

# Wording in CLI stderr that indicates a temporary condition.
_TRANSIENT_MARKERS = ("rate limit", "overloaded", "429", "529", "timed out", "network")


class ClaudeCodeProvider(BaseProvider):
    """Generate with the local ``claude --print`` command."""

    provider_id = "claude-code"
    requires_api_key = False

    def __init__(self, claude_path: str | None = None, object_max_attempts: int = 3) -> None:
        super().__init__(object_max_attempts=object_max_attempts)
        self.claude_path = claude_path or self._find_claude_path()

    def _find_claude_path(self) -> str:
        """Find the claude CLI executable."""
        locations = [
            "claude",  # In PATH
            "/usr/local/bin/claude",
            "/opt/homebrew/bin/claude",
            os.path.expanduser("~/.npm-global/bin/claude"),
            os.path.expanduser("~/.local/bin/claude"),
        ]

        for loc in locations:
            if shutil.which(loc):
                return loc

        # Default to "claude" and let it fail if not found
        return "claude"

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
        user_messages = [m["content"] for m in rest if m["role"] == "user"]
        if not user_messages:
            raise FatalProviderError("At least one user message is required", self.provider_id)

        # The CLI takes a single prompt; system text goes first.
        prompt = f"{system}\n\n{user_messages[-1]}" if system else user_messages[-1]
        args = [self.claude_path, "--print", "--model", model_id or "sonnet"]

        logger.debug(f"Spawning: {' '.join(args)} ({len(prompt)} chars on stdin)")

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise FatalProviderError(
                f"Failed to execute Claude Code CLI: {e}", self.provider_id
            ) from e

        stdout, stderr = await process.communicate(prompt.encode("utf-8"))

        if process.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()
            message = f"Claude Code CLI failed with code {process.returncode}: {detail}"
            if any(marker in detail.lower() for marker in _TRANSIENT_MARKERS):
                raise TransientProviderError(message, self.provider_id)
            raise FatalProviderError(message, self.provider_id)

        return {
            "text": stdout.decode("utf-8", errors="replace").strip(),
            "usage": empty_usage(),
        }
