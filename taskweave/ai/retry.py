"""Retry controller - classifies failures and retries transient ones in place."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from loguru import logger

from taskweave.core.errors import (
    FatalProviderError,
    MalformedStructuredOutputError,
    SchemaValidationError,
    TransientProviderError,
)

T = TypeVar("T")

RETRYABLE_MESSAGE_PATTERNS = (
    "rate limit",
    "overloaded",
    "service temporarily unavailable",
    "timeout",
    "timed out",
    "network error",
    "connection",
    "429",
    "502",
    "503",
    "504",
    "529",
)


def is_retryable_error(error: BaseException) -> bool:
    """
    Classify an error as retryable (transient) or fatal.

    Explicit error kinds win over message matching: transient provider
    errors and schema validation failures are retryable, fatal provider
    errors and unrecoverable structured output are not. Anything else is
    matched against known transient wording.

    Example:
        >>> is_retryable_error(Exception("Rate limit exceeded"))
        True
        >>> is_retryable_error(ValueError("bad model id"))
        False
    """
    if isinstance(error, (TransientProviderError, SchemaValidationError)):
        return True
    if isinstance(error, (FatalProviderError, MalformedStructuredOutputError)):
        return False

    message = str(error).lower()
    return any(pattern in message for pattern in RETRYABLE_MESSAGE_PATTERNS)


class RetryController:
    """
    Run one role's call with a bounded retry budget.

    Attributes:
        max_retries: Retries after the first failed attempt.
        initial_delay: Backoff before the first retry, doubled each time.
    """

    def __init__(
        self,
        max_retries: int = 1,
        initial_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self._sleep = sleep

    def backoff(self, retry_number: int) -> float:
        """Delay before the given retry (1-based)."""
        return self.initial_delay * (2 ** (retry_number - 1))

    async def run(
        self,
        call: Callable[[], Awaitable[T]],
        *,
        role: str,
        provider_id: str,
    ) -> T:
        """
        Await ``call`` and retry it while it fails with retryable errors.

        Args:
            call: Zero-argument coroutine factory, re-invoked on each attempt.
            role: Role name, for logging.
            provider_id: Provider id, for logging.

        Returns:
            The first successful result.

        Raises:
            The last error when it is fatal or the retry budget is exhausted.
        """
        retries = 0
        while True:
            try:
                return await call()
            except Exception as e:
                if not is_retryable_error(e):
                    raise
                if retries >= self.max_retries:
                    logger.warning(
                        f"Retry budget exhausted for role {role} (Provider: {provider_id}) "
                        f"after {retries + 1} attempt(s)"
                    )
                    raise

                retries += 1
                delay = self.backoff(retries)
                logger.info(
                    f"Retryable error detected. Retrying in {delay:.1f}s "
                    f"(attempt {retries}/{self.max_retries}) for role {role} "
                    f"(Provider: {provider_id}): {e}"
                )
                await self._sleep(delay)
