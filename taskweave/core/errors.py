"""Exception hierarchy for Taskweave.

Failures local to one role, provider or batch are recovered by moving on to
the next unit of work. Only ``AllRolesExhaustedError`` (and unrecoverable
batch errors on the non-segmented path) reach the caller.
"""


class TaskweaveError(Exception):
    """Base exception for Taskweave errors."""

    pass


class OutputExistsError(TaskweaveError):
    """Task file already exists and neither force nor append was requested."""

    pass


# =============================================================================
# ROLE / CREDENTIAL ERRORS
# =============================================================================


class NoProviderConfiguredError(TaskweaveError):
    """A role has no provider configured."""

    def __init__(self, role: str) -> None:
        super().__init__(f"No provider configured for role '{role}'")
        self.role = role


class MissingCredentialError(TaskweaveError):
    """Provider requires an API key that is not available."""

    def __init__(self, provider_id: str) -> None:
        super().__init__(f"API key for provider '{provider_id}' is not set")
        self.provider_id = provider_id


# =============================================================================
# PROVIDER ERRORS
# =============================================================================


class ProviderError(TaskweaveError):
    """A provider call failed."""

    def __init__(self, message: str, provider_id: str | None = None) -> None:
        super().__init__(message)
        self.provider_id = provider_id


class TransientProviderError(ProviderError):
    """Rate limit, overload or transient network failure. Retried in place."""

    pass


class FatalProviderError(ProviderError):
    """Any other provider-side failure. Never retried."""

    pass


# =============================================================================
# STRUCTURED OUTPUT ERRORS
# =============================================================================


class SchemaValidationError(TaskweaveError):
    """Structured output parsed but failed schema validation.

    Retryable: the whole generation call is re-issued because malformed
    structure is rarely deterministic.
    """

    pass


class MalformedStructuredOutputError(TaskweaveError):
    """Structured output could not be turned into valid data."""

    def __init__(self, message: str, raw_text: str | None = None) -> None:
        super().__init__(message)
        self.raw_text = raw_text


class TruncationSuspectedError(MalformedStructuredOutputError):
    """Structured output looks cut off (unclosed outer object)."""

    pass


# =============================================================================
# ORCHESTRATION ERRORS
# =============================================================================


class AllRolesExhaustedError(TaskweaveError):
    """Every role in the fallback sequence was skipped or failed."""

    def __init__(
        self,
        roles_attempted: list[str],
        last_error: BaseException | None = None,
    ) -> None:
        detail = str(last_error) if last_error is not None else "no role was available"
        super().__init__(
            "AI service call failed for all configured roles in the sequence "
            f"[{', '.join(roles_attempted)}]. Last error: {detail}"
        )
        self.roles_attempted = roles_attempted
        self.last_error = last_error
