"""Core module - configuration, run context, errors and logging."""

from taskweave.core.config import Settings, clear_settings_cache, get_settings
from taskweave.core.context import RunContext
from taskweave.core.errors import (
    AllRolesExhaustedError,
    FatalProviderError,
    MalformedStructuredOutputError,
    MissingCredentialError,
    NoProviderConfiguredError,
    OutputExistsError,
    ProviderError,
    SchemaValidationError,
    TaskweaveError,
    TransientProviderError,
    TruncationSuspectedError,
)
from taskweave.core.logging import configure_logging

__all__ = [
    "AllRolesExhaustedError",
    "FatalProviderError",
    "MalformedStructuredOutputError",
    "MissingCredentialError",
    "NoProviderConfiguredError",
    "OutputExistsError",
    "ProviderError",
    "RunContext",
    "SchemaValidationError",
    "Settings",
    "TaskweaveError",
    "TransientProviderError",
    "TruncationSuspectedError",
    "clear_settings_cache",
    "configure_logging",
    "get_settings",
]
