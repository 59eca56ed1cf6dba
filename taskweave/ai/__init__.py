"""AI call orchestration - roles, credential gating, retries, fallback and telemetry."""

from taskweave.ai.availability import AvailabilityGate
from taskweave.ai.config_manager import MODEL_MAP, ConfigManager, RoleSettings
from taskweave.ai.invoker import ProviderInvoker, ProviderResponse, ServiceType
from taskweave.ai.retry import RetryController, is_retryable_error
from taskweave.ai.roles import ROLE_SEQUENCE, Role, RoleConfig, RoleResolver, role_sequence_for
from taskweave.ai.service import AIService, GenerationResult, get_ai_service
from taskweave.ai.telemetry import (
    TelemetryAggregator,
    TokenUsage,
    UsageRecord,
    UsageSummary,
    calculate_cost,
)

__all__ = [
    "AIService",
    "AvailabilityGate",
    "ConfigManager",
    "GenerationResult",
    "MODEL_MAP",
    "ProviderInvoker",
    "ProviderResponse",
    "ROLE_SEQUENCE",
    "RetryController",
    "Role",
    "RoleConfig",
    "RoleResolver",
    "RoleSettings",
    "ServiceType",
    "TelemetryAggregator",
    "TokenUsage",
    "UsageRecord",
    "UsageSummary",
    "calculate_cost",
    "get_ai_service",
    "is_retryable_error",
    "role_sequence_for",
]
