"""
Usage telemetry for AI calls.

Converts token counts into a cost figure from the per-model price table and
logs one usage record per successful call. Telemetry is best-effort: unknown
models are recorded at zero cost rather than failing the call.
"""

from datetime import datetime, timezone
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from taskweave.ai.config_manager import MODEL_MAP


class TokenUsage(BaseModel):
    """Token counts for one call."""

    model_config = ConfigDict(frozen=True)

    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)

    @classmethod
    def from_provider(cls, usage: dict[str, Any] | None) -> "TokenUsage":
        """Normalize a provider usage dict.

        Accepts ``input_tokens``/``output_tokens`` or the
        ``prompt_tokens``/``completion_tokens`` spelling, and the camelCase
        variants of both.
        """
        usage = usage or {}

        def pick(*keys: str) -> int:
            for key in keys:
                value = usage.get(key)
                if isinstance(value, (int, float)):
                    return int(value)
            return 0

        input_tokens = pick("input_tokens", "inputTokens", "prompt_tokens", "promptTokens")
        output_tokens = pick(
            "output_tokens", "outputTokens", "completion_tokens", "completionTokens"
        )
        total_tokens = pick("total_tokens", "totalTokens") or input_tokens + output_tokens
        return cls(input_tokens=input_tokens, output_tokens=output_tokens, total_tokens=total_tokens)


class UsageRecord(BaseModel):
    """Immutable telemetry record for one successful generation."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    command_name: str | None = None
    role: str
    provider_id: str
    model_id: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0
    currency: str = "USD"


class UsageSummary(BaseModel):
    """Token and cost totals across many calls."""

    model_config = ConfigDict(frozen=True)

    calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0
    currency: str = "USD"

    @classmethod
    def from_records(cls, records: list[UsageRecord]) -> "UsageSummary":
        """Sum a list of usage records."""
        if not records:
            return cls()
        return cls(
            calls=len(records),
            input_tokens=sum(r.input_tokens for r in records),
            output_tokens=sum(r.output_tokens for r in records),
            total_tokens=sum(r.total_tokens for r in records),
            total_cost=round(sum(r.total_cost for r in records), 6),
            currency=records[0].currency,
        )


def calculate_cost(
    provider_id: str,
    model_id: str | None,
    input_tokens: int,
    output_tokens: int,
    model_map: dict[str, list[dict[str, Any]]] | None = None,
) -> tuple[float, str]:
    """
    Compute the cost of a call from the price table.

    ``cost = input/1e6 * input_price + output/1e6 * output_price``

    Returns:
        Tuple of (cost, currency). Unknown provider/model pairs cost 0.0.

    Example:
        >>> calculate_cost("anthropic", "claude-sonnet-4-20250514", 1_000_000, 0)
        (3.0, 'USD')
    """
    model_map = MODEL_MAP if model_map is None else model_map

    for entry in model_map.get(provider_id, []):
        if entry.get("id") != model_id:
            continue
        prices = entry.get("cost_per_1m_tokens") or {}
        input_cost = float(prices.get("input") or 0.0)
        output_cost = float(prices.get("output") or 0.0)
        cost = input_tokens / 1_000_000 * input_cost + output_tokens / 1_000_000 * output_cost
        return round(cost, 6), prices.get("currency", "USD")

    logger.debug(f"No price entry for {provider_id}/{model_id}; recording zero cost")
    return 0.0, "USD"


class TelemetryAggregator:
    """
    Build, keep and log usage records.

    Records are append-only; ``records`` returns a copy.

    Example:
        >>> telemetry = TelemetryAggregator()
        >>> record = telemetry.record(
        ...     role="main", provider_id="anthropic",
        ...     model_id="claude-sonnet-4-20250514",
        ...     usage=TokenUsage(input_tokens=1000, output_tokens=500),
        ... )
        >>> record.total_cost
        0.0105
    """

    def __init__(self, model_map: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self.model_map = MODEL_MAP if model_map is None else model_map
        self._records: list[UsageRecord] = []

    def record(
        self,
        *,
        role: str,
        provider_id: str,
        model_id: str | None,
        usage: TokenUsage,
        command_name: str | None = None,
    ) -> UsageRecord:
        """Create, store and log the usage record for a successful call."""
        try:
            cost, currency = calculate_cost(
                provider_id,
                model_id,
                usage.input_tokens,
                usage.output_tokens,
                self.model_map,
            )
        except (TypeError, ValueError) as e:
            logger.warning(f"Cost calculation failed for {provider_id}/{model_id}: {e}")
            cost, currency = 0.0, "USD"

        record = UsageRecord(
            command_name=command_name,
            role=role,
            provider_id=provider_id,
            model_id=model_id,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            total_tokens=usage.total_tokens,
            total_cost=cost,
            currency=currency,
        )
        self._records.append(record)

        logger.info(
            f"AI usage: command={command_name or '-'} role={role} provider={provider_id} "
            f"model={model_id} input={record.input_tokens} output={record.output_tokens} "
            f"cost={record.total_cost:.6f} {record.currency}"
        )
        return record

    @property
    def records(self) -> list[UsageRecord]:
        """Copy of all records so far."""
        return list(self._records)

    def summary(self) -> UsageSummary:
        """Summarize all records so far."""
        return UsageSummary.from_records(self._records)
