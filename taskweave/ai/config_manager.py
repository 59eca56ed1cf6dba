"""Role/model configuration and the model price table.

Project configuration lives in ``<project_root>/.taskweave/config.json``::

    {
      "models": {
        "main":     {"provider": "claude-code", "modelId": "sonnet",
                     "maxTokens": 64000, "temperature": 0.2},
        "fallback": {"provider": "anthropic", "modelId": "claude-sonnet-4-20250514"},
        "research": {"provider": "perplexity", "modelId": "sonar-pro"}
      }
    }

Missing roles or fields fall back to ``DEFAULT_ROLE_SETTINGS``. The file is
re-read on every lookup so edits take effect without restarting.
"""

import json
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from taskweave.core.config import Settings, get_settings
from taskweave.core.context import RunContext

CONFIG_DIR = ".taskweave"
CONFIG_FILE = "config.json"

# Providers that never need a credential.
LOCAL_PROVIDERS = frozenset({"ollama", "claude-code"})

# Provider -> models, with price per 1M tokens and output-token ceiling.
MODEL_MAP: dict[str, list[dict[str, Any]]] = {
    "anthropic": [
        {
            "id": "claude-sonnet-4-20250514",
            "cost_per_1m_tokens": {"input": 3.0, "output": 15.0, "currency": "USD"},
            "max_tokens": 64000,
        },
        {
            "id": "claude-opus-4-20250514",
            "cost_per_1m_tokens": {"input": 15.0, "output": 75.0, "currency": "USD"},
            "max_tokens": 32000,
        },
        {
            "id": "claude-3-5-haiku-20241022",
            "cost_per_1m_tokens": {"input": 0.8, "output": 4.0, "currency": "USD"},
            "max_tokens": 8192,
        },
    ],
    "openai": [
        {
            "id": "gpt-4o",
            "cost_per_1m_tokens": {"input": 2.5, "output": 10.0, "currency": "USD"},
            "max_tokens": 16384,
        },
        {
            "id": "gpt-4o-mini",
            "cost_per_1m_tokens": {"input": 0.15, "output": 0.6, "currency": "USD"},
            "max_tokens": 16384,
        },
    ],
    "perplexity": [
        {
            "id": "sonar-pro",
            "cost_per_1m_tokens": {"input": 3.0, "output": 15.0, "currency": "USD"},
            "max_tokens": 8700,
        },
        {
            "id": "sonar",
            "cost_per_1m_tokens": {"input": 1.0, "output": 1.0, "currency": "USD"},
            "max_tokens": 8700,
        },
    ],
    "ollama": [
        {
            "id": "llama3",
            "cost_per_1m_tokens": {"input": 0.0, "output": 0.0, "currency": "USD"},
        },
    ],
    "claude-code": [
        {
            "id": "sonnet",
            "cost_per_1m_tokens": {"input": 0.0, "output": 0.0, "currency": "USD"},
        },
        {
            "id": "opus",
            "cost_per_1m_tokens": {"input": 0.0, "output": 0.0, "currency": "USD"},
        },
    ],
}


class RoleSettings(BaseModel):
    """Configured provider, model and generation parameters for one role."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    provider: str | None = None
    model_id: str | None = Field(default=None, alias="modelId")
    max_tokens: int = Field(default=64000, gt=0, alias="maxTokens")
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)


DEFAULT_ROLE_SETTINGS: dict[str, RoleSettings] = {
    "main": RoleSettings(provider="claude-code", model_id="sonnet", max_tokens=64000, temperature=0.2),
    "fallback": RoleSettings(
        provider="anthropic",
        model_id="claude-sonnet-4-20250514",
        max_tokens=64000,
        temperature=0.2,
    ),
    "research": RoleSettings(
        provider="perplexity", model_id="sonar-pro", max_tokens=8700, temperature=0.1
    ),
}

# Values left in templates that must not count as a real key.
_PLACEHOLDER_MARKERS = ("your_", "_here", "<", "xxx")


def find_model(provider_id: str, model_id: str) -> dict[str, Any] | None:
    """Look up a model entry in MODEL_MAP."""
    for entry in MODEL_MAP.get(provider_id, []):
        if entry.get("id") == model_id:
            return entry
    return None


class ConfigManager:
    """
    Config collaborator used by the AI service layer.

    Every getter takes the project root explicitly (which may be None) and
    reads the config file afresh.

    Example:
        >>> config = ConfigManager()
        >>> config.get_main_provider(None)
        'claude-code'
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    # =========================================================================
    # FILE LOADING
    # =========================================================================

    def config_path(self, project_root: str | None) -> Path | None:
        """Get the config file path for a project root."""
        if project_root is None:
            return None
        return Path(project_root) / CONFIG_DIR / CONFIG_FILE

    def load_role_settings(self, project_root: str | None) -> dict[str, RoleSettings]:
        """Load role settings, merged over the defaults."""
        roles = {role: value.model_copy() for role, value in DEFAULT_ROLE_SETTINGS.items()}

        path = self.config_path(project_root)
        if path is None or not path.exists():
            return roles

        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read {path}: {e}. Using default model configuration.")
            return roles

        for role, data in (raw.get("models") or {}).items():
            if not isinstance(data, dict):
                continue
            base = roles.get(role, RoleSettings()).model_dump(by_alias=True)
            try:
                roles[role] = RoleSettings.model_validate({**base, **data})
            except ValidationError as e:
                logger.warning(f"Invalid '{role}' model configuration in {path}: {e}")

        return roles

    def save_role_settings(self, project_root: str, role: str, role_settings: RoleSettings) -> Path:
        """Persist one role's settings to the project config file."""
        path = Path(project_root) / CONFIG_DIR / CONFIG_FILE
        path.parent.mkdir(parents=True, exist_ok=True)

        raw: dict[str, Any] = {}
        if path.exists():
            try:
                raw = json.loads(path.read_text(encoding="utf-8"))
            except json.JSONDecodeError:
                logger.warning(f"Overwriting unreadable config file {path}")

        raw.setdefault("models", {})[role] = role_settings.model_dump(by_alias=True)
        path.write_text(json.dumps(raw, indent=2) + "\n", encoding="utf-8")
        return path

    def _role(self, role: str, project_root: str | None) -> RoleSettings:
        return self.load_role_settings(project_root).get(role, RoleSettings())

    # =========================================================================
    # ROLE GETTERS
    # =========================================================================

    def get_main_provider(self, project_root: str | None) -> str | None:
        return self._role("main", project_root).provider

    def get_main_model_id(self, project_root: str | None) -> str | None:
        return self._role("main", project_root).model_id

    def get_fallback_provider(self, project_root: str | None) -> str | None:
        return self._role("fallback", project_root).provider

    def get_fallback_model_id(self, project_root: str | None) -> str | None:
        return self._role("fallback", project_root).model_id

    def get_research_provider(self, project_root: str | None) -> str | None:
        return self._role("research", project_root).provider

    def get_research_model_id(self, project_root: str | None) -> str | None:
        return self._role("research", project_root).model_id

    def get_parameters_for_role(self, role: str, project_root: str | None) -> dict[str, Any]:
        """Get generation parameters for a role.

        ``max_tokens`` is capped at the model's own output ceiling when the
        model is listed in MODEL_MAP.
        """
        settings = self._role(role, project_root)
        max_tokens = settings.max_tokens

        if settings.provider and settings.model_id:
            model = find_model(settings.provider, settings.model_id)
            model_cap = model.get("max_tokens") if model else None
            if model_cap and model_cap < max_tokens:
                logger.debug(
                    f"Capping max_tokens for role {role} from {max_tokens} to model limit {model_cap}"
                )
                max_tokens = model_cap

        return {"max_tokens": max_tokens, "temperature": settings.temperature}

    # =========================================================================
    # CREDENTIALS
    # =========================================================================

    @staticmethod
    def api_key_env_var(provider_id: str) -> str:
        """Environment variable holding a provider's API key."""
        return f"{provider_id.upper().replace('-', '_')}_API_KEY"

    def resolve_api_key(
        self,
        provider_id: str,
        session: Any,
        project_root: str | None,
    ) -> str | None:
        """Resolve a provider's API key.

        Session env overrides win over the process environment / ``.env``.
        """
        env_var = self.api_key_env_var(provider_id)

        session_env = RunContext(project_root=project_root, session=session).session_env()
        if session_env.get(env_var):
            return str(session_env[env_var]).strip() or None

        return self.settings.api_key_for(provider_id)

    def is_api_key_set(self, provider_id: str, session: Any, project_root: str | None) -> bool:
        """Check whether a usable API key exists for a provider."""
        if provider_id in LOCAL_PROVIDERS:
            return True

        key = self.resolve_api_key(provider_id, session, project_root)
        if not key:
            return False
        lowered = key.lower()
        return not any(marker in lowered for marker in _PLACEHOLDER_MARKERS)
