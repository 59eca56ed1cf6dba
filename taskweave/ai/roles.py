"""Role resolution - maps a logical role to provider, model and parameters."""

from enum import Enum
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from taskweave.core.errors import NoProviderConfiguredError


class Role(str, Enum):
    """Logical generation purpose."""

    MAIN = "main"
    FALLBACK = "fallback"
    RESEARCH = "research"


# Canonical cascade order. A request for any role walks the suffix of this
# sequence that starts at that role.
ROLE_SEQUENCE: tuple[Role, ...] = (Role.MAIN, Role.FALLBACK, Role.RESEARCH)


def role_sequence_for(role: Role | str) -> list[Role]:
    """Get the fallback sequence for a requested role.

    Unknown roles start at ``main``.
    """
    try:
        start = ROLE_SEQUENCE.index(Role(role))
    except ValueError:
        logger.warning(f"Unknown role '{role}', using the full sequence starting at main")
        start = 0
    return list(ROLE_SEQUENCE[start:])


class RoleConfig(BaseModel):
    """Resolved configuration for one role."""

    model_config = ConfigDict(frozen=True)

    role: Role
    provider_id: str
    model_id: str | None = None
    max_tokens: int = Field(gt=0)
    temperature: float = Field(ge=0.0, le=2.0)


class RoleResolver:
    """
    Resolve a role against the config collaborator.

    Nothing is cached: every call re-reads provider, model and parameters so
    config edits and per-project roots are always honoured.

    Example:
        >>> resolver = RoleResolver(ConfigManager())
        >>> resolver.resolve(Role.MAIN, None).provider_id
        'claude-code'
    """

    def __init__(self, config: Any) -> None:
        self.config = config

    def resolve(self, role: Role | str, project_root: str | None) -> RoleConfig:
        """
        Resolve a role for a project root.

        Args:
            role: Role to resolve.
            project_root: Project root (None is passed through as-is).

        Returns:
            RoleConfig with provider, model and parameters.

        Raises:
            NoProviderConfiguredError: If the role has no provider.
        """
        role = Role(role)
        provider_id = getattr(self.config, f"get_{role.value}_provider")(project_root)
        model_id = getattr(self.config, f"get_{role.value}_model_id")(project_root)

        if not provider_id:
            raise NoProviderConfiguredError(role.value)

        params = self.config.get_parameters_for_role(role.value, project_root)

        return RoleConfig(
            role=role,
            provider_id=provider_id,
            model_id=model_id,
            max_tokens=params["max_tokens"],
            temperature=params["temperature"],
        )
