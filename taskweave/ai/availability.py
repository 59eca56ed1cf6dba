"""Availability gate - decides whether a role's provider can be attempted."""

from typing import Any

from loguru import logger

from taskweave.providers.registry import ProviderRegistry


class AvailabilityGate:
    """
    Credential gate for providers.

    Providers that need no credential (local model runners, CLIs that are
    already authenticated) are always available and the credential check is
    never consulted for them. All others must pass
    ``config.is_api_key_set(provider_id, session, project_root)``.
    """

    def __init__(self, config: Any, registry: ProviderRegistry) -> None:
        self.config = config
        self.registry = registry

    def requires_api_key(self, provider_id: str) -> bool:
        """Check whether a provider needs a credential."""
        descriptor = self.registry.get(provider_id)
        return descriptor.requires_api_key if descriptor is not None else True

    def is_available(self, provider_id: str, session: Any, project_root: str | None) -> bool:
        """
        Check whether a provider can be called.

        Args:
            provider_id: Provider to check.
            session: Caller session, passed to the credential check unmodified.
            project_root: Project root (may be None).

        Returns:
            True if the provider may be attempted.
        """
        if not self.requires_api_key(provider_id):
            logger.debug(f"Provider {provider_id} needs no API key; skipping credential check")
            return True
        return bool(self.config.is_api_key_set(provider_id, session, project_root))
