"""
Provider id to adapter lookup.

The controller resolves GenerationRequest.provider here, so a test can hand
it a registry holding fake or keyless adapters instead of the built-ins.
"""

from imagestudio.core.models import Provider
from imagestudio.core.providers.base import ProviderAdapter


def _key(provider_id: Provider | str) -> str:
    return provider_id.value if isinstance(provider_id, Provider) else provider_id


class ProviderRegistry:
    """Adapters by provider id, in registration order."""

    def __init__(self) -> None:
        self._adapters: dict[str, ProviderAdapter] = {}

    def register(self, provider_id: Provider | str, adapter: ProviderAdapter) -> None:
        """Later registrations for the same id win."""
        self._adapters[_key(provider_id)] = adapter

    def get(self, provider_id: Provider | str) -> ProviderAdapter | None:
        return self._adapters.get(_key(provider_id))

    def __contains__(self, provider_id: object) -> bool:
        if not isinstance(provider_id, (Provider, str)):
            return False
        return _key(provider_id) in self._adapters

    def provider_ids(self) -> list[str]:
        return list(self._adapters)


_registry: ProviderRegistry | None = None


def get_registry() -> ProviderRegistry:
    """Process-wide registry, created empty on first call."""
    global _registry
    if _registry is None:
        _registry = ProviderRegistry()
    return _registry
