"""
Provider adapters: protocol, registry, and built-in implementations.

Built-in adapters are registered lazily on first get_registry() call.
"""

from imagestudio.core.models import Provider
from imagestudio.core.providers.base import ProviderAdapter as ProviderAdapter
from imagestudio.core.providers.base import ResponseOutcome as ResponseOutcome
from imagestudio.core.providers.registry import (
    ProviderRegistry,
)
from imagestudio.core.providers.registry import (
    get_registry as _get_registry_impl,
)

PROVIDER_OPENAI = Provider.OPENAI.value
PROVIDER_GEMINI = Provider.GEMINI.value
PROVIDER_ZAI = Provider.ZAI.value
KNOWN_PROVIDERS = (PROVIDER_OPENAI, PROVIDER_GEMINI, PROVIDER_ZAI)

_builtins_registered = False


def register_builtins(reg: ProviderRegistry) -> None:
    """Register the built-in adapters on reg."""
    from imagestudio.core.providers.gemini import GeminiImagenAdapter
    from imagestudio.core.providers.openai import OpenAIAdapter
    from imagestudio.core.providers.zai import ZaiCogViewAdapter

    reg.register(PROVIDER_OPENAI, OpenAIAdapter())
    reg.register(PROVIDER_GEMINI, GeminiImagenAdapter())
    reg.register(PROVIDER_ZAI, ZaiCogViewAdapter())


def get_registry() -> ProviderRegistry:
    """Return the global provider registry and ensure built-ins are registered."""
    global _builtins_registered
    reg = _get_registry_impl()
    if not _builtins_registered:
        register_builtins(reg)
        _builtins_registered = True
    return reg
