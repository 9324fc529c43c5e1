"""Unit tests for the provider registry and built-in registration."""

import pytest

from imagestudio.core.models import Provider
from imagestudio.core.providers import (
    KNOWN_PROVIDERS,
    PROVIDER_GEMINI,
    PROVIDER_OPENAI,
    PROVIDER_ZAI,
    ProviderRegistry,
    get_registry,
    register_builtins,
)
from imagestudio.core.providers.gemini import GeminiImagenAdapter
from imagestudio.core.providers.openai import OpenAIAdapter
from imagestudio.core.providers.zai import ZaiCogViewAdapter


@pytest.mark.unit
class TestProviderRegistry:
    def test_get_openai_returns_implementation(self):
        impl = get_registry().get(PROVIDER_OPENAI)
        assert isinstance(impl, OpenAIAdapter)
        assert impl.provider is Provider.OPENAI

    def test_get_gemini_returns_implementation(self):
        impl = get_registry().get(PROVIDER_GEMINI)
        assert isinstance(impl, GeminiImagenAdapter)
        assert impl.requires_api_key is True

    def test_get_zai_returns_implementation(self):
        impl = get_registry().get(PROVIDER_ZAI)
        assert isinstance(impl, ZaiCogViewAdapter)

    def test_get_unknown_returns_none(self):
        assert get_registry().get("unknown") is None

    def test_provider_ids_contains_builtins(self):
        ids = get_registry().provider_ids()
        for provider_id in KNOWN_PROVIDERS:
            assert provider_id in ids

    def test_known_providers_match_enum(self):
        assert set(KNOWN_PROVIDERS) == {p.value for p in Provider}

    def test_register_replaces_existing(self):
        reg = ProviderRegistry()
        register_builtins(reg)
        replacement = OpenAIAdapter()
        reg.register(PROVIDER_OPENAI, replacement)
        assert reg.get(PROVIDER_OPENAI) is replacement
        assert len(reg.provider_ids()) == 3

    def test_fresh_registry_is_empty(self):
        assert ProviderRegistry().provider_ids() == []

    def test_enum_and_string_ids_are_interchangeable(self):
        reg = ProviderRegistry()
        adapter = ZaiCogViewAdapter()
        reg.register(Provider.ZAI, adapter)
        assert reg.get("zai") is adapter
        assert reg.get(Provider.ZAI) is adapter
        assert reg.provider_ids() == ["zai"]

    def test_contains(self):
        reg = ProviderRegistry()
        reg.register(PROVIDER_GEMINI, GeminiImagenAdapter())
        assert Provider.GEMINI in reg
        assert "gemini" in reg
        assert "openai" not in reg
        assert 42 not in reg
