"""
Integration tests against the live provider APIs.

Key tests are free; generation tests spend credits. Both are opt-in:

  IMAGESTUDIO_RUN_INTEGRATION_TESTS=1 IMAGESTUDIO_TEST_ZAI_KEY=... pytest --run-slow -m integration

Keys are read from IMAGESTUDIO_TEST_<PROVIDER>_KEY only in this module; the
library itself never reads API keys from the environment.
"""

import asyncio
import os

import pytest

from imagestudio import (
    Config,
    GenerationController,
    GenerationRequest,
    ImageResult,
    KeyStatus,
    Provider,
)


def _integration_enabled() -> bool:
    return os.getenv("IMAGESTUDIO_RUN_INTEGRATION_TESTS", "").strip() == "1"


def _key_for(provider: Provider) -> str:
    key = os.getenv(f"IMAGESTUDIO_TEST_{provider.name}_KEY", "").strip()
    if not key:
        pytest.skip(f"IMAGESTUDIO_TEST_{provider.name}_KEY not set.")
    return key


@pytest.fixture(autouse=True)
def _require_opt_in() -> None:
    if not _integration_enabled():
        pytest.skip(
            "Integration tests are disabled. Set IMAGESTUDIO_RUN_INTEGRATION_TESTS=1 to run."
        )


@pytest.mark.integration
@pytest.mark.slow
class TestLiveKeyTest:
    @pytest.mark.parametrize("provider", list(Provider))
    def test_real_key_is_valid(self, provider: Provider) -> None:
        controller = GenerationController(config=Config.from_env())
        outcome = asyncio.run(controller.test_api_key(_key_for(provider), provider))
        assert outcome.status is KeyStatus.VALID, outcome.message

    @pytest.mark.parametrize("provider", list(Provider))
    def test_bogus_key_is_invalid(self, provider: Provider) -> None:
        _key_for(provider)
        controller = GenerationController(config=Config.from_env())
        outcome = asyncio.run(controller.test_api_key("not-a-real-key-000", provider))
        assert outcome.status is KeyStatus.INVALID
        assert outcome.message


@pytest.mark.integration
@pytest.mark.slow
@pytest.mark.expensive
class TestLiveGeneration:
    @pytest.mark.parametrize("provider", list(Provider))
    def test_generate_returns_image_and_cools_down(self, provider: Provider) -> None:
        controller = GenerationController(config=Config.from_env())
        request = GenerationRequest(
            prompt="A small red paper boat on a calm blue lake, minimal illustration",
            api_key=_key_for(provider),
            provider=provider,
        )

        result = asyncio.run(controller.submit(request))
        controller.close()

        assert isinstance(result, ImageResult), getattr(result, "message", result)
        assert result.provider is provider
        assert result.payload.url or result.payload.as_bytes()
        assert controller.can_request is False
        assert controller.cooldown_remaining > 0
