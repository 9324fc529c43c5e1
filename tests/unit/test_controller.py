"""Unit tests for GenerationController: dispatch, triage and throttling."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
import requests

from imagestudio.core.config import Config
from imagestudio.core.controller import GenerationController
from imagestudio.core.endpoints import get_endpoint
from imagestudio.core.models import (
    ErrorKind,
    ErrorResult,
    GenerationRequest,
    ImageResult,
    KeyStatus,
    Provider,
    Quality,
)
from imagestudio.core.providers import ProviderRegistry, ResponseOutcome, register_builtins
from imagestudio.core.providers.openai import OpenAIAdapter
from imagestudio.utils.exceptions import NetworkError

ALL_PROVIDERS = list(Provider)


class FakeTransport:
    """Async transport returning queued responses (or raising queued exceptions)."""

    def __init__(self, *items):
        self._items = list(items)
        self.calls = []

    async def __call__(self, request, timeout, debug_api=False):
        self.calls.append(request)
        item = self._items.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


class KeylessAdapter(OpenAIAdapter):
    requires_api_key = False


def _controller(*items, registry=None, sleep=None, tick_interval=1.0):
    transport = FakeTransport(*items)
    if registry is None:
        registry = ProviderRegistry()
        register_builtins(registry)
    controller = GenerationController(
        config=Config(),
        registry=registry,
        transport=transport,
        sleep=sleep or AsyncMock(),
        tick_interval=tick_interval,
    )
    return controller, transport


def _request(provider=Provider.OPENAI, prompt="a red fox in snow", api_key="sk-test"):
    return GenerationRequest(prompt=prompt, api_key=api_key, provider=provider)


@pytest.mark.unit
class TestPreconditions:
    @pytest.mark.parametrize("provider", ALL_PROVIDERS)
    def test_empty_prompt_never_dispatches(self, provider):
        controller, transport = _controller()
        for prompt in ("", "   "):
            result = asyncio.run(controller.submit(_request(provider, prompt=prompt)))
            assert isinstance(result, ErrorResult)
            assert result.kind is ErrorKind.VALIDATION
        assert transport.calls == []
        assert controller.can_request is True

    @pytest.mark.parametrize("provider", ALL_PROVIDERS)
    def test_empty_key_never_dispatches(self, provider):
        controller, transport = _controller()
        result = asyncio.run(controller.submit(_request(provider, api_key=" ")))
        assert isinstance(result, ErrorResult)
        assert result.kind is ErrorKind.VALIDATION
        assert transport.calls == []
        assert controller.can_request is True

    def test_key_waived_for_keyless_adapter(self, make_response):
        registry = ProviderRegistry()
        registry.register("openai", KeylessAdapter())
        controller, transport = _controller(
            make_response(200, {"data": [{"url": "http://x"}]}), registry=registry
        )
        result = asyncio.run(controller.submit(_request(api_key="")))
        assert isinstance(result, ImageResult)
        assert len(transport.calls) == 1

    def test_unknown_provider_is_validation_error(self):
        controller, transport = _controller(registry=ProviderRegistry())
        result = asyncio.run(controller.submit(_request()))
        assert result.kind is ErrorKind.VALIDATION
        assert transport.calls == []


@pytest.mark.unit
class TestThrottling:
    @pytest.mark.parametrize("provider", ALL_PROVIDERS)
    def test_submit_while_cooling_is_rejected_without_io(self, provider):
        controller, transport = _controller()
        controller._start_cooldown(30)
        result = asyncio.run(controller.submit(_request(provider)))
        assert result.kind is ErrorKind.THROTTLED
        assert "30" in result.message
        assert transport.calls == []
        assert controller.cooldown_remaining == 30

    def test_submit_while_in_flight_is_rejected(self, make_response):
        release = asyncio.Event()
        calls = []

        async def slow_transport(request, timeout, debug_api=False):
            calls.append(request)
            await release.wait()
            return make_response(200, {"data": [{"url": "http://x"}]})

        registry = ProviderRegistry()
        register_builtins(registry)
        controller = GenerationController(
            config=Config(), registry=registry, transport=slow_transport, sleep=AsyncMock()
        )

        async def scenario():
            first = asyncio.create_task(controller.submit(_request()))
            await asyncio.sleep(0)
            assert controller.can_request is False
            second = await controller.submit(_request(Provider.ZAI))
            release.set()
            return await first, second

        first, second = asyncio.run(scenario())
        controller.close()
        assert isinstance(first, ImageResult)
        assert second.kind is ErrorKind.THROTTLED
        assert "in progress" in second.message
        assert len(calls) == 1

    def test_tick_restores_exactly_at_zero(self, make_response):
        controller, _ = _controller(make_response(200, {"data": [{"url": "http://x"}]}))
        asyncio.run(controller.submit(_request()))
        remaining = controller.cooldown_remaining
        assert remaining == get_endpoint("openai").success_cooldown
        assert remaining > 0

        for _ in range(remaining - 1):
            state = controller.tick()
            assert state.can_request is False
            assert state.cooldown_remaining > 0
        state = controller.tick()
        assert state.can_request is True
        assert state.cooldown_remaining == 0

    def test_tick_when_idle_is_noop(self):
        controller, _ = _controller()
        state = controller.tick()
        assert state.can_request is True
        assert state.cooldown_remaining == 0

    def test_state_is_a_copy(self):
        controller, _ = _controller()
        state = controller.state
        state.can_request = False
        assert controller.can_request is True

    def test_scheduled_ticks_reopen_gate(self, make_response):
        controller, _ = _controller(
            make_response(200, {"data": [{"url": "http://x"}]}), tick_interval=0.01
        )

        async def scenario():
            await controller.submit(_request())
            assert controller.can_request is False
            for _ in range(200):
                if controller.can_request:
                    break
                await asyncio.sleep(0.01)
            return controller.state

        state = asyncio.run(scenario())
        assert state.can_request is True
        assert state.cooldown_remaining == 0

    def test_new_cooldown_supersedes_pending_timer(self):
        controller, _ = _controller()

        async def scenario():
            controller._start_cooldown(5)
            first = controller._timer
            controller._start_cooldown(3)
            second = controller._timer
            controller.close()
            return first, second

        first, second = asyncio.run(scenario())
        assert first is not None and first.cancelled()
        assert second is not first
        assert controller.cooldown_remaining == 3


@pytest.mark.unit
class TestResponseTriage:
    def test_pre_request_delay_applied(self, make_response):
        sleep = AsyncMock()
        controller, _ = _controller(
            make_response(200, {"data": [{"url": "http://x"}]}), sleep=sleep
        )
        asyncio.run(controller.submit(_request(Provider.ZAI)))
        sleep.assert_awaited_once_with(get_endpoint("zai").pre_request_delay)

    def test_success_returns_url_and_starts_short_cooldown(self, make_response):
        controller, transport = _controller(make_response(200, {"data": [{"url": "http://x"}]}))
        result = asyncio.run(controller.submit(_request(Provider.ZAI)))
        assert isinstance(result, ImageResult)
        assert result.payload.url == "http://x"
        assert result.provider is Provider.ZAI
        assert controller.can_request is False
        assert controller.cooldown_remaining == get_endpoint("zai").success_cooldown
        assert transport.calls[0].json["model"] == "cogview-4-250304"

    def test_rate_limit_daily_quota_code_sets_hour_cooldown(self, make_response):
        body = {"error": {"code": "1304", "message": "daily limit"}}
        controller, _ = _controller(make_response(429, body))
        result = asyncio.run(controller.submit(_request(Provider.ZAI)))
        assert result.kind is ErrorKind.RATE_LIMITED
        assert controller.cooldown_remaining == 3600
        assert controller.can_request is False

    def test_rate_limit_generic_sets_minute_cooldown(self, make_response):
        body = {"error": {"code": "1302", "message": "concurrency"}}
        controller, _ = _controller(make_response(429, body))
        asyncio.run(controller.submit(_request(Provider.ZAI)))
        assert controller.cooldown_remaining == 60

    def test_embedded_throttle_code_releases_immediately(self, make_response):
        controller, _ = _controller(make_response(200, {"error": {"code": "1302"}}))
        result = asyncio.run(controller.submit(_request(Provider.ZAI)))
        assert result.kind is ErrorKind.PROVIDER_BUSINESS_ERROR
        assert controller.can_request is True
        assert controller.cooldown_remaining == 0

    def test_embedded_policy_error_releases_immediately(self, make_response):
        controller, _ = _controller(make_response(200, {"error": {"code": "1301"}}))
        result = asyncio.run(controller.submit(_request(Provider.ZAI)))
        assert result.kind is ErrorKind.CONTENT_POLICY
        assert controller.can_request is True
        assert controller.cooldown_remaining == 0

    @pytest.mark.parametrize(
        ("status", "body", "kind"),
        [
            (401, {"error": {"code": "invalid_api_key", "message": "bad key"}}, ErrorKind.AUTH_FAILED),
            (400, {"error": {"code": None, "message": "size invalid"}}, ErrorKind.BAD_REQUEST),
            (503, {"error": {"message": "overloaded"}}, ErrorKind.NETWORK),
            (200, {"data": []}, ErrorKind.MALFORMED_RESPONSE),
        ],
    )
    def test_correctable_errors_release_slot(self, make_response, status, body, kind):
        controller, _ = _controller(make_response(status, body))
        result = asyncio.run(controller.submit(_request()))
        assert result.kind is kind
        assert controller.can_request is True

    def test_malformed_json_is_network_error(self, make_response):
        controller, _ = _controller(make_response(200, None, text="<html>oops</html>"))
        result = asyncio.run(controller.submit(_request()))
        assert result.kind is ErrorKind.NETWORK
        assert controller.can_request is True

    def test_network_exception_includes_cause_and_releases(self):
        controller, _ = _controller(NetworkError("Failed to connect: connection refused"))
        result = asyncio.run(controller.submit(_request(Provider.GEMINI)))
        assert result.kind is ErrorKind.NETWORK
        assert "connection refused" in result.message
        assert controller.can_request is True

    def test_network_exception_through_real_transport(self):
        registry = ProviderRegistry()
        register_builtins(registry)
        controller = GenerationController(config=Config(), registry=registry, sleep=AsyncMock())
        with patch(
            "imagestudio.core.transport.requests.request",
            side_effect=requests.exceptions.ConnectionError("name resolution failed"),
        ):
            result = asyncio.run(controller.submit(_request()))
        assert result.kind is ErrorKind.NETWORK
        assert "name resolution failed" in result.message
        assert controller.can_request is True

    @pytest.mark.parametrize(
        ("status", "body", "kind"),
        [
            (200, {"candidates": [{"content": ["x"]}]}, ErrorKind.MALFORMED_RESPONSE),
            (200, {"candidates": [{"finishReason": ["SAFETY"]}]}, ErrorKind.MALFORMED_RESPONSE),
            (429, {"error": {"details": 5}}, ErrorKind.RATE_LIMITED),
        ],
    )
    def test_odd_gemini_bodies_come_back_as_results(self, make_response, status, body, kind):
        controller, _ = _controller(make_response(status, body))
        result = asyncio.run(controller.submit(_request(Provider.GEMINI)))
        assert result.kind is kind

    def test_unexpected_exception_still_releases_slot(self):
        controller, _ = _controller(RuntimeError("adapter bug"))
        with pytest.raises(RuntimeError):
            asyncio.run(controller.submit(_request()))
        assert controller.can_request is True

    def test_adapter_outcome_cooldown_is_honoured(self, make_response):
        registry = ProviderRegistry()
        registry.register("openai", OpenAIAdapter())
        controller, _ = _controller(make_response(200, {}), registry=registry)
        with patch.object(
            OpenAIAdapter,
            "parse_response",
            return_value=ResponseOutcome(ErrorResult(ErrorKind.RATE_LIMITED, "slow down"), 7),
        ):
            asyncio.run(controller.submit(_request()))
        assert controller.cooldown_remaining == 7

    def test_quality_sent_to_provider(self, make_response):
        controller, transport = _controller(make_response(200, {"data": [{"url": "http://x"}]}))
        request = GenerationRequest("a fox", "sk-test", Provider.OPENAI, Quality.HD)
        asyncio.run(controller.submit(request))
        assert transport.calls[0].json["quality"] == "hd"


@pytest.mark.unit
class TestApiKeyTest:
    def test_does_not_touch_throttle_state(self, make_response):
        controller, transport = _controller(make_response(200, {"data": []}))
        controller._start_cooldown(42)
        before = controller.state
        outcome = asyncio.run(controller.test_api_key("sk-test", Provider.OPENAI))
        assert outcome.status is KeyStatus.VALID
        assert controller.state == before
        assert len(transport.calls) == 1

    def test_idle_state_unchanged_on_invalid_key(self, make_response):
        body = {"error": {"code": "invalid_api_key", "message": "Incorrect API key"}}
        controller, _ = _controller(make_response(401, body))
        outcome = asyncio.run(controller.test_api_key("sk-bad", "openai"))
        assert outcome.status is KeyStatus.INVALID
        assert controller.can_request is True
        assert controller.cooldown_remaining == 0

    def test_not_applicable_for_keyless_adapter(self):
        registry = ProviderRegistry()
        registry.register("openai", KeylessAdapter())
        controller, transport = _controller(registry=registry)
        outcome = asyncio.run(controller.test_api_key("", Provider.OPENAI))
        assert outcome.status is KeyStatus.NOT_APPLICABLE
        assert transport.calls == []

    def test_empty_key_is_invalid_without_io(self):
        controller, transport = _controller()
        outcome = asyncio.run(controller.test_api_key("", Provider.ZAI))
        assert outcome.status is KeyStatus.INVALID
        assert transport.calls == []

    def test_network_failure_is_invalid_with_reason(self):
        controller, _ = _controller(NetworkError("timed out"))
        outcome = asyncio.run(controller.test_api_key("key", Provider.GEMINI))
        assert outcome.status is KeyStatus.INVALID
        assert "timed out" in outcome.message
