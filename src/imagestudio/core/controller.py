"""
Generation controller: dispatch, response triage and request throttling.

One controller per user session. It owns the session's ThrottleState and is
its only mutator. At most one generation request is in flight per controller;
after a success or a rate limit a cooldown counts down once per tick and
re-opens the gate when it reaches zero. User-correctable failures (auth, bad
request, content policy) and transient failures (network) re-open the gate
immediately.

When a cooldown starts inside a running event loop the controller schedules
its own ticks with loop.call_at on a monotonic deadline; outside a loop the
caller drives tick() directly.
"""

import asyncio
import dataclasses
import time
from collections.abc import Awaitable, Callable

import requests

from imagestudio.core.config import Config, get_config
from imagestudio.core.endpoints import get_endpoint
from imagestudio.core.models import (
    ErrorKind,
    ErrorResult,
    GenerationRequest,
    GenerationResult,
    ImageResult,
    KeyTestOutcome,
    Provider,
    ThrottleState,
)
from imagestudio.core.providers import ProviderAdapter, ProviderRegistry, get_registry
from imagestudio.core.providers.base import ResponseOutcome
from imagestudio.core.transport import HttpRequest, send_async
from imagestudio.logging_config import get_logger, log_prompts
from imagestudio.utils.exceptions import NetworkError

logger = get_logger(__name__)

# Max prompt length for logging (large so prompts are effectively never truncated)
_PROMPT_LOG_MAX = 50_000

Transport = Callable[[HttpRequest, float, bool], Awaitable[requests.Response]]
Sleep = Callable[[float], Awaitable[None]]


class GenerationController:
    """Issues generation requests for one session and gates resubmission."""

    def __init__(
        self,
        config: Config | None = None,
        registry: ProviderRegistry | None = None,
        transport: Transport | None = None,
        sleep: Sleep | None = None,
        tick_interval: float = 1.0,
    ) -> None:
        """
        Args:
            config: Configuration; shared config from get_config() when omitted
            registry: Adapter registry; the global registry with built-ins when omitted
            transport: Coroutine performing an HttpRequest (defaults to send_async)
            sleep: Coroutine used for the pre-request delay (defaults to asyncio.sleep)
            tick_interval: Seconds between scheduled ticks while cooling down
        """
        self._config = config or get_config()
        self._registry = registry or get_registry()
        self._transport = transport or send_async
        self._sleep = sleep or asyncio.sleep
        self._tick_interval = tick_interval
        self._state = ThrottleState()
        self._timer: asyncio.TimerHandle | None = None
        self._next_tick_at = 0.0

    @property
    def state(self) -> ThrottleState:
        """A copy of the current throttle state."""
        return self._state.snapshot()

    @property
    def can_request(self) -> bool:
        return self._state.can_request

    @property
    def cooldown_remaining(self) -> int:
        return self._state.cooldown_remaining

    def _adapter_for(self, provider: Provider | str) -> ProviderAdapter | None:
        provider_id = provider.value if isinstance(provider, Provider) else str(provider)
        return self._registry.get(provider_id)

    async def submit(self, request: GenerationRequest) -> GenerationResult:
        """
        Generate one image for request.

        Never raises for provider, validation or network failures: every
        outcome is returned as an ImageResult or ErrorResult, and the throttle
        state is either released or put into a cooldown before returning.
        """
        adapter = self._adapter_for(request.provider)
        if adapter is None:
            return ErrorResult(ErrorKind.VALIDATION, f"Unknown provider: {request.provider!s}")
        if not request.prompt or not request.prompt.strip():
            return ErrorResult(ErrorKind.VALIDATION, "Enter a prompt to generate.")
        if adapter.requires_api_key and not (request.api_key or "").strip():
            return ErrorResult(ErrorKind.VALIDATION, "Enter an API key for the selected provider.")
        if not self._state.can_request:
            return self._throttled_result()

        endpoint = get_endpoint(adapter.provider.value, self._config)

        # Claim the single in-flight slot before any await
        self._state.can_request = False
        logger.info(
            "Generating image provider=%s quality=%s",
            adapter.provider.value,
            request.quality.value,
        )
        if log_prompts():
            prompt = request.prompt
            truncated = prompt if len(prompt) <= _PROMPT_LOG_MAX else prompt[:_PROMPT_LOG_MAX] + "..."
            logger.info("Prompt: %s", truncated)

        outcome: ResponseOutcome | None = None
        try:
            if endpoint.pre_request_delay > 0:
                await self._sleep(endpoint.pre_request_delay)
            http_request = adapter.build_request(request, endpoint)
            start_time = time.time()
            try:
                response = await self._transport(
                    http_request, self._config.request_timeout, self._config.debug_api
                )
            except NetworkError as e:
                outcome = ResponseOutcome(ErrorResult(ErrorKind.NETWORK, str(e)))
            else:
                outcome = adapter.parse_response(response, endpoint)
                if isinstance(outcome.result, ImageResult):
                    outcome = dataclasses.replace(
                        outcome,
                        result=dataclasses.replace(
                            outcome.result, generation_time=time.time() - start_time
                        ),
                    )
        finally:
            # Also runs on cancellation or an adapter bug, so the gate never stays shut
            if outcome is not None and outcome.cooldown > 0:
                self._start_cooldown(outcome.cooldown)
            else:
                self._release()

        self._log_outcome(adapter, outcome)
        return outcome.result

    def _throttled_result(self) -> ErrorResult:
        remaining = self._state.cooldown_remaining
        if remaining > 0:
            message = f"Please wait {remaining} seconds before the next request."
        else:
            message = "A request is already in progress."
        return ErrorResult(ErrorKind.THROTTLED, message)

    def _log_outcome(self, adapter: ProviderAdapter, outcome: ResponseOutcome) -> None:
        result = outcome.result
        if isinstance(result, ImageResult):
            logger.info(
                "Generated in %.1fs provider=%s inline=%s",
                result.generation_time,
                adapter.provider.value,
                result.payload.is_inline,
            )
        else:
            logger.warning(
                "Generation failed provider=%s kind=%s status=%s code=%s",
                adapter.provider.value,
                result.kind.value,
                result.status_code,
                result.code or "-",
            )
        if outcome.cooldown > 0:
            logger.info("Cooldown started: %ss", outcome.cooldown)

    def _release(self) -> None:
        self._cancel_timer()
        self._state.cooldown_remaining = 0
        self._state.can_request = True

    def _start_cooldown(self, seconds: int) -> None:
        """Start (or restart) the cooldown, superseding any pending timer."""
        self._cancel_timer()
        self._state.cooldown_remaining = seconds
        self._state.can_request = False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._next_tick_at = loop.time() + self._tick_interval
        self._timer = loop.call_at(self._next_tick_at, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        loop = asyncio.get_running_loop()
        now = loop.time()
        # Catch up on ticks missed while the loop was busy; deadlines never drift
        while self._state.cooldown_remaining > 0 and self._next_tick_at <= now:
            self.tick()
            self._next_tick_at += self._tick_interval
        if self._state.cooldown_remaining > 0:
            self._timer = loop.call_at(self._next_tick_at, self._on_timer)

    def tick(self) -> ThrottleState:
        """
        Advance the cooldown by one interval.

        Does nothing when no cooldown is running (including while a request is
        in flight). Re-opens the gate and stops the timer on reaching zero.
        """
        if self._state.cooldown_remaining <= 0:
            return self.state
        self._state.cooldown_remaining -= 1
        if self._state.cooldown_remaining == 0:
            self._state.can_request = True
            self._cancel_timer()
            logger.debug("Cooldown finished")
        return self.state

    async def test_api_key(self, api_key: str, provider: Provider | str) -> KeyTestOutcome:
        """
        Check that api_key authenticates with provider using a minimal request.

        Independent of the throttle state: never claims the in-flight slot.
        """
        adapter = self._adapter_for(provider)
        if adapter is None:
            return KeyTestOutcome.invalid(f"Unknown provider: {provider!s}")
        if not adapter.requires_api_key:
            return KeyTestOutcome.not_applicable()
        if not (api_key or "").strip():
            return KeyTestOutcome.invalid("API key is empty.")

        endpoint = get_endpoint(adapter.provider.value, self._config)
        http_request = adapter.build_key_test_request(api_key.strip(), endpoint)
        if http_request is None:
            return KeyTestOutcome.not_applicable()

        logger.info("Testing API key provider=%s", adapter.provider.value)
        try:
            response = await self._transport(
                http_request, self._config.key_test_timeout, self._config.debug_api
            )
        except NetworkError as e:
            return KeyTestOutcome.invalid(f"Could not reach {endpoint.label}: {e}")
        outcome = adapter.parse_key_test_response(response)
        logger.info("API key test provider=%s status=%s", adapter.provider.value, outcome.status.value)
        return outcome

    def close(self) -> None:
        """Cancel any pending cooldown timer (the state is left as is)."""
        self._cancel_timer()
