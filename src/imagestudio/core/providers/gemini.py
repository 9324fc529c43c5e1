"""
Google Gemini Imagen adapter.

POST .../imagen-3.0-generate-001:generateContent with the key as a query
parameter. The image comes back inline: candidates[0].content.parts[*].inlineData.
Errors use the Google RPC shape {error: {code, message, status, details}}.
"""

import random
from typing import Any

import requests

from imagestudio.core.endpoints import ProviderEndpoint
from imagestudio.core.models import (
    ErrorKind,
    ErrorResult,
    GenerationRequest,
    ImagePayload,
    ImageResult,
    KeyTestOutcome,
    Provider,
)
from imagestudio.core.providers.base import (
    ResponseOutcome,
    error_object,
    invalid_json,
    network_failure,
    rate_limited,
    read_json,
)
from imagestudio.core.transport import HttpRequest

LABEL = "Gemini"

_MAX_SEED = 2**31 - 1
_BLOCKED_FINISH_REASONS = frozenset(
    {"SAFETY", "IMAGE_SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII", "RECITATION"}
)


def _error_status(err: dict[str, Any]) -> str:
    return str(err.get("status") or "")


def _dicts(value: Any) -> list[dict[str, Any]]:
    """The dict items of value when it is a list; anything else yields nothing."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _error_reasons(err: dict[str, Any]) -> set[str]:
    """Collect ErrorInfo reasons (e.g. API_KEY_INVALID) from error.details."""
    return {str(detail["reason"]) for detail in _dicts(err.get("details")) if detail.get("reason")}


def _is_daily_quota(err: dict[str, Any]) -> bool:
    """True when a QuotaFailure violation names a per-day quota."""
    for detail in _dicts(err.get("details")):
        for violation in _dicts(detail.get("violations")):
            quota_id = str(violation.get("quotaId") or violation.get("quotaMetric") or "")
            if "PerDay" in quota_id:
                return True
    return False


def _parts(candidate: dict[str, Any]) -> list[dict[str, Any]]:
    content = candidate.get("content")
    return _dicts(content.get("parts")) if isinstance(content, dict) else []


def _find_inline_image(data: dict[str, Any]) -> ImagePayload | None:
    candidates = _dicts(data.get("candidates"))
    if not candidates:
        return None
    for part in _parts(candidates[0]):
        inline = part.get("inlineData")
        if isinstance(inline, dict) and inline.get("data"):
            return ImagePayload(
                data=str(inline["data"]), mime_type=str(inline.get("mimeType") or "image/png")
            )
    return None


def _candidate_text(data: dict[str, Any]) -> str:
    texts = [
        part["text"]
        for candidate in _dicts(data.get("candidates"))
        for part in _parts(candidate)
        if isinstance(part.get("text"), str)
    ]
    return " ".join(t.strip() for t in texts if t.strip())


def _blocked_reason(data: dict[str, Any]) -> str | None:
    feedback = data.get("promptFeedback")
    if isinstance(feedback, dict) and feedback.get("blockReason"):
        return str(feedback["blockReason"])
    for candidate in _dicts(data.get("candidates")):
        reason = candidate.get("finishReason")
        if isinstance(reason, str) and reason in _BLOCKED_FINISH_REASONS:
            return reason
    return None


class GeminiImagenAdapter:
    """Adapter for Gemini Imagen image generation."""

    provider = Provider.GEMINI
    requires_api_key: bool = True

    def build_request(self, request: GenerationRequest, endpoint: ProviderEndpoint) -> HttpRequest:
        seed = endpoint.seed if endpoint.seed is not None else random.randint(0, _MAX_SEED)
        return HttpRequest(
            method="POST",
            url=endpoint.url,
            headers={"Content-Type": "application/json"},
            params={"key": request.api_key},
            json={
                "contents": [{"parts": [{"text": request.prompt}]}],
                "generationConfig": {
                    "responseModalities": ["IMAGE", "TEXT"],
                    "temperature": endpoint.temperature,
                    "seed": seed,
                },
            },
        )

    def parse_response(
        self, response: requests.Response, endpoint: ProviderEndpoint
    ) -> ResponseOutcome:
        status = response.status_code
        data = read_json(response)
        err = error_object(data) or {}
        message = str(err.get("message") or "")

        if status == 429:
            if _is_daily_quota(err):
                return rate_limited(
                    "Gemini daily quota exhausted.", endpoint.quota_cooldown, status, "PerDay"
                )
            return rate_limited(
                "Gemini rate limit exceeded.",
                endpoint.rate_limit_cooldown,
                status,
                _error_status(err),
            )
        if status in (401, 403) or (status == 400 and "API_KEY_INVALID" in _error_reasons(err)):
            return ResponseOutcome(
                ErrorResult(
                    ErrorKind.AUTH_FAILED,
                    f"Gemini rejected the API key: {message or 'check your key.'}",
                    status,
                    _error_status(err),
                )
            )
        if status == 400:
            return ResponseOutcome(
                ErrorResult(
                    ErrorKind.BAD_REQUEST,
                    f"Gemini rejected the request: {message or 'bad request'}",
                    status,
                    _error_status(err),
                )
            )
        if status != 200:
            return network_failure(response, LABEL)
        if not isinstance(data, dict):
            return invalid_json(response, LABEL)

        if err:
            return ResponseOutcome(
                ErrorResult(
                    ErrorKind.PROVIDER_BUSINESS_ERROR,
                    f"Gemini error: {message or _error_status(err)}",
                    status,
                    _error_status(err),
                )
            )

        payload = _find_inline_image(data)
        if payload is not None:
            return ResponseOutcome(
                ImageResult(payload, self.provider), cooldown=endpoint.success_cooldown
            )

        blocked = _blocked_reason(data)
        if blocked is not None:
            return ResponseOutcome(
                ErrorResult(
                    ErrorKind.CONTENT_POLICY,
                    f"Gemini blocked this prompt ({blocked}). Try rephrasing it.",
                    status,
                    blocked,
                )
            )
        text = _candidate_text(data)
        detail = f" Model replied: {text}" if text else ""
        return ResponseOutcome(
            ErrorResult(
                ErrorKind.MALFORMED_RESPONSE,
                f"No image in Gemini response.{detail}",
                status,
            )
        )

    def build_key_test_request(self, api_key: str, endpoint: ProviderEndpoint) -> HttpRequest | None:
        if endpoint.key_test_url is None:
            return None
        return HttpRequest(
            method=endpoint.key_test_method,
            url=endpoint.key_test_url,
            params={"key": api_key, "pageSize": "1"},
        )

    def parse_key_test_response(self, response: requests.Response) -> KeyTestOutcome:
        status = response.status_code
        if status in (200, 429):
            return KeyTestOutcome.valid()
        err = error_object(read_json(response)) or {}
        message = str(err.get("message") or "")
        if status in (400, 401, 403):
            return KeyTestOutcome.invalid(f"Gemini rejected the API key: {message or 'invalid key'}")
        return KeyTestOutcome.invalid(
            f"Could not verify the Gemini key (HTTP {status}): {message or 'unexpected response'}"
        )
