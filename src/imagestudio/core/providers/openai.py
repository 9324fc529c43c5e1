"""
OpenAI DALL-E 3 adapter.

POST /v1/images/generations with bearer auth; success carries data[0].url
(or data[0].b64_json when a base64 response format is requested).
"""

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

LABEL = "OpenAI"

# error.code values that mean the account, not the request rate, is exhausted
_QUOTA_CODES = frozenset({"insufficient_quota", "billing_hard_limit_reached"})
_CONTENT_POLICY_CODES = frozenset({"content_policy_violation"})


def _error_fields(data: Any) -> tuple[str, str]:
    """Return (code, message) from an OpenAI error body."""
    err = error_object(data) or {}
    code = str(err.get("code") or err.get("type") or "")
    message = str(err.get("message") or "")
    return code, message


def _auth_message(code: str, message: str) -> str:
    if code == "invalid_api_key":
        return "Invalid OpenAI API key. Check the key and try again."
    if code == "invalid_organization":
        return "The API key is not associated with a valid OpenAI organization."
    return f"OpenAI authentication failed: {message or 'check your API key.'}"


class OpenAIAdapter:
    """Adapter for the OpenAI image generation API."""

    provider = Provider.OPENAI
    requires_api_key: bool = True

    def build_request(self, request: GenerationRequest, endpoint: ProviderEndpoint) -> HttpRequest:
        return HttpRequest(
            method="POST",
            url=endpoint.url,
            headers={
                "Authorization": f"Bearer {request.api_key}",
                "Content-Type": "application/json",
            },
            json={
                "model": endpoint.model,
                "prompt": request.prompt,
                "n": 1,
                "size": endpoint.size,
                "quality": request.quality.value,
            },
        )

    def parse_response(
        self, response: requests.Response, endpoint: ProviderEndpoint
    ) -> ResponseOutcome:
        status = response.status_code
        data = read_json(response)
        code, message = _error_fields(data)

        if status == 429:
            if code in _QUOTA_CODES:
                return rate_limited(
                    "OpenAI quota exhausted for this key.", endpoint.quota_cooldown, status, code
                )
            return rate_limited(
                "OpenAI rate limit exceeded.", endpoint.rate_limit_cooldown, status, code
            )
        if status == 401:
            return ResponseOutcome(
                ErrorResult(ErrorKind.AUTH_FAILED, _auth_message(code, message), status, code)
            )
        if status == 400:
            if code in _CONTENT_POLICY_CODES:
                return ResponseOutcome(
                    ErrorResult(
                        ErrorKind.CONTENT_POLICY,
                        f"Prompt rejected by OpenAI's content policy: {message}",
                        status,
                        code,
                    )
                )
            return ResponseOutcome(
                ErrorResult(
                    ErrorKind.BAD_REQUEST,
                    f"OpenAI rejected the request: {message or 'bad request'}",
                    status,
                    code,
                )
            )
        if status != 200:
            return network_failure(response, LABEL)
        if data is None:
            return invalid_json(response, LABEL)

        if error_object(data) is not None:
            kind = (
                ErrorKind.CONTENT_POLICY
                if code in _CONTENT_POLICY_CODES
                else ErrorKind.PROVIDER_BUSINESS_ERROR
            )
            return ResponseOutcome(
                ErrorResult(kind, f"OpenAI error: {message or code}", status, code)
            )

        items = data.get("data") if isinstance(data, dict) else None
        first = items[0] if isinstance(items, list) and items else None
        if isinstance(first, dict):
            if isinstance(first.get("url"), str) and first["url"]:
                payload = ImagePayload(url=first["url"])
                return ResponseOutcome(
                    ImageResult(payload, self.provider), cooldown=endpoint.success_cooldown
                )
            if isinstance(first.get("b64_json"), str) and first["b64_json"]:
                payload = ImagePayload(data=first["b64_json"], mime_type="image/png")
                return ResponseOutcome(
                    ImageResult(payload, self.provider), cooldown=endpoint.success_cooldown
                )
        return ResponseOutcome(
            ErrorResult(
                ErrorKind.MALFORMED_RESPONSE,
                "No image in OpenAI response.",
                status,
            )
        )

    def build_key_test_request(self, api_key: str, endpoint: ProviderEndpoint) -> HttpRequest | None:
        if endpoint.key_test_url is None:
            return None
        return HttpRequest(
            method=endpoint.key_test_method,
            url=endpoint.key_test_url,
            headers={"Authorization": f"Bearer {api_key}"},
        )

    def parse_key_test_response(self, response: requests.Response) -> KeyTestOutcome:
        status = response.status_code
        # A rate-limited key has still authenticated
        if status in (200, 429):
            return KeyTestOutcome.valid()
        code, message = _error_fields(read_json(response))
        if status in (401, 403):
            return KeyTestOutcome.invalid(_auth_message(code, message))
        return KeyTestOutcome.invalid(
            f"Could not verify the OpenAI key (HTTP {status}): {message or 'unexpected response'}"
        )
