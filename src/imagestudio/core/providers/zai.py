"""
Z.AI (Zhipu) CogView-4 adapter.

POST /api/paas/v4/images/generations with bearer auth; success {data:[{url}]}.
Business errors arrive as {error:{code, message}}, sometimes under HTTP 200.
Under a 200 they are content-policy or business errors that release the
slot at once; throttle cooldowns come only from HTTP 429.
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

LABEL = "Z.AI"

AUTH_CODES = {
    "1002": "Invalid Z.AI API key (authorization token is invalid).",
    "1003": "Z.AI API key has expired. Create a new key and try again.",
    "1113": "Z.AI account is in arrears. Top up your balance and try again.",
}
PARAMETER_CODES = {
    "1214": "Invalid request parameter",
}
POLICY_CODES = {
    "1300": "Z.AI blocked the request for content safety reasons.",
    "1301": "Z.AI flagged the prompt as unsafe or sensitive content.",
}
THROTTLE_CODES = {
    "1302": "Z.AI concurrency limit reached.",
    "1303": "Z.AI request frequency too high.",
    "1304": "Z.AI daily call limit reached for this API.",
    "1308": "Z.AI usage limit reached.",
    "1309": "Z.AI package quota has expired.",
}
# Throttle codes that will not clear within a minute
QUOTA_CODES = frozenset({"1304", "1308", "1309"})


def _error_fields(data: Any) -> tuple[str, str]:
    """Return (code, message) from a Z.AI error body; code is normalised to str."""
    err = error_object(data) or {}
    return str(err.get("code") or ""), str(err.get("message") or "")


def _throttled(code: str, endpoint: ProviderEndpoint, status: int) -> ResponseOutcome:
    cooldown = endpoint.quota_cooldown if code in QUOTA_CODES else endpoint.rate_limit_cooldown
    message = THROTTLE_CODES.get(code, "Z.AI rate limit exceeded.")
    return rate_limited(message, cooldown, status, code)


def _auth_failed(code: str, message: str, status: int) -> ResponseOutcome:
    text = AUTH_CODES.get(code) or f"Z.AI authentication failed: {message or 'check your API key.'}"
    return ResponseOutcome(ErrorResult(ErrorKind.AUTH_FAILED, text, status, code))


def _content_policy(code: str, message: str, status: int) -> ResponseOutcome:
    text = POLICY_CODES[code]
    if message:
        text = f"{text} ({message})"
    return ResponseOutcome(ErrorResult(ErrorKind.CONTENT_POLICY, text, status, code))


class ZaiCogViewAdapter:
    """Adapter for Z.AI CogView-4 image generation."""

    provider = Provider.ZAI
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
            return _throttled(code, endpoint, status)
        if status == 401:
            return _auth_failed(code, message, status)
        if status == 400:
            if code in POLICY_CODES:
                return _content_policy(code, message, status)
            prefix = PARAMETER_CODES.get(code, "Z.AI rejected the request")
            return ResponseOutcome(
                ErrorResult(
                    ErrorKind.BAD_REQUEST, f"{prefix}: {message or 'bad request'}", status, code
                )
            )
        if status != 200:
            return network_failure(response, LABEL)
        if data is None:
            return invalid_json(response, LABEL)

        # Embedded errors release the slot; only HTTP 429 starts a throttle cooldown
        if error_object(data) is not None:
            if code in POLICY_CODES:
                return _content_policy(code, message, status)
            decoded = AUTH_CODES.get(code) or PARAMETER_CODES.get(code) or THROTTLE_CODES.get(code)
            text = decoded or f"Z.AI error {code}".strip()
            if message:
                text = f"{text}: {message}"
            return ResponseOutcome(
                ErrorResult(ErrorKind.PROVIDER_BUSINESS_ERROR, text, status, code)
            )

        items = data.get("data") if isinstance(data, dict) else None
        first = items[0] if isinstance(items, list) and items else None
        if isinstance(first, dict) and isinstance(first.get("url"), str) and first["url"]:
            return ResponseOutcome(
                ImageResult(ImagePayload(url=first["url"]), self.provider),
                cooldown=endpoint.success_cooldown,
            )
        return ResponseOutcome(
            ErrorResult(ErrorKind.MALFORMED_RESPONSE, "No image in Z.AI response.", status)
        )

    def build_key_test_request(self, api_key: str, endpoint: ProviderEndpoint) -> HttpRequest | None:
        if endpoint.key_test_url is None:
            return None
        return HttpRequest(
            method=endpoint.key_test_method,
            url=endpoint.key_test_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            json={
                "model": endpoint.key_test_model or "glm-4-flash",
                "messages": [{"role": "user", "content": "ping"}],
                "max_tokens": 1,
            },
        )

    def parse_key_test_response(self, response: requests.Response) -> KeyTestOutcome:
        status = response.status_code
        code, message = _error_fields(read_json(response))
        if code in AUTH_CODES or status == 401:
            return KeyTestOutcome.invalid(
                AUTH_CODES.get(code) or f"Z.AI rejected the API key: {message or 'invalid key'}"
            )
        # Throttled keys have still authenticated
        if status == 429 or code in THROTTLE_CODES:
            return KeyTestOutcome.valid()
        if status == 200 and not code:
            return KeyTestOutcome.valid()
        return KeyTestOutcome.invalid(
            f"Could not verify the Z.AI key (HTTP {status}): {message or code or 'unexpected response'}"
        )
