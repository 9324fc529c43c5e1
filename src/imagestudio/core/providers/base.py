"""
Adapter protocol for image generation providers.

An adapter turns a GenerationRequest into an HttpRequest and classifies the
provider's HTTP response into a GenerationResult plus the cooldown the
controller should start. Adapters do no I/O and hold no state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from imagestudio.core.models import (
    ErrorKind,
    ErrorResult,
    GenerationRequest,
    GenerationResult,
    KeyTestOutcome,
    Provider,
)

if TYPE_CHECKING:
    import requests

    from imagestudio.core.endpoints import ProviderEndpoint
    from imagestudio.core.transport import HttpRequest

# Max characters of a raw response body quoted in a user-facing message
_BODY_EXCERPT_MAX = 200


@dataclass(frozen=True)
class ResponseOutcome:
    """Classified response: the result and the cooldown to start (0 releases the slot)."""

    result: GenerationResult
    cooldown: int = 0


class ProviderAdapter(Protocol):
    """Protocol for provider adapters. One implementation per provider."""

    provider: Provider
    requires_api_key: bool

    def build_request(self, request: GenerationRequest, endpoint: ProviderEndpoint) -> HttpRequest:
        """Build the generation request for this provider's schema."""
        ...

    def parse_response(
        self, response: requests.Response, endpoint: ProviderEndpoint
    ) -> ResponseOutcome:
        """Classify a generation response. Must not raise on malformed payloads."""
        ...

    def build_key_test_request(self, api_key: str, endpoint: ProviderEndpoint) -> HttpRequest | None:
        """Build a minimal request that only checks the key authenticates; None if not applicable."""
        ...

    def parse_key_test_response(self, response: requests.Response) -> KeyTestOutcome:
        """Classify the key test response."""
        ...


def read_json(response: requests.Response) -> Any | None:
    """Return the decoded JSON body, or None when the body is not JSON."""
    try:
        return response.json()
    except ValueError:
        return None


def body_excerpt(response: requests.Response) -> str:
    text = (response.text or "").strip()
    if len(text) > _BODY_EXCERPT_MAX:
        return text[:_BODY_EXCERPT_MAX] + "..."
    return text


def error_object(data: Any) -> dict[str, Any] | None:
    """Return the embedded ``error`` object of a JSON body, if any."""
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        return data["error"]
    return None


def network_failure(response: requests.Response, label: str) -> ResponseOutcome:
    """Unexpected status code or undecodable body: transient, slot released."""
    excerpt = body_excerpt(response)
    if response.status_code >= 500:
        message = f"{label} service error: HTTP {response.status_code}"
    else:
        message = f"{label} request failed with status {response.status_code}"
    if excerpt:
        message = f"{message}: {excerpt}"
    return ResponseOutcome(
        ErrorResult(ErrorKind.NETWORK, message, status_code=response.status_code)
    )


def invalid_json(response: requests.Response, label: str) -> ResponseOutcome:
    return ResponseOutcome(
        ErrorResult(
            ErrorKind.NETWORK,
            f"Failed to parse {label} response as JSON: {body_excerpt(response) or '<empty body>'}",
            status_code=response.status_code,
        )
    )


def rate_limited(message: str, cooldown: int, status_code: int, code: str = "") -> ResponseOutcome:
    return ResponseOutcome(
        ErrorResult(
            ErrorKind.RATE_LIMITED,
            f"{message} Please wait {cooldown} seconds before trying again.",
            status_code=status_code,
            code=code,
        ),
        cooldown=cooldown,
    )
