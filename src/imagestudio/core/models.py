"""
Data model shared by the controller, provider adapters and front ends.

GenerationResult is a tagged union: ImageResult on success, ErrorResult for
every failure. Results are produced once per request and never persisted.
"""

from __future__ import annotations

import base64
import binascii
import io
from dataclasses import dataclass, field
from enum import Enum

from PIL import Image

from imagestudio.utils.exceptions import ValidationError


class Provider(str, Enum):
    """Supported image generation services."""

    OPENAI = "openai"
    GEMINI = "gemini"
    ZAI = "zai"


class Quality(str, Enum):
    STANDARD = "standard"
    HD = "hd"


class ErrorKind(str, Enum):
    """Failure categories surfaced to the user."""

    THROTTLED = "throttled"
    VALIDATION = "validation"
    RATE_LIMITED = "rate_limited"
    AUTH_FAILED = "auth_failed"
    BAD_REQUEST = "bad_request"
    CONTENT_POLICY = "content_policy"
    PROVIDER_BUSINESS_ERROR = "provider_business_error"
    MALFORMED_RESPONSE = "malformed_response"
    NETWORK = "network"


@dataclass(frozen=True)
class GenerationRequest:
    """One user submission. The API key is kept out of repr."""

    prompt: str
    api_key: str = field(repr=False)
    provider: Provider = Provider.OPENAI
    quality: Quality = Quality.STANDARD


_MIME_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
}


@dataclass(frozen=True)
class ImagePayload:
    """Either a fetchable URL or inline base64 image data with its MIME type."""

    url: str | None = None
    data: str | None = field(default=None, repr=False)
    mime_type: str = "image/png"

    def __post_init__(self) -> None:
        if (self.url is None) == (self.data is None):
            raise ValidationError("ImagePayload needs exactly one of url or data", field="payload")

    @property
    def is_inline(self) -> bool:
        return self.data is not None

    @property
    def file_extension(self) -> str:
        """File extension for the MIME type (png when unknown)."""
        return _MIME_EXTENSIONS.get(self.mime_type.lower(), "png")

    def as_bytes(self) -> bytes:
        """
        Decode inline image data.

        Raises:
            ValidationError: If the payload is a URL or the data is not valid base64
        """
        if self.data is None:
            raise ValidationError("URL payloads carry no inline bytes", field="payload")
        try:
            return base64.b64decode(self.data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError(f"Invalid base64 image data: {e}", field="payload") from e

    def to_pil(self) -> Image.Image:
        """Open inline image data with Pillow (for display)."""
        return Image.open(io.BytesIO(self.as_bytes())).copy()

    def display_value(self) -> str | Image.Image:
        """Value suitable for an image widget: the URL, or a decoded PIL image."""
        if self.url is not None:
            return self.url
        return self.to_pil()


@dataclass(frozen=True)
class ImageResult:
    payload: ImagePayload
    provider: Provider
    generation_time: float = 0.0

    ok = True


@dataclass(frozen=True)
class ErrorResult:
    kind: ErrorKind
    message: str
    status_code: int = 0
    code: str = ""

    ok = False


GenerationResult = ImageResult | ErrorResult


@dataclass
class ThrottleState:
    """
    Request gate owned by a single controller.

    Invariant: cooldown_remaining > 0 implies can_request is False.
    """

    can_request: bool = True
    cooldown_remaining: int = 0

    def snapshot(self) -> ThrottleState:
        return ThrottleState(self.can_request, self.cooldown_remaining)


class KeyStatus(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    NOT_APPLICABLE = "not_applicable"


@dataclass(frozen=True)
class KeyTestOutcome:
    """Result of test_api_key; message is empty unless the key was rejected."""

    status: KeyStatus
    message: str = ""

    @classmethod
    def valid(cls) -> KeyTestOutcome:
        return cls(KeyStatus.VALID)

    @classmethod
    def invalid(cls, message: str) -> KeyTestOutcome:
        return cls(KeyStatus.INVALID, message)

    @classmethod
    def not_applicable(cls) -> KeyTestOutcome:
        return cls(KeyStatus.NOT_APPLICABLE)
