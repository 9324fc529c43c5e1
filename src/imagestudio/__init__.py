"""
imagestudio - bring-your-own-key image generation

Sends a prompt to OpenAI DALL-E 3, Google Gemini Imagen or Z.AI CogView-4
with a user-supplied API key and returns the image or a readable error.

Library usage:
- Create one GenerationController per user session and await
  controller.submit(GenerationRequest(...)). Results are ImageResult or
  ErrorResult; provider failures are never raised.
- The controller gates resubmission with a cooldown. Inside a running event
  loop it ticks itself; otherwise call controller.tick() once per second.
- API keys are passed per request and are never read from the environment,
  stored or logged.
- Logging: set_verbosity(0|1|2) or configure_logging(verbose_level, quiet);
  IMAGESTUDIO_VERBOSITY env (0/1/2) is read when the CLI or UI runs.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("imagestudio")
except PackageNotFoundError:
    # Package is not installed (e.g., running from source in development)
    __version__ = "0.0.0.dev"

from imagestudio.core.config import Config, get_config, set_config
from imagestudio.core.controller import GenerationController
from imagestudio.core.describe import describe_prompt, validate_prompt
from imagestudio.core.models import (
    ErrorKind,
    ErrorResult,
    GenerationRequest,
    GenerationResult,
    ImagePayload,
    ImageResult,
    KeyStatus,
    KeyTestOutcome,
    Provider,
    Quality,
    ThrottleState,
)
from imagestudio.logging_config import configure_logging, set_verbosity
from imagestudio.utils.exceptions import (
    APIError,
    ConfigurationError,
    ImagestudioError,
    NetworkError,
    RequestTimeoutError,
    ValidationError,
)

__all__ = [
    "APIError",
    "Config",
    "ConfigurationError",
    "configure_logging",
    "describe_prompt",
    "ErrorKind",
    "ErrorResult",
    "GenerationController",
    "GenerationRequest",
    "GenerationResult",
    "get_config",
    "ImagePayload",
    "ImageResult",
    "ImagestudioError",
    "KeyStatus",
    "KeyTestOutcome",
    "NetworkError",
    "Provider",
    "Quality",
    "RequestTimeoutError",
    "set_config",
    "set_verbosity",
    "ThrottleState",
    "validate_prompt",
    "ValidationError",
    "__version__",
]
