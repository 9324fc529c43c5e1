"""
Process configuration for imagestudio.

Settings come from IMAGESTUDIO_* environment variables, optionally via a
.env file in the working directory. They cover the default provider and
quality, endpoint base URL overrides (proxies, test servers) and timeouts.

API keys are deliberately not configuration: the user supplies one per
request and it lives only in memory for that request.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from imagestudio.logging_config import get_logger
from imagestudio.utils.exceptions import ConfigurationError

logger = get_logger(__name__)

load_dotenv()

DEFAULT_PROVIDER = "openai"
DEFAULT_QUALITY = "standard"
DEFAULT_REQUEST_TIMEOUT = 120
DEFAULT_KEY_TEST_TIMEOUT = 30

# Duplicated from core.providers, which imports this module
KNOWN_PROVIDERS = ("openai", "gemini", "zai")
KNOWN_QUALITIES = ("standard", "hd")

_TRUTHY = ("1", "true", "yes")


def _env_str(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _env_int(name: str, default: int) -> int:
    raw = _env_str(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}.") from e


@dataclass
class Config:
    """Runtime settings shared by the controller, CLI and UI."""

    default_provider: str = DEFAULT_PROVIDER
    default_quality: str = DEFAULT_QUALITY

    # Empty means the base URL from endpoints.yaml
    openai_base_url: str = ""
    gemini_base_url: str = ""
    zai_base_url: str = ""

    # Seconds
    request_timeout: int = DEFAULT_REQUEST_TIMEOUT
    key_test_timeout: int = DEFAULT_KEY_TEST_TIMEOUT

    # Log request bodies and truncated responses at DEBUG
    debug_api: bool = False

    @classmethod
    def from_env(cls) -> "Config":
        """
        Build a Config from the environment.

        Reads IMAGESTUDIO_DEFAULT_PROVIDER, IMAGESTUDIO_DEFAULT_QUALITY,
        IMAGESTUDIO_REQUEST_TIMEOUT, IMAGESTUDIO_KEY_TEST_TIMEOUT,
        IMAGESTUDIO_<PROVIDER>_BASE_URL for each known provider, and
        IMAGESTUDIO_DEBUG_API (1/true/yes).

        Raises:
            ConfigurationError: If a timeout is not an integer
        """
        base_urls = {
            f"{provider_id}_base_url": _env_str(f"IMAGESTUDIO_{provider_id.upper()}_BASE_URL")
            for provider_id in KNOWN_PROVIDERS
        }
        return cls(
            default_provider=_env_str("IMAGESTUDIO_DEFAULT_PROVIDER", DEFAULT_PROVIDER).lower(),
            default_quality=_env_str("IMAGESTUDIO_DEFAULT_QUALITY", DEFAULT_QUALITY).lower(),
            request_timeout=_env_int("IMAGESTUDIO_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
            key_test_timeout=_env_int("IMAGESTUDIO_KEY_TEST_TIMEOUT", DEFAULT_KEY_TEST_TIMEOUT),
            debug_api=_env_str("IMAGESTUDIO_DEBUG_API").lower() in _TRUTHY,
            **base_urls,
        )

    def validate(self) -> None:
        """
        Check values that from_env cannot check while parsing.

        Raises:
            ConfigurationError: On an unknown provider or quality, a
                non-positive timeout, or a base URL that is not http(s)
        """
        logger.debug("Validating config provider=%s quality=%s", self.default_provider, self.default_quality)
        _require_choice("default_provider", self.default_provider, KNOWN_PROVIDERS)
        _require_choice("default_quality", self.default_quality, KNOWN_QUALITIES)
        for name in ("request_timeout", "key_test_timeout"):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value}.")
        for provider_id in KNOWN_PROVIDERS:
            url = self.base_url_override(provider_id)
            if url and not url.startswith(("http://", "https://")):
                raise ConfigurationError(
                    f"{provider_id}_base_url must be an http(s) URL, got {url!r}."
                )

    def base_url_override(self, provider_id: str) -> str:
        """Configured base URL for provider_id, or "" to use endpoints.yaml."""
        return str(getattr(self, f"{provider_id}_base_url", "") or "")


def _require_choice(name: str, value: str, allowed: tuple[str, ...]) -> None:
    if value not in allowed:
        raise ConfigurationError(
            f"Unknown {name}: {value!r}. Must be one of: {', '.join(allowed)}."
        )


_global_config: Config | None = None


def get_config() -> Config:
    """Process-wide Config, read from the environment on first use."""
    global _global_config
    if _global_config is None:
        _global_config = Config.from_env()
    return _global_config


def set_config(config: Config) -> None:
    """Replace the process-wide Config (tests, embedding applications)."""
    global _global_config
    _global_config = config
