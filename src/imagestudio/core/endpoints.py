"""
Load provider endpoint configuration from the bundled endpoints.yaml file.

Endpoints are parsed and validated once per process and are read-only
afterwards. Config base URL overrides are applied on a copy.
"""

import importlib.resources
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from imagestudio.core.config import Config
from imagestudio.utils.exceptions import ConfigurationError

# Module-level cache for parsed endpoints
_endpoints_data: "EndpointsSchema | None" = None


class ProviderEndpoint(BaseModel):
    """Static configuration for one provider."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(..., min_length=1)
    base_url: str = Field(..., pattern=r"^https?://")
    path: str = Field(..., pattern=r"^/")
    model: str = Field(..., min_length=1)
    auth: Literal["bearer", "query", "none"] = "bearer"
    size: str = "1024x1024"
    pre_request_delay: float = Field(default=2, ge=0)
    success_cooldown: int = Field(default=10, ge=0)
    rate_limit_cooldown: int = Field(default=60, ge=1)
    quota_cooldown: int = Field(default=3600, ge=1)
    temperature: float = Field(default=1.0, ge=0, le=2)
    seed: int | None = None
    key_test_path: str | None = None
    key_test_method: Literal["GET", "POST"] = "GET"
    key_test_model: str | None = None

    @property
    def url(self) -> str:
        return self.base_url.rstrip("/") + self.path

    @property
    def key_test_url(self) -> str | None:
        if self.key_test_path is None:
            return None
        return self.base_url.rstrip("/") + self.key_test_path


class DescribeSchema(BaseModel):
    """Gemini text endpoint used to expand a prompt into an image description."""

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(..., pattern=r"^https?://")
    path: str = Field(..., pattern=r"^/")
    template: str = Field(..., min_length=1)

    @property
    def url(self) -> str:
        return self.base_url.rstrip("/") + self.path


class EndpointsSchema(BaseModel):
    """Schema for endpoints.yaml."""

    model_config = ConfigDict(frozen=True)

    providers: dict[str, ProviderEndpoint]
    describe: DescribeSchema


def _load_endpoints() -> EndpointsSchema:
    """Load and validate endpoints.yaml from the package. Cached after first call.

    Raises:
        ConfigurationError: If the YAML is missing, malformed, or fails validation.
    """
    global _endpoints_data
    if _endpoints_data is not None:
        return _endpoints_data

    try:
        with (
            importlib.resources.files("imagestudio")
            .joinpath("endpoints.yaml")
            .open(encoding="utf-8") as f
        ):
            raw = f.read()
    except FileNotFoundError as e:
        raise ConfigurationError(
            "endpoints.yaml not found. This file is required and should be bundled with the package."
        ) from e

    try:
        data: Any = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse endpoints.yaml: {e}") from e

    if not data:
        raise ConfigurationError("endpoints.yaml is empty. Expected 'providers' and 'describe'.")

    try:
        parsed = EndpointsSchema(**data)
    except PydanticValidationError as e:
        errors = "\n".join(
            f"  - {'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"Invalid endpoints.yaml structure:\n{errors}") from e

    _endpoints_data = parsed
    return _endpoints_data


def get_endpoint(provider_id: str, config: Config | None = None) -> ProviderEndpoint:
    """
    Return the endpoint for provider_id, with any Config base URL override applied.

    Raises:
        ConfigurationError: If provider_id has no entry in endpoints.yaml.
    """
    endpoints = _load_endpoints().providers
    endpoint = endpoints.get(provider_id)
    if endpoint is None:
        raise ConfigurationError(
            f"No endpoint configured for provider {provider_id!r}. "
            f"Known: {', '.join(sorted(endpoints))}."
        )
    override = config.base_url_override(provider_id) if config is not None else ""
    if override:
        return endpoint.model_copy(update={"base_url": override})
    return endpoint


def get_describe_endpoint(config: Config | None = None) -> DescribeSchema:
    """Return the prompt-description endpoint (shares the Gemini base URL override)."""
    describe = _load_endpoints().describe
    override = config.base_url_override("gemini") if config is not None else ""
    if override:
        return describe.model_copy(update={"base_url": override})
    return describe
