"""
Prompt description via a Gemini text model.

Asks Gemini to expand a short prompt into a detailed image description. This
is a plain text call: it does not go through the generation controller and
does not touch any throttle state.
"""

from imagestudio.core.config import Config, get_config
from imagestudio.core.endpoints import get_describe_endpoint
from imagestudio.core.providers.base import error_object, read_json
from imagestudio.core.transport import HttpRequest, send
from imagestudio.logging_config import get_logger, log_prompts
from imagestudio.utils.exceptions import APIError, ValidationError

logger = get_logger(__name__)


def validate_prompt(prompt: str) -> None:
    """
    Validate a text prompt.

    Raises:
        ValidationError: If prompt is empty or too short
    """
    if not prompt or not prompt.strip():
        raise ValidationError("Prompt cannot be empty", field="prompt")

    if len(prompt.strip()) < 3:
        raise ValidationError(
            "Prompt is too short. Please provide at least 3 characters.",
            field="prompt",
        )


def describe_prompt(
    prompt: str,
    api_key: str,
    config: Config | None = None,
    timeout: int | None = None,
) -> str:
    """
    Return a detailed image description for prompt.

    Args:
        prompt: Short description of the desired image
        api_key: Gemini API key
        config: Optional config; shared config from get_config() when omitted
        timeout: Optional timeout in seconds (defaults to config.request_timeout)

    Returns:
        The description text

    Raises:
        ValidationError: If prompt or api_key is empty
        APIError: If Gemini returns an error or no text
        NetworkError: If the request could not be made
    """
    validate_prompt(prompt)
    if not api_key or not api_key.strip():
        raise ValidationError("Gemini API key is required.", field="api_key")

    config = config or get_config()
    endpoint = get_describe_endpoint(config)
    request = HttpRequest(
        method="POST",
        url=endpoint.url,
        headers={"Content-Type": "application/json"},
        params={"key": api_key.strip()},
        json={"contents": [{"parts": [{"text": endpoint.template.format(prompt=prompt.strip())}]}]},
    )

    logger.info("Describing prompt via Gemini")
    response = send(request, timeout or config.request_timeout, config.debug_api)
    data = read_json(response)

    if response.status_code != 200:
        err = error_object(data) or {}
        raise APIError(
            f"Gemini request failed with status {response.status_code}: "
            f"{err.get('message') or 'unexpected response'}",
            status_code=response.status_code,
            response=response.text,
        )
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise APIError(
            "Failed to generate image description", response=response.text
        ) from e
    if not isinstance(text, str) or not text.strip():
        raise APIError("Failed to generate image description", response=response.text)

    description = text.strip()
    if log_prompts():
        logger.info("Description: %s", description)
    return description
