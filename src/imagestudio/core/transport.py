"""
HTTP transport for provider requests.

Adapters describe a request as an HttpRequest; this module performs it with
requests and maps requests exceptions to NetworkError / RequestTimeoutError.
send_async runs the blocking call in a worker thread so the event loop keeps
serving other UI events while a request is in flight.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

import requests

from imagestudio.logging_config import get_logger, redact_url
from imagestudio.utils.exceptions import NetworkError, RequestTimeoutError

logger = get_logger(__name__)

_DEBUG_TRUNCATE_THRESHOLD = 200


@dataclass(frozen=True)
class HttpRequest:
    """A provider request: method, URL, headers, query params and JSON body."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict, repr=False)
    params: dict[str, str] = field(default_factory=dict, repr=False)
    json: dict[str, Any] | None = None


def _truncate_for_log(text: str) -> str:
    if len(text) < _DEBUG_TRUNCATE_THRESHOLD:
        return text
    return f"{text[:_DEBUG_TRUNCATE_THRESHOLD]}... <{len(text)} chars>"


def send(request: HttpRequest, timeout: float, debug_api: bool = False) -> requests.Response:
    """
    Perform request and return the response, whatever its status code.

    Raises:
        RequestTimeoutError: If the request timed out
        NetworkError: On connection failures and other requests exceptions
    """
    safe_url = redact_url(request.url)
    logger.debug("HTTP %s %s timeout=%s", request.method, safe_url, timeout)
    if debug_api and request.json is not None:
        logger.debug("HTTP request body: %s", request.json)

    start_time = time.time()
    try:
        response = requests.request(
            request.method,
            request.url,
            headers=request.headers,
            params=request.params or None,
            json=request.json,
            timeout=timeout,
        )
    except requests.exceptions.Timeout as e:
        raise RequestTimeoutError(
            f"Request timed out after {timeout} seconds.", original_error=e
        ) from e
    except requests.exceptions.ConnectionError as e:
        raise NetworkError(
            f"Failed to connect to {safe_url}. Please check your internet connection. ({e})",
            original_error=e,
        ) from e
    except requests.exceptions.RequestException as e:
        raise NetworkError(f"Network error during API request: {e}", original_error=e) from e

    elapsed = time.time() - start_time
    logger.debug(
        "HTTP response status=%s content_type=%s time=%.2fs",
        response.status_code,
        response.headers.get("content-type", ""),
        elapsed,
    )
    if debug_api:
        logger.debug("HTTP response body: %s", _truncate_for_log(response.text))
    return response


async def send_async(
    request: HttpRequest, timeout: float, debug_api: bool = False
) -> requests.Response:
    """Run send() in a worker thread and await the response."""
    return await asyncio.to_thread(send, request, timeout, debug_api)
