"""
Exceptions raised inside imagestudio.

Provider outcomes (rate limits, rejected keys, policy blocks) are not
exceptions: the controller returns them as ErrorResult values. What is
raised here is bad input, bad configuration, transport failure, and the
errors of the plain describe_prompt call.
"""


class ImagestudioError(Exception):
    """Base class; the CLI maps every subclass to an exit code."""


class ValidationError(ImagestudioError):
    """Input rejected before any request was made. ``field`` names the input."""

    def __init__(self, message: str, *, field: str = "") -> None:
        super().__init__(message)
        self.field = field


class APIError(ImagestudioError):
    """A provider answered, but not with what the caller needed."""

    def __init__(self, message: str, *, status_code: int = 0, response: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        # Raw body, for debugging; may be long
        self.response = response


class NetworkError(ImagestudioError):
    """No usable HTTP response (DNS, connect, TLS, reset)."""

    def __init__(self, message: str, *, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.original_error = original_error


class RequestTimeoutError(NetworkError):
    """The request exceeded its timeout."""


class ConfigurationError(ImagestudioError):
    """Invalid environment settings or a broken bundled endpoints.yaml."""
