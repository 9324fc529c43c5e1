"""
Exit codes and small helpers shared by the CLI commands.
"""

from datetime import datetime

from imagestudio.core.models import ErrorKind

EXIT_SUCCESS = 0
EXIT_API_OR_NETWORK = 1
EXIT_VALIDATION_OR_CONFIG = 2
EXIT_THROTTLED = 3
EXIT_CANCELLED = 130  # 128 + SIGINT

# Kinds not listed (provider business errors, malformed responses, network) exit 1
_ERROR_KIND_EXIT = {
    ErrorKind.THROTTLED: EXIT_THROTTLED,
    ErrorKind.RATE_LIMITED: EXIT_THROTTLED,
    ErrorKind.VALIDATION: EXIT_VALIDATION_OR_CONFIG,
    ErrorKind.AUTH_FAILED: EXIT_VALIDATION_OR_CONFIG,
    ErrorKind.BAD_REQUEST: EXIT_VALIDATION_OR_CONFIG,
    ErrorKind.CONTENT_POLICY: EXIT_VALIDATION_OR_CONFIG,
}


def exit_code_for(kind: ErrorKind) -> int:
    return _ERROR_KIND_EXIT.get(kind, EXIT_API_OR_NETWORK)


def default_output_path(ext: str) -> str:
    """imagestudio_<YYYYMMDD>_<HHMMSS>.<ext> in the working directory (png if ext is empty)."""
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"imagestudio_{stamp}.{ext or 'png'}"
