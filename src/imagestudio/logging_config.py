"""
Logging for imagestudio.

Nothing is configured at import time: library users who never call
set_verbosity or configure_logging only see what their own logging setup
lets through. The CLI and the UI configure it on startup from their flags or
IMAGESTUDIO_VERBOSITY (0/1/2).

Verbosity:
    0  INFO, dispatch outcomes and cooldowns
    1  INFO, plus prompt text
    2  DEBUG, plus HTTP method/URL/status and (with debug_api) bodies

API keys must never reach a log line. Gemini puts the key in the URL query,
so URLs go through redact_url before logging, and the handler installed here
also scrubs ``key=`` parameters and bearer tokens from every record it emits.
"""

import logging
import os
import re

LOG_FORMAT = "%(levelname)s [%(name)s] %(message)s"
ROOT_LOGGER_NAME = "imagestudio"

# verbosity -> (level, log prompt text)
_VERBOSITY_LEVELS = {
    0: (logging.INFO, False),
    1: (logging.INFO, True),
    2: (logging.DEBUG, True),
}

_KEY_PARAM_RE = re.compile(r"([?&]key=)[^&\s]+")
_BEARER_RE = re.compile(r"(Bearer\s+)[^\s'\"]+")

_log_prompts: bool = False
_handler: logging.Handler | None = None


def redact_url(url: str) -> str:
    """Replace the value of a ``key`` query parameter with asterisks."""
    return _KEY_PARAM_RE.sub(r"\1***", url)


def redact(text: str) -> str:
    """Scrub key query parameters and bearer tokens from free text."""
    return _BEARER_RE.sub(r"\1***", redact_url(text))


class KeyRedactingFilter(logging.Filter):
    """Rewrites each record's message with credentials scrubbed."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        scrubbed = redact(message)
        if scrubbed != message:
            record.msg = scrubbed
            record.args = ()
        return True


def _root() -> logging.Logger:
    return logging.getLogger(ROOT_LOGGER_NAME)


def _ensure_handler() -> None:
    global _handler
    if _handler is not None:
        return
    root = _root()
    if root.handlers:
        _handler = root.handlers[0]
    else:
        _handler = logging.StreamHandler()
        _handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(_handler)
    _handler.addFilter(KeyRedactingFilter())


def set_verbosity(level: int) -> None:
    """Apply verbosity 0, 1 or 2 (values outside the range are clamped)."""
    global _log_prompts
    _ensure_handler()
    log_level, _log_prompts = _VERBOSITY_LEVELS[max(0, min(level, 2))]
    _root().setLevel(log_level)


def log_prompts() -> bool:
    """True when prompt text may be logged (verbosity 1 or 2)."""
    return _log_prompts


def configure_logging(verbose_level: int = 0, quiet: bool = False) -> None:
    """Configure from CLI flags; quiet means warnings and errors only."""
    global _log_prompts
    if not quiet:
        set_verbosity(verbose_level)
        return
    _ensure_handler()
    _root().setLevel(logging.WARNING)
    _log_prompts = False


def get_verbosity_from_env() -> int:
    """IMAGESTUDIO_VERBOSITY as 0, 1 or 2; anything else is 0."""
    raw = os.environ.get("IMAGESTUDIO_VERBOSITY", "0").strip()
    return int(raw) if raw in ("1", "2") else 0


def get_logger(name: str) -> logging.Logger:
    """Child logger under imagestudio; module names are used as-is."""
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


__all__ = [
    "KeyRedactingFilter",
    "configure_logging",
    "get_logger",
    "get_verbosity_from_env",
    "log_prompts",
    "redact",
    "redact_url",
    "set_verbosity",
]
