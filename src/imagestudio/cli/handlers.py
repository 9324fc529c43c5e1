"""
Exception to exit-code mapping for the CLI.

Commands wrap their body in run_with_error_handling so that library
exceptions become one line on stderr and a documented exit code.
Provider failures never get here: they come back from the controller as
ErrorResult values and are mapped with cli.utils.exit_code_for.
"""

import sys
from collections.abc import Callable

import click

from imagestudio import (
    APIError,
    ConfigurationError,
    ImagestudioError,
    NetworkError,
    ValidationError,
)
from imagestudio.cli import progress
from imagestudio.cli.utils import (
    EXIT_API_OR_NETWORK,
    EXIT_CANCELLED,
    EXIT_VALIDATION_OR_CONFIG,
)

# First matching entry wins; order subclasses before their bases
_EXIT_TABLE: tuple[tuple[type[BaseException], int, str], ...] = (
    (KeyboardInterrupt, EXIT_CANCELLED, "Cancelled."),
    (ValidationError, EXIT_VALIDATION_OR_CONFIG, "Validation failed."),
    (ConfigurationError, EXIT_VALIDATION_OR_CONFIG, "Invalid configuration."),
    (NetworkError, EXIT_API_OR_NETWORK, "Network error."),
    (APIError, EXIT_API_OR_NETWORK, "Provider API error."),
    (ImagestudioError, EXIT_API_OR_NETWORK, "An error occurred."),
)


def map_exception_to_exit(exc: BaseException) -> tuple[int, str]:
    """Return (exit_code, user_message) for exc."""
    for exc_type, code, fallback in _EXIT_TABLE:
        if isinstance(exc, exc_type):
            if exc_type is KeyboardInterrupt:
                return code, fallback
            message = str(exc.args[0]) if exc.args else fallback
            field = getattr(exc, "field", "")
            if field:
                message = f"{message} (field: {field})"
            return code, message
    return EXIT_API_OR_NETWORK, str(exc) if exc.args else "An unexpected error occurred."


def fail(code: int, msg: str, *, quiet: bool = False) -> None:
    """Report msg on stderr (plain when quiet) and exit with code."""
    if quiet:
        click.echo(msg, err=True)
    elif code == EXIT_CANCELLED:
        progress.print_warning(msg)
    else:
        progress.print_error(msg)
    sys.exit(code)


def run_with_error_handling(
    fn: Callable[[], None],
    *,
    quiet: bool = False,
    debug: bool = False,
) -> None:
    """
    Call fn() and turn any exception into a message and exit code.

    SystemExit raised by fn (explicit exit codes) passes through. With
    debug=True, exceptions outside the imagestudio hierarchy are re-raised
    with their traceback.
    """
    try:
        fn()
    except (KeyboardInterrupt, ImagestudioError) as e:
        fail(*map_exception_to_exit(e), quiet=quiet)
    except Exception as e:
        if debug:
            raise
        fail(*map_exception_to_exit(e), quiet=quiet)


__all__ = [
    "fail",
    "map_exception_to_exit",
    "run_with_error_handling",
]
