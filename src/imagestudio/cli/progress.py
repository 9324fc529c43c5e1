"""
Rich output for the CLI.

Everything here prints to stderr so stdout carries only the machine-readable
result (image URL, saved path, key status or description). Provider messages
are escaped before printing because they can contain square brackets.
"""

from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from imagestudio.core.models import ErrorKind, ErrorResult, ImageResult, KeyStatus, KeyTestOutcome

console = Console(stderr=True)

# (icon, colour) per message kind
_MARKS = {
    "info": ("ℹ", "cyan"),
    "warning": ("⚠", "yellow"),
    "error": ("✗", "red"),
    "success": ("✓", "green"),
}

# Result kinds the user is expected to wait out rather than fix
_WAIT_KINDS = (ErrorKind.THROTTLED, ErrorKind.RATE_LIMITED)


@contextmanager
def spinner(description: str, style: str = "green") -> Iterator[None]:
    """Transient spinner with elapsed time; description may use rich markup."""
    display = Progress(
        SpinnerColumn(spinner_name="dots"),
        TextColumn(f"[{style}]{{task.description}}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )
    with display:
        display.add_task(description, total=None)
        yield


def generation_progress(provider: str, quality: str) -> AbstractContextManager[None]:
    """Spinner covering the pre-request delay and the provider call."""
    return spinner(f"Generating image [dim]({escape(provider)}, {escape(quality)})[/dim]")


def _mark(kind: str, message: str) -> None:
    icon, colour = _MARKS[kind]
    console.print(f"[{colour}]{icon}[/{colour}] {escape(message)}")


def print_info(message: str) -> None:
    _mark("info", message)


def print_warning(message: str) -> None:
    _mark("warning", message)


def print_error(message: str) -> None:
    _mark("error", message)


def print_success(message: str) -> None:
    _mark("success", message)


def print_image_result(result: ImageResult, saved_to: str | None = None) -> None:
    """Summary panel for a generated image."""
    details = Table.grid(padding=(0, 2))
    details.add_column(style="cyan", justify="right", vertical="top")
    details.add_column(style="white")
    if saved_to:
        details.add_row("Saved to", f"[bold green]{escape(saved_to)}[/bold green]")
    if result.payload.url:
        details.add_row("URL", escape(result.payload.url))
    else:
        details.add_row("Format", result.payload.mime_type)
    details.add_row("Provider", result.provider.value)
    details.add_row("Time", f"{result.generation_time:.1f}s")

    console.print()
    console.print(
        Panel(details, title="[bold green]✓ Image ready[/bold green]", border_style="green", padding=(1, 2))
    )


def print_error_result(result: ErrorResult) -> None:
    """One line naming the failure kind, in yellow for waits and red otherwise."""
    label = result.kind.value.replace("_", " ")
    colour = "yellow" if result.kind in _WAIT_KINDS else "red"
    console.print(f"[{colour}]{label}[/{colour}]: {escape(result.message)}")


def print_key_test(outcome: KeyTestOutcome, provider: str) -> None:
    if outcome.status is KeyStatus.VALID:
        print_success(f"API key is valid for {provider}.")
    elif outcome.status is KeyStatus.NOT_APPLICABLE:
        print_info(f"{provider} does not use an API key.")
    else:
        print_error(outcome.message or f"API key is not valid for {provider}.")
