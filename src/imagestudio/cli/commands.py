"""
The imagestudio command group: generate, test-key, describe, providers, ui.

API keys are taken from --api-key or a hidden prompt, never from the
environment.
"""

import asyncio
from pathlib import Path

import click
from rich.table import Table

from imagestudio import (
    Config,
    ErrorResult,
    GenerationController,
    GenerationRequest,
    KeyStatus,
    Provider,
    Quality,
    __version__,
    describe_prompt,
)
from imagestudio.cli import progress
from imagestudio.cli.handlers import run_with_error_handling
from imagestudio.cli.utils import (
    EXIT_VALIDATION_OR_CONFIG,
    default_output_path,
    exit_code_for,
)
from imagestudio.core.endpoints import get_endpoint
from imagestudio.core.providers import KNOWN_PROVIDERS, get_registry
from imagestudio.logging_config import configure_logging, get_verbosity_from_env

_provider_option = click.option(
    "--provider",
    type=click.Choice(list(KNOWN_PROVIDERS), case_sensitive=False),
    default=None,
    help="Image provider (default from IMAGESTUDIO_DEFAULT_PROVIDER or openai).",
)
_api_key_option = click.option(
    "--api-key",
    prompt="API key",
    hide_input=True,
    help="Provider API key. Prompted for (hidden) when omitted.",
)
_quiet_option = click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Minimize progress messages; only print the result or errors.",
)
_verbose_option = click.option(
    "--verbose",
    "-v",
    "verbose_count",
    count=True,
    help="Increase verbosity: -v also show prompts, -vv show request detail.",
)


def _apply_logging(verbose_count: int, quiet: bool) -> None:
    # CLI flags override IMAGESTUDIO_VERBOSITY
    verbose_level = min(verbose_count, 2) if verbose_count > 0 else get_verbosity_from_env()
    configure_logging(verbose_level=verbose_level, quiet=quiet)


@click.group(
    help=f"""Generate images with OpenAI DALL-E 3, Gemini Imagen or Z.AI CogView-4
using your own API key.

\b
Version: {__version__}
"""
)
@click.version_option(version=__version__, package_name="imagestudio")
@click.pass_context
def cli(ctx: click.Context) -> None:
    ctx.color = True


@cli.command()
@click.option("--prompt", "-p", required=True, help="Text description of the image to generate.")
@_provider_option
@click.option(
    "--quality",
    type=click.Choice([q.value for q in Quality], case_sensitive=False),
    default=None,
    help="Image quality (default from IMAGESTUDIO_DEFAULT_QUALITY or standard).",
)
@_api_key_option
@click.option(
    "--out",
    "-o",
    type=click.Path(path_type=Path),
    help="Output file for inline images (URL results are printed instead).",
)
@_quiet_option
@_verbose_option
@click.option(
    "--debug-api",
    is_flag=True,
    help="Log request bodies and truncated responses; show tracebacks for unexpected errors.",
)
def generate(
    prompt: str,
    provider: str | None,
    quality: str | None,
    api_key: str,
    out: Path | None,
    quiet: bool,
    verbose_count: int,
    debug_api: bool,
) -> None:
    """Generate one image from a text prompt."""
    _apply_logging(verbose_count, quiet)

    def do_generate() -> None:
        config = Config.from_env()
        config.validate()
        if debug_api:
            config.debug_api = True

        request = GenerationRequest(
            prompt=prompt,
            api_key=api_key,
            provider=Provider((provider or config.default_provider).lower()),
            quality=Quality((quality or config.default_quality).lower()),
        )
        controller = GenerationController(config=config)

        if quiet:
            result = asyncio.run(controller.submit(request))
        else:
            with progress.generation_progress(request.provider.value, request.quality.value):
                result = asyncio.run(controller.submit(request))
        controller.close()

        if isinstance(result, ErrorResult):
            if quiet:
                click.echo(result.message, err=True)
            else:
                progress.print_error_result(result)
            raise SystemExit(exit_code_for(result.kind))

        payload = result.payload
        if payload.url is not None:
            if out is not None and not quiet:
                progress.print_warning(f"{request.provider.value} returned a URL; --out ignored.")
            if not quiet:
                progress.print_image_result(result)
            click.echo(payload.url)
            return

        out_path = out if out is not None else Path(default_output_path(payload.file_extension))
        out_path.write_bytes(payload.as_bytes())
        if not quiet:
            progress.print_image_result(result, saved_to=str(out_path))
        click.echo(str(out_path))

    run_with_error_handling(do_generate, quiet=quiet, debug=debug_api)


@cli.command("test-key")
@_provider_option
@_api_key_option
@_quiet_option
def test_key(provider: str | None, api_key: str, quiet: bool) -> None:
    """Check that an API key authenticates, without generating an image."""
    configure_logging(verbose_level=get_verbosity_from_env(), quiet=quiet)

    def do_test() -> None:
        config = Config.from_env()
        config.validate()
        provider_id = (provider or config.default_provider).lower()
        controller = GenerationController(config=config)

        if quiet:
            outcome = asyncio.run(controller.test_api_key(api_key, provider_id))
        else:
            with progress.spinner(f"Testing API key [dim]({provider_id})[/dim]", style="cyan"):
                outcome = asyncio.run(controller.test_api_key(api_key, provider_id))

        if quiet:
            click.echo(outcome.status.value)
        else:
            progress.print_key_test(outcome, provider_id)
        if outcome.status is KeyStatus.INVALID:
            raise SystemExit(EXIT_VALIDATION_OR_CONFIG)

    run_with_error_handling(do_test, quiet=quiet)


@cli.command()
@click.option("--prompt", "-p", required=True, help="Short description to expand.")
@click.option(
    "--api-key",
    prompt="Gemini API key",
    hide_input=True,
    help="Gemini API key. Prompted for (hidden) when omitted.",
)
@_quiet_option
@_verbose_option
def describe(prompt: str, api_key: str, quiet: bool, verbose_count: int) -> None:
    """Expand a prompt into a detailed image description using Gemini."""
    _apply_logging(verbose_count, quiet)

    def do_describe() -> None:
        config = Config.from_env()
        config.validate()
        if quiet:
            description = describe_prompt(prompt, api_key, config=config)
        else:
            with progress.spinner("Describing prompt [dim](gemini)[/dim]", style="cyan"):
                description = describe_prompt(prompt, api_key, config=config)
        click.echo(description)

    run_with_error_handling(do_describe, quiet=quiet)


@cli.command()
def providers() -> None:
    """List available providers with their model and cooldowns."""

    def do_list() -> None:
        config = Config.from_env()
        table = Table(title="Providers")
        table.add_column("Id", style="cyan")
        table.add_column("Name")
        table.add_column("Model")
        table.add_column("Delay", justify="right")
        table.add_column("Success cooldown", justify="right")
        table.add_column("Rate limit / quota", justify="right")
        for provider_id in get_registry().provider_ids():
            endpoint = get_endpoint(provider_id, config)
            table.add_row(
                provider_id,
                endpoint.label,
                endpoint.model,
                f"{endpoint.pre_request_delay:g}s",
                f"{endpoint.success_cooldown}s",
                f"{endpoint.rate_limit_cooldown}s / {endpoint.quota_cooldown}s",
            )
        progress.console.print(table)

    run_with_error_handling(do_list)


@cli.command()
@click.option("--port", "-p", type=int, default=None, help="Server port [IMAGESTUDIO_UI_PORT, 7860].")
@click.option("--host", default=None, help="Bind address [IMAGESTUDIO_UI_HOST, 127.0.0.1]; 0.0.0.0 for LAN.")
@click.option("--share/--no-share", default=None, help="Public gradio.live link [IMAGESTUDIO_UI_SHARE].")
def ui(port: int | None, host: str | None, share: bool | None) -> None:
    """Serve the web UI in a browser tab."""
    from imagestudio.ui.gradio_app import launch

    configure_logging(verbose_level=get_verbosity_from_env(), quiet=False)

    def do_launch() -> None:
        launch(server_name=host, server_port=port, share=share)

    run_with_error_handling(do_launch)


def main() -> None:
    """Entry point for the imagestudio console script."""
    cli()


__all__ = ["cli", "main", "generate", "test_key", "describe", "providers", "ui"]
