"""
Gradio web UI for imagestudio.

Single-page form: API key, provider, quality, prompt; Generate and Test key
buttons; status line, cooldown countdown and output image. Each browser
session gets its own GenerationController, which ticks its own cooldown on
the server's event loop; the page timer only reads its state.
"""

import argparse
import html
import os
from typing import Any

import gradio as gr

from imagestudio import (
    Config,
    ConfigurationError,
    ErrorKind,
    ErrorResult,
    GenerationController,
    GenerationRequest,
    ImagestudioError,
    KeyStatus,
    Provider,
    Quality,
    ValidationError,
    __version__,
    describe_prompt,
)
from imagestudio.core.endpoints import get_endpoint
from imagestudio.core.providers import KNOWN_PROVIDERS
from imagestudio.logging_config import configure_logging, get_logger, get_verbosity_from_env

logger = get_logger(__name__)

# Default server port; overridable via IMAGESTUDIO_UI_PORT
DEFAULT_UI_PORT = 7860
DEFAULT_UI_HOST = "127.0.0.1"

BASE_PAGE_TITLE = "AI Image Studio"

_KEY_HELP = {
    "openai": ("OpenAI", "https://platform.openai.com/api-keys"),
    "gemini": ("Google AI Studio", "https://aistudio.google.com/app/apikey"),
    "zai": ("Z.AI open platform", "https://open.bigmodel.cn/usercenter/apikeys"),
}

# One controller per browser session, keyed by Gradio session hash
_controllers: dict[str, GenerationController] = {}


def _load_config() -> Config:
    """Environment config, validated; raises ConfigurationError on bad settings."""
    config = Config.from_env()
    config.validate()
    return config


def _session_id(request: gr.Request | None) -> str:
    session_hash = getattr(request, "session_hash", None)
    return session_hash or "default"


def _controller_for(request: gr.Request | None) -> GenerationController:
    sid = _session_id(request)
    controller = _controllers.get(sid)
    if controller is None:
        controller = GenerationController(config=_load_config())
        _controllers[sid] = controller
    return controller


def _drop_controller(request: gr.Request) -> None:
    """Release the controller of a closed session."""
    controller = _controllers.pop(_session_id(request), None)
    if controller is not None:
        controller.close()


# status type -> (icon, accent colour, background)
_STATUS_STYLES = {
    "success": ("✅", "#10b981", "#d1fae5"),
    "error": ("❌", "#ef4444", "#fee2e2"),
    "warning": ("⚠️", "#f59e0b", "#fef3c7"),
    "info": ("ℹ️", "#3b82f6", "#dbeafe"),
}


def _format_status(message: str, status_type: str = "info") -> str:
    """Status banner HTML for message; unknown types (e.g. "idle") render nothing."""
    style = _STATUS_STYLES.get(status_type)
    if style is None:
        return ""
    icon, accent, background = style
    return (
        f'<div class="status-banner" style="background:{background};border-left:4px solid {accent};'
        f'padding:10px 14px;border-radius:6px;margin:6px 0;">'
        f"{icon} <span style=\"color:{accent};font-weight:500;\">{html.escape(message)}</span></div>"
    )


def _status_type_for(kind: ErrorKind) -> str:
    if kind in (ErrorKind.THROTTLED, ErrorKind.RATE_LIMITED):
        return "warning"
    return "error"


def _cooldown_text(controller: GenerationController) -> str:
    remaining = controller.cooldown_remaining
    if remaining > 0:
        return f"Next request available in {remaining}s"
    if not controller.can_request:
        return "Generating…"
    return "Ready"


def _generate_button(controller: GenerationController) -> Any:
    return gr.update(interactive=controller.can_request)


def _key_help_html(provider: str) -> str:
    name, url = _KEY_HELP.get(provider, ("the provider", ""))
    if not url:
        return ""
    return (
        f'<p style="font-size: 0.8em; color: #6b7280; margin: 0;">'
        f'Get your API key from <a href="{url}" target="_blank">{html.escape(name)}</a>. '
        "The key stays in this session's memory only.</p>"
    )


async def _generate_click_handler(
    api_key: str,
    provider: str,
    quality: str,
    prompt: str,
    request: gr.Request,
) -> tuple[Any, ...]:
    """Generate button: submit through the session controller. Used by UI and tests."""
    controller = _controller_for(request)
    try:
        gen_request = GenerationRequest(
            prompt=prompt or "",
            api_key=api_key or "",
            provider=Provider(provider),
            quality=Quality(quality or Quality.STANDARD.value),
        )
    except ValueError as e:
        return (
            _format_status(f"Invalid selection: {e}", "error"),
            None,
            _generate_button(controller),
            _cooldown_text(controller),
        )

    result = await controller.submit(gen_request)
    if isinstance(result, ErrorResult):
        return (
            _format_status(result.message, _status_type_for(result.kind)),
            None,
            _generate_button(controller),
            _cooldown_text(controller),
        )
    try:
        image = result.payload.display_value()
    except (ValidationError, OSError) as e:
        return (
            _format_status(f"Could not display image: {e}", "error"),
            None,
            _generate_button(controller),
            _cooldown_text(controller),
        )
    return (
        _format_status(f"Done in {result.generation_time:.1f}s", "success"),
        image,
        _generate_button(controller),
        _cooldown_text(controller),
    )


async def _test_key_click_handler(
    api_key: str,
    provider: str,
    request: gr.Request,
) -> str:
    """Test key button: validate the key without touching the cooldown."""
    controller = _controller_for(request)
    outcome = await controller.test_api_key(api_key or "", provider)
    label = get_endpoint(provider).label if provider in KNOWN_PROVIDERS else provider
    if outcome.status is KeyStatus.VALID:
        return _format_status(f"API key is valid for {label}.", "success")
    if outcome.status is KeyStatus.NOT_APPLICABLE:
        return _format_status(f"{label} does not need an API key.", "info")
    return _format_status(outcome.message or "API key is not valid.", "error")


def _describe_click_handler(api_key: str, provider: str, prompt: str) -> tuple[str, str]:
    """Describe button: expand the prompt with Gemini (needs a Gemini key)."""
    if provider != Provider.GEMINI.value:
        return prompt, _format_status(
            "Prompt description uses Gemini; select Gemini and enter its key.", "warning"
        )
    try:
        description = describe_prompt(prompt or "", api_key or "")
    except ImagestudioError as e:
        return prompt, _format_status(str(e), "error")
    return description, _format_status("Prompt replaced with a detailed description.", "success")


def _timer_handler(request: gr.Request) -> tuple[Any, str]:
    """Periodic refresh: reflect the controller's cooldown in the page (read-only)."""
    controller = _controller_for(request)
    return _generate_button(controller), _cooldown_text(controller)


def _provider_change_handler(provider: str) -> tuple[Any, str]:
    name = _KEY_HELP.get(provider, (provider, ""))[0]
    return gr.update(label=f"Your {name} API key"), _key_help_html(provider)


def _build_blocks() -> gr.Blocks:
    """Build the Gradio Blocks UI."""
    config = _load_config()
    default_provider = config.default_provider
    provider_choices = [(get_endpoint(pid, config).label, pid) for pid in KNOWN_PROVIDERS]

    with gr.Blocks(title=BASE_PAGE_TITLE) as app:
        gr.Markdown(f"# {BASE_PAGE_TITLE}\nGenerate images with your own API key.")

        with gr.Row():
            with gr.Column():
                # No default value: keys are never pre-filled
                api_key_tb = gr.Textbox(
                    label=f"Your {_KEY_HELP[default_provider][0]} API key",
                    type="password",
                    placeholder="Paste your API key…",
                    value="",
                )
                key_help = gr.HTML(_key_help_html(default_provider))
                with gr.Row():
                    provider_dd = gr.Dropdown(
                        label="Provider",
                        choices=provider_choices,
                        value=default_provider,
                    )
                    quality_radio = gr.Radio(
                        label="Quality",
                        choices=[q.value for q in Quality],
                        value=config.default_quality,
                    )
                test_key_btn = gr.Button("Test key", variant="secondary")
                prompt_tb = gr.Textbox(
                    label="Image prompt",
                    placeholder="Describe the image you want to generate…",
                    lines=4,
                    max_lines=12,
                )
                with gr.Row():
                    generate_btn = gr.Button("Generate", variant="primary")
                    describe_btn = gr.Button("Describe prompt (Gemini)", variant="secondary")
                cooldown_md = gr.Markdown("Ready")
                status_html = gr.HTML(value="")
            with gr.Column():
                out_image = gr.Image(label="Output", interactive=False, height="70vh")

        provider_dd.change(
            fn=_provider_change_handler,
            inputs=[provider_dd],
            outputs=[api_key_tb, key_help],
        )
        generate_btn.click(
            fn=_generate_click_handler,
            inputs=[api_key_tb, provider_dd, quality_radio, prompt_tb],
            outputs=[status_html, out_image, generate_btn, cooldown_md],
        )
        test_key_btn.click(
            fn=_test_key_click_handler,
            inputs=[api_key_tb, provider_dd],
            outputs=[status_html],
        )
        describe_btn.click(
            fn=_describe_click_handler,
            inputs=[api_key_tb, provider_dd, prompt_tb],
            outputs=[prompt_tb, status_html],
        )

        timer = gr.Timer(1.0)
        timer.tick(fn=_timer_handler, inputs=None, outputs=[generate_btn, cooldown_md])
        app.unload(_drop_controller)

        gr.Markdown(f"imagestudio v{__version__}. Bring your own key; nothing is stored.", elem_classes=["footer"])

    return app


def resolve_share(share: bool | None) -> bool:
    """Explicit flag wins; otherwise IMAGESTUDIO_UI_SHARE (1/true/yes)."""
    if share is not None:
        return share
    return os.getenv("IMAGESTUDIO_UI_SHARE", "").strip().lower() in ("1", "true", "yes")


def _resolve_port(server_port: int | None) -> int:
    if server_port is not None:
        return server_port
    raw = os.getenv("IMAGESTUDIO_UI_PORT", "")
    try:
        return int(raw) if raw else DEFAULT_UI_PORT
    except ValueError:
        logger.warning("Ignoring IMAGESTUDIO_UI_PORT=%r; using %d", raw, DEFAULT_UI_PORT)
        return DEFAULT_UI_PORT


def launch(
    server_name: str | None = None,
    server_port: int | None = None,
    share: bool | None = None,
) -> None:
    """
    Build the app and serve it, opening a browser tab.

    Unset arguments fall back to IMAGESTUDIO_UI_HOST, IMAGESTUDIO_UI_PORT and
    IMAGESTUDIO_UI_SHARE, then to 127.0.0.1:7860 without a share link.
    """
    host = server_name or os.getenv("IMAGESTUDIO_UI_HOST") or DEFAULT_UI_HOST
    port = _resolve_port(server_port)
    logger.info("Starting UI v%s on http://%s:%s", __version__, host, port)
    _build_blocks().launch(server_name=host, server_port=port, share=resolve_share(share), inbrowser=True)


def main() -> None:
    """imagestudio-ui console script."""
    parser = argparse.ArgumentParser(prog="imagestudio-ui", description="Serve the imagestudio web UI.")
    parser.add_argument("--port", type=int, help=f"default: IMAGESTUDIO_UI_PORT or {DEFAULT_UI_PORT}")
    parser.add_argument("--host", help=f"default: IMAGESTUDIO_UI_HOST or {DEFAULT_UI_HOST}")
    parser.add_argument("--share", action="store_true", default=None, help="public gradio.live link")
    args = parser.parse_args()
    configure_logging(verbose_level=get_verbosity_from_env())
    try:
        launch(server_name=args.host, server_port=args.port, share=args.share)
    except ConfigurationError as e:
        parser.exit(2, f"imagestudio-ui: {e}\n")
