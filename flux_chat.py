"""Interactive terminal chat against any OpenAI-compatible provider."""

from __future__ import annotations

import argparse
import asyncio
import os
import signal
from contextlib import suppress
from pathlib import Path
from typing import Optional

from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from fluxcode.bridge import CancelRequested, QuitRequested
from fluxcode.config import AppConfig
from fluxcode.console import configure_console, console
from fluxcode.errors import ConfigurationError, ModelClientError
from fluxcode.history import Conversation
from fluxcode.logging import configure_logging, get_logger
from fluxcode.models import ChatRequest
from fluxcode.registry import create_transport, default_registry
from fluxcode.session import ChatSession
from fluxcode.view import RichTranscriptView, read_line

__version__ = "0.1.0"

LOGGER = get_logger(__name__)


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="flux",
        description="Terminal AI coding assistant for OpenAI-compatible chat providers.",
    )
    parser.add_argument(
        "--config-file",
        type=Path,
        help="Path to a config file (YAML or JSON, default: ./config.yaml or ~/.config/flux/config.yaml).",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        help="Path to a .env file with secrets such as OPENAI_API_KEY (default: .env).",
    )
    parser.add_argument("--provider", help="Override the provider configured in the config file.")
    parser.add_argument("--model", help="Model to use for the selected provider.")
    parser.add_argument("--base-url", help="Override the base URL of the selected provider.")
    parser.add_argument("--timeout", type=float, help="Ceiling HTTP timeout in seconds.")
    parser.add_argument(
        "--list-models",
        action="store_true",
        help="List the models advertised by the selected provider and exit.",
    )
    parser.add_argument(
        "-p",
        "--prompt",
        help="Send a single prompt without streaming, print the answer and exit.",
    )
    parser.add_argument(
        "--markdown",
        action="store_true",
        help="Render answers as Markdown while they stream (ui.render_markdown in the config file).",
    )
    parser.add_argument("--log-level", help="Python logging level (default: WARNING).")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> None:
    if args.provider:
        config.provider = args.provider.lower()
    settings = config.providers.setdefault(config.provider, config.provider_settings())
    if args.model:
        settings.model = args.model
    if args.base_url:
        settings.base_url = args.base_url
    if args.timeout:
        config.transport.timeout = args.timeout
    if args.markdown:
        config.ui.render_markdown = True
    if args.log_level:
        config.log_level = args.log_level


async def list_models(adapter) -> int:
    try:
        models = await adapter.list_models()
    except ModelClientError as exc:
        LOGGER.error("Failed to query models: %s", exc)
        return 1

    if not models:
        console.print(
            Panel(
                f"No models are currently available for the {adapter.provider} provider.",
                title="Models Unavailable",
                style="warning",
            )
        )
        return 0

    table = Table(title=f"{adapter.provider.title()} Models", box=None, highlight=True)
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Name", style="magenta")
    for idx, name in enumerate(models, start=1):
        table.add_row(str(idx), name)
    console.print(table)
    return 0


async def complete_once(adapter, config: AppConfig, prompt: str) -> int:
    conversation = Conversation(config.system.system_prompt)
    conversation.add_user(prompt)
    request = ChatRequest(
        messages=conversation.to_messages(),
        temperature=config.chat.temperature,
        max_tokens=config.chat.max_tokens,
    )
    with console.status(f"[info]Calling {adapter.provider}...[/info]"):
        try:
            response = await adapter.complete(request)
        except ModelClientError as exc:
            console.print(
                Panel(
                    f"Encountered a {adapter.provider} error: {exc}",
                    title="Provider Error",
                    style="error",
                )
            )
            return 1
    if config.ui.render_markdown:
        console.print(Markdown(response.content))
    else:
        console.print(response.content, markup=False, highlight=False)
    return 0


async def run_interactive(adapter, config: AppConfig) -> int:
    session = ChatSession(
        adapter,
        RichTranscriptView(console, render_markdown=config.ui.render_markdown),
        conversation=Conversation(config.system.system_prompt),
        chat=config.chat,
        input_reader=read_line,
    )

    def on_interrupt() -> None:
        session.post(CancelRequested() if session.streaming else QuitRequested())

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, on_interrupt)
    except (NotImplementedError, RuntimeError):
        LOGGER.debug("SIGINT handler unavailable; Ctrl+C will exit instead of cancelling")

    console.rule(
        f"flux · {adapter.provider}:{adapter.model}. Ctrl+C cancels a response; "
        "an empty line, Ctrl+D or Ctrl+C at the prompt exits."
    )
    try:
        await session.run()
    finally:
        with suppress(NotImplementedError, RuntimeError):
            loop.remove_signal_handler(signal.SIGINT)
    console.print("Goodbye!")
    return 0


async def run(config: AppConfig, args: argparse.Namespace) -> int:
    registry = default_registry()
    async with create_transport(config.transport) as transport:
        try:
            adapter = registry.build(config.provider, config.provider_settings(), transport)
        except ConfigurationError as exc:
            console.print(Panel(str(exc), title="Configuration Error", style="error"))
            return 1

        if args.list_models:
            return await list_models(adapter)
        if args.prompt:
            return await complete_once(adapter, config, args.prompt)
        return await run_interactive(adapter, config)


def main(argv: Optional[list] = None) -> int:
    args = parse_args(argv)

    if args.env_file:
        os.environ["ENV_FILE"] = str(args.env_file)

    try:
        config = AppConfig.load(config_path=args.config_file)
    except ConfigurationError as exc:
        configure_logging()
        console.print(Panel(str(exc), title="Configuration Error", style="error"))
        return 1
    apply_overrides(config, args)
    configure_logging(config.log_level)
    configure_console(config.ui.word_wrap)

    try:
        return asyncio.run(run(config, args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
