"""Terminal rendering of the chat transcript."""

from __future__ import annotations

import asyncio
import threading
from contextlib import suppress
from typing import List, Optional, Protocol

from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel

from .console import console as default_console
from .logging import get_logger

LOGGER = get_logger(__name__)


class TranscriptView(Protocol):
    """What the chat loop tells its display. Every method is called from the loop thread."""

    def show_user(self, text: str) -> None:
        ...

    def stream_started(self, provider: str, model: str) -> None:
        ...

    def show_chunk(self, text: str) -> None:
        ...

    def show_assistant(self, text: str) -> None:
        ...

    def show_error(self, error: BaseException) -> None:
        ...

    def show_notice(self, text: str) -> None:
        ...


class RichTranscriptView:
    """Streams chunks and renders errors and notices as Rich panels.

    Chunks are printed inline as plain text. With ``render_markdown`` the answer
    is instead re-rendered as Markdown in a live region while it streams.
    """

    def __init__(self, console: Optional[Console] = None, *, render_markdown: bool = False) -> None:
        self.console = console or default_console
        self.render_markdown = render_markdown
        self._streamed = False
        self._parts: List[str] = []
        self._live: Optional[Live] = None

    def show_user(self, text: str) -> None:
        # already echoed by the terminal while typing
        return None

    def stream_started(self, provider: str, model: str) -> None:
        self._end_stream()
        self.console.print(f"[assistant]Assistant[/assistant] [notice]({provider}:{model})[/notice]")

    def show_chunk(self, text: str) -> None:
        self._streamed = True
        if not self.render_markdown:
            self.console.print(text, end="", markup=False, highlight=False, soft_wrap=True)
            return
        self._parts.append(text)
        if self._live is None:
            self._live = Live(console=self.console, refresh_per_second=8, redirect_stdout=False, redirect_stderr=False)
            self._live.start()
        self._live.update(Markdown("".join(self._parts)))

    def show_assistant(self, text: str) -> None:
        if self._live is not None:
            self._live.update(Markdown(text))
        elif not text:
            self.console.print("[warning]No response received.[/warning]")
        elif not self._streamed:
            if self.render_markdown:
                self.console.print(Markdown(text))
            else:
                self.console.print(text, markup=False, highlight=False)
        self._end_stream()

    def show_error(self, error: BaseException) -> None:
        self._end_stream()
        self.console.print(Panel(str(error), title="Provider Error", style="error"))

    def show_notice(self, text: str) -> None:
        self._end_stream()
        self.console.print(f"[notice]{text}[/notice]")

    def _end_stream(self) -> None:
        if self._live is not None:
            self._live.stop()
            self._live = None
        elif self._streamed and not self.render_markdown:
            self.console.print()
        self._streamed = False
        self._parts = []


async def read_line(console: Optional[Console] = None, prompt: str = "[prompt]\nYou:[/prompt] ") -> Optional[str]:
    """Read one line from the terminal without blocking the event loop.

    Returns ``None`` on end of input or when the terminal cannot be read. The
    read runs in a daemon thread so an exit while the prompt is open never waits
    for the user.
    """

    console = console or default_console
    loop = asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def resolve(value: Optional[str]) -> None:
        if not future.done():
            future.set_result(value)

    def ask() -> None:
        try:
            value: Optional[str] = console.input(prompt)
        except (EOFError, KeyboardInterrupt):
            value = None
        except Exception:
            LOGGER.exception("Reading from the terminal failed")
            value = None
        with suppress(RuntimeError):
            # the loop is already closed when the session exited mid-prompt
            loop.call_soon_threadsafe(resolve, value)

    threading.Thread(target=ask, name="fluxcode-input", daemon=True).start()
    return await future
