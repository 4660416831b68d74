"""Rich console shared by the chat loop, the transcript view and logging."""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.theme import Theme

_THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "green",
        "prompt": "bold green",
        "assistant": "bold #00D4AA",
        "notice": "dim",
    }
)

console = Console(theme=_THEME)


def configure_console(word_wrap: Optional[int] = None, target: Optional[Console] = None) -> Console:
    """Cap the width of *target* (the shared console by default) at ``word_wrap`` columns."""

    target = target or console
    if word_wrap and word_wrap > 0:
        target.width = min(target.width, word_wrap)
    return target


__all__ = ["console", "configure_console"]
