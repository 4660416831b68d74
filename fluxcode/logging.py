"""Simple logging helpers."""

from __future__ import annotations

import logging
from typing import Optional

from rich.logging import RichHandler

from .console import console

_NOISY_LOGGERS = ("httpx", "httpcore", "asyncio")


def configure_logging(level: str = "WARNING") -> None:
    """Configure a Rich-powered logging formatter for the terminal client."""

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=False, markup=False)],
        force=True,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name or "fluxcode")
