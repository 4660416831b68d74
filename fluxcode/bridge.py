"""Per-turn stream state and the messages that carry stream events into the chat loop.

The chat loop never awaits an event source inside an update step. Instead an
update returns :meth:`StreamTurn.next_message` as a deferred command; the loop
runs it off the main line of control and feeds the resulting message back into
its inbox, where the next update step re-arms the command until the turn ends.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import List, Optional, Union

from .concurrency import CancelToken, EventSource
from .errors import ModelClientError


@dataclass(frozen=True)
class UserSubmitted:
    text: str


@dataclass(frozen=True)
class CancelRequested:
    pass


@dataclass(frozen=True)
class QuitRequested:
    pass


@dataclass(frozen=True)
class StreamChunk:
    ticket: int
    text: str


@dataclass(frozen=True)
class StreamDone:
    ticket: int
    finish_reason: Optional[str] = None


@dataclass(frozen=True)
class StreamFailed:
    ticket: int
    error: ModelClientError


@dataclass(frozen=True)
class StreamClosed:
    """The source closed without a terminal event, which only happens after a cancellation."""

    ticket: int


Message = Union[
    UserSubmitted,
    CancelRequested,
    QuitRequested,
    StreamChunk,
    StreamDone,
    StreamFailed,
    StreamClosed,
]


class StreamTurn:
    """State of one in-flight streamed turn, owned by the chat loop."""

    def __init__(self, ticket: int, source: EventSource, cancel: CancelToken) -> None:
        self.ticket = ticket
        self.source = source
        self.cancel = cancel
        self._parts: List[str] = []
        self._finalized = False

    @property
    def text(self) -> str:
        return "".join(self._parts)

    @property
    def finalized(self) -> bool:
        return self._finalized

    def append(self, text: str) -> None:
        if self._finalized:
            raise RuntimeError(f"Turn {self.ticket} is already finalized.")
        self._parts.append(text)

    def finalize(self) -> bool:
        """Mark the turn finished. Only the first caller gets ``True``."""

        if self._finalized:
            return False
        self._finalized = True
        return True

    def abort(self) -> bool:
        """Finalize by cancellation: fire the token and drop the partial text."""

        if not self.finalize():
            return False
        self.cancel.cancel()
        self._parts.clear()
        return True

    async def next_message(self) -> Message:
        event = await self.source.get()
        if event is None:
            return StreamClosed(self.ticket)
        if event.kind == "chunk":
            return StreamChunk(self.ticket, event.text)
        if event.kind == "done":
            return StreamDone(self.ticket, event.finish_reason)
        return StreamFailed(self.ticket, event.error)

    async def wait_reader(self) -> None:
        """Wait until the background reader has exited and closed the source."""

        producer = self.source.producer
        if producer is not None and not producer.done():
            await asyncio.wait({producer})
        await self.source.wait_closed()
