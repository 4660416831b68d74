"""Cancellation tokens and the single-producer/single-consumer event source of a turn."""

from __future__ import annotations

import asyncio
from typing import Callable, List, Optional

from .models import StreamEvent

_CLOSED = object()


class CancelToken:
    """Cooperative cancellation signal shared by a caller and one in-flight request.

    Callbacks run synchronously on :meth:`cancel`, inside the event loop thread.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> bool:
        """Fire the token. Returns ``False`` when it had already fired."""

        if self._cancelled:
            return False
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()
        return True

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run *callback* on cancellation and return a function that detaches it.

        A token that already fired runs the callback immediately.
        """

        if self._cancelled:
            callback()
            return lambda: None
        self._callbacks.append(callback)

        def detach() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return detach


class EventSource:
    """FIFO hand-off between one reader task (producer) and the chat loop (consumer).

    The producer puts zero or more chunk events, at most one terminal event, and
    then closes the source exactly once. The consumer drains with :meth:`get`,
    which returns ``None`` once the source is closed and empty.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._terminated = False
        self._closed = asyncio.Event()
        self._producer: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------
    def put(self, event: StreamEvent) -> None:
        if self._closed.is_set():
            raise RuntimeError("Cannot put events on a closed event source.")
        if self._terminated:
            raise RuntimeError("A terminal event was already emitted for this turn.")
        if event.is_terminal:
            self._terminated = True
        self._queue.put_nowait(event)

    def close(self) -> None:
        if self._closed.is_set():
            raise RuntimeError("Event source closed twice.")
        self._closed.set()
        self._queue.put_nowait(_CLOSED)

    def attach(self, producer: asyncio.Task) -> None:
        self._producer = producer

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------
    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def producer(self) -> Optional[asyncio.Task]:
        return self._producer

    async def get(self) -> Optional[StreamEvent]:
        item = await self._queue.get()
        if item is _CLOSED:
            # keep the marker for any later get() so draining stays safe
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    async def wait_closed(self) -> None:
        await self._closed.wait()

    def __aiter__(self) -> "EventSource":
        return self

    async def __anext__(self) -> StreamEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event
