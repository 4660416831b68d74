"""Message-driven chat loop hosting the streaming bridge."""

from __future__ import annotations

import asyncio
from itertools import count
from typing import Awaitable, Callable, Optional, Set

from .adapter import ChatAdapter
from .bridge import (
    CancelRequested,
    Message,
    QuitRequested,
    StreamChunk,
    StreamClosed,
    StreamDone,
    StreamFailed,
    StreamTurn,
    UserSubmitted,
)
from .concurrency import CancelToken
from .config import ChatConfig
from .history import Conversation
from .logging import get_logger
from .models import ChatRequest
from .view import TranscriptView

LOGGER = get_logger(__name__)

Command = Callable[[], Awaitable[Optional[Message]]]
InputReader = Callable[[], Awaitable[Optional[str]]]


class ChatSession:
    """Single-threaded chat loop owning the transcript and the active turn.

    :meth:`update` is the only place state changes. It is synchronous and returns
    at most one deferred command; the loop runs commands as tasks and posts their
    result back to the inbox, so no two update steps ever run at the same time.
    """

    def __init__(
        self,
        adapter: ChatAdapter,
        view: TranscriptView,
        *,
        conversation: Optional[Conversation] = None,
        chat: Optional[ChatConfig] = None,
        input_reader: Optional[InputReader] = None,
    ) -> None:
        self.adapter = adapter
        self.view = view
        self.conversation = conversation or Conversation()
        self.chat = chat or ChatConfig()
        self._input_reader = input_reader
        self._inbox: asyncio.Queue = asyncio.Queue()
        self._tickets = count(1)
        self._turn: Optional[StreamTurn] = None
        self._readers: Set[StreamTurn] = set()
        self._pending: Set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._idle.set()
        self._running = False
        self._closed = False

    @property
    def streaming(self) -> bool:
        return self._turn is not None

    @property
    def active_turn(self) -> Optional[StreamTurn]:
        return self._turn

    def post(self, message: Message) -> None:
        self._inbox.put_nowait(message)

    async def wait_idle(self) -> None:
        """Wait until no turn is in flight."""

        await self._idle.wait()

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------
    async def run(self) -> None:
        self._running = True
        if self._input_reader is not None:
            self._spawn(self._read_input)
        try:
            while self._running:
                message = await self._inbox.get()
                command = self.update(message)
                if command is not None:
                    self._spawn(command)
        finally:
            await self.aclose()

    def _spawn(self, command: Command) -> None:
        task = asyncio.get_running_loop().create_task(self._execute(command))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _execute(self, command: Command) -> None:
        try:
            message = await command()
        except Exception:
            LOGGER.exception("Chat loop command %r failed; stopping the session", command)
            message = QuitRequested()
        if message is not None:
            self.post(message)

    async def _read_input(self) -> Message:
        text = await self._input_reader()
        if text is None or not text.strip():
            return QuitRequested()
        return UserSubmitted(text)

    async def aclose(self) -> None:
        """Tear the loop down: cancel the active turn and wait for every reader to exit."""

        if self._closed:
            return
        self._closed = True
        self._running = False

        turn = self._turn
        if turn is not None and turn.abort():
            self._release(turn)
        for reader in list(self._readers):
            reader.cancel.cancel()
            await reader.wait_reader()
        self._readers.clear()

        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Update step
    # ------------------------------------------------------------------
    def update(self, message: Message) -> Optional[Command]:
        if isinstance(message, UserSubmitted):
            return self._submit(message.text)
        if isinstance(message, StreamChunk):
            return self._on_chunk(message)
        if isinstance(message, StreamDone):
            return self._on_done(message)
        if isinstance(message, StreamFailed):
            return self._on_failed(message)
        if isinstance(message, StreamClosed):
            return self._on_closed(message)
        if isinstance(message, CancelRequested):
            return self._cancel()
        if isinstance(message, QuitRequested):
            self._running = False
            return None
        raise TypeError(f"Unsupported chat loop message: {message!r}")

    def _submit(self, text: str) -> Optional[Command]:
        text = text.strip()
        if not text:
            return self._next_prompt()
        if self._turn is not None:
            self.view.show_notice("A response is still streaming. Press Ctrl+C to cancel it first.")
            return None

        self.conversation.add_user(text)
        self.view.show_user(text)
        request = ChatRequest(
            messages=self.conversation.to_messages(),
            temperature=self.chat.temperature,
            max_tokens=self.chat.max_tokens,
            stream=True,
        )
        cancel = CancelToken()
        source = self.adapter.stream(request, cancel)
        turn = StreamTurn(next(self._tickets), source, cancel)
        self._turn = turn
        self._readers.add(turn)
        if source.producer is not None:
            source.producer.add_done_callback(lambda _task: self._readers.discard(turn))
        else:
            self._readers.discard(turn)
        self._idle.clear()
        LOGGER.debug("Turn %s started (%d messages)", turn.ticket, len(request.messages))
        self.view.stream_started(self.adapter.provider, self.adapter.model)
        return turn.next_message

    def _current(self, ticket: int) -> Optional[StreamTurn]:
        turn = self._turn
        if turn is None or turn.ticket != ticket or turn.finalized:
            return None
        return turn

    def _on_chunk(self, message: StreamChunk) -> Optional[Command]:
        turn = self._current(message.ticket)
        if turn is None:
            return None
        turn.append(message.text)
        self.view.show_chunk(message.text)
        return turn.next_message

    def _on_done(self, message: StreamDone) -> Optional[Command]:
        turn = self._current(message.ticket)
        if turn is None or not turn.finalize():
            return None
        text = turn.text
        self.conversation.add_assistant(text)
        self._release(turn)
        LOGGER.debug("Turn %s done (finish_reason=%s)", turn.ticket, message.finish_reason)
        self.view.show_assistant(text)
        return self._next_prompt()

    def _on_failed(self, message: StreamFailed) -> Optional[Command]:
        turn = self._current(message.ticket)
        if turn is None or not turn.finalize():
            return None
        self.conversation.add_error(f"Error: {message.error}")
        self._release(turn)
        LOGGER.debug("Turn %s failed: %s", turn.ticket, message.error)
        self.view.show_error(message.error)
        return self._next_prompt()

    def _on_closed(self, message: StreamClosed) -> Optional[Command]:
        turn = self._current(message.ticket)
        if turn is None or not turn.finalize():
            return None
        self._release(turn)
        self.view.show_notice("The response ended before it completed.")
        return self._next_prompt()

    def _cancel(self) -> Optional[Command]:
        turn = self._turn
        if turn is None or not turn.abort():
            return None
        self._release(turn)
        LOGGER.debug("Turn %s cancelled by user", turn.ticket)
        self.view.show_notice("Response cancelled.")
        return self._next_prompt()

    def _release(self, turn: StreamTurn) -> None:
        if self._turn is turn:
            self._turn = None
        self._idle.set()

    def _next_prompt(self) -> Optional[Command]:
        if self._input_reader is None or not self._running:
            return None
        return self._read_input
