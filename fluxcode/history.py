"""Conversation transcript kept by a chat session."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional

from .models import ChatMessage


@dataclass(frozen=True)
class HistoryEntry:
    """A finalized transcript line. Error records are shown but never sent to the provider."""

    role: str
    content: str
    is_error: bool = False


class Conversation:
    def __init__(self, system_prompt: Optional[str] = None) -> None:
        self.system_prompt = system_prompt
        self._entries: List[HistoryEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(self._entries)

    @property
    def entries(self) -> List[HistoryEntry]:
        return list(self._entries)

    def add_user(self, content: str) -> None:
        self._entries.append(HistoryEntry("user", content))

    def add_assistant(self, content: str) -> None:
        self._entries.append(HistoryEntry("assistant", content))

    def add_error(self, message: str) -> None:
        self._entries.append(HistoryEntry("assistant", message, is_error=True))

    def clear(self) -> None:
        self._entries.clear()

    def to_messages(self) -> List[ChatMessage]:
        """Return the chronological message list for the next request."""

        messages: List[ChatMessage] = []
        if self.system_prompt:
            messages.append(ChatMessage("system", self.system_prompt))
        messages.extend(
            ChatMessage(entry.role, entry.content) for entry in self._entries if not entry.is_error
        )
        return messages
