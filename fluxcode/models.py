"""Request, response and stream event types shared by adapters and the chat loop."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional

from .errors import ModelClientError

ROLES = ("system", "user", "assistant")

EventKind = Literal["chunk", "done", "error"]


@dataclass(frozen=True)
class ChatMessage:
    role: str  # "system" | "user" | "assistant"
    content: str

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unknown message role '{self.role}'. Expected one of: {', '.join(ROLES)}.")

    def to_json(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class ChatRequest:
    """One completion request. An empty ``model`` defers to the adapter's configured model."""

    messages: List[ChatMessage] = field(default_factory=list)
    model: str = ""
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    stream: bool = False

    def to_payload(self, *, model: str, stream: bool) -> dict:
        payload: dict = {
            "model": self.model or model,
            "messages": [message.to_json() for message in self.messages],
            "stream": stream,
        }
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.max_tokens is not None:
            payload["max_tokens"] = self.max_tokens
        return payload


@dataclass(frozen=True)
class ChatResponse:
    content: str
    finish_reason: Optional[str] = None
    model: Optional[str] = None


@dataclass(frozen=True)
class StreamEvent:
    """A chunk of streamed text or the terminal ``done``/``error`` marker of a turn."""

    kind: EventKind
    text: str = ""
    finish_reason: Optional[str] = None
    error: Optional[ModelClientError] = None

    @classmethod
    def chunk(cls, text: str) -> "StreamEvent":
        return cls(kind="chunk", text=text)

    @classmethod
    def done(cls, finish_reason: Optional[str] = None) -> "StreamEvent":
        return cls(kind="done", finish_reason=finish_reason)

    @classmethod
    def failed(cls, error: ModelClientError) -> "StreamEvent":
        return cls(kind="error", error=error)

    @property
    def is_terminal(self) -> bool:
        return self.kind != "chunk"


@dataclass(frozen=True)
class ProviderConfig:
    """Connection details for one OpenAI-compatible endpoint.

    Immutable once an adapter is built from it, so a single instance can back any
    number of concurrent requests.
    """

    name: str
    base_url: str
    model: str
    api_key: Optional[str] = None
    auth_header: str = "Authorization"
    auth_prefix: str = "Bearer "

    @property
    def endpoint(self) -> str:
        return self.base_url.rstrip("/")

    def auth_value(self) -> Optional[str]:
        if not self.api_key:
            return None
        return f"{self.auth_prefix}{self.api_key}"

    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        auth = self.auth_value()
        if auth:
            headers[self.auth_header] = auth
        return headers
