"""High-level public API for the fluxcode streaming chat client."""

from .adapter import ChatAdapter
from .bridge import (
    CancelRequested,
    QuitRequested,
    StreamChunk,
    StreamClosed,
    StreamDone,
    StreamFailed,
    StreamTurn,
    UserSubmitted,
)
from .concurrency import CancelToken, EventSource
from .config import AppConfig, ChatConfig, ProviderSettings, SystemConfig, TransportConfig, UIConfig
from .errors import (
    ConfigurationError,
    DecodeError,
    EmptyResponseError,
    ModelClientError,
    ProtocolError,
    RequestCancelled,
    TransportError,
    is_retryable,
)
from .history import Conversation, HistoryEntry
from .models import ChatMessage, ChatRequest, ChatResponse, ProviderConfig, StreamEvent
from .registry import (
    GENERIC_PROVIDER,
    ProviderRegistry,
    VendorDefaults,
    create_transport,
    default_registry,
)
from .session import ChatSession
from .view import RichTranscriptView, TranscriptView

__all__ = [
    "ChatAdapter",
    "CancelRequested",
    "QuitRequested",
    "StreamChunk",
    "StreamClosed",
    "StreamDone",
    "StreamFailed",
    "StreamTurn",
    "UserSubmitted",
    "CancelToken",
    "EventSource",
    "AppConfig",
    "ChatConfig",
    "ProviderSettings",
    "SystemConfig",
    "TransportConfig",
    "UIConfig",
    "ConfigurationError",
    "DecodeError",
    "EmptyResponseError",
    "ModelClientError",
    "ProtocolError",
    "RequestCancelled",
    "TransportError",
    "is_retryable",
    "Conversation",
    "HistoryEntry",
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "ProviderConfig",
    "StreamEvent",
    "GENERIC_PROVIDER",
    "ProviderRegistry",
    "VendorDefaults",
    "create_transport",
    "default_registry",
    "ChatSession",
    "RichTranscriptView",
    "TranscriptView",
]
