"""Fake providers and small async utilities shared by the test-suite."""

from __future__ import annotations

import asyncio
import json
from typing import AsyncIterator, Callable, Iterable, List, Optional

import httpx

from fluxcode.adapter import ChatAdapter
from fluxcode.models import ChatMessage, ChatRequest, ProviderConfig

BASE_URL = "http://provider.test/v1"


def chunk_json(*contents: str, finish_reason: Optional[str] = None) -> str:
    choices = [{"index": idx, "delta": {"content": content}} for idx, content in enumerate(contents)]
    if finish_reason is not None:
        choices.append({"index": len(choices), "delta": {}, "finish_reason": finish_reason})
    return json.dumps({"id": "chatcmpl-test", "object": "chat.completion.chunk", "choices": choices})


def sse_lines(*payloads: str) -> List[bytes]:
    return [f"data: {payload}\n\n".encode("utf-8") for payload in payloads]


def completion_json(content: str) -> dict:
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "model": "test-model",
        "choices": [
            {"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}
        ],
    }


async def byte_stream(
    parts: Iterable[bytes], *, gate: Optional[asyncio.Event] = None, delay: float = 0.0
) -> AsyncIterator[bytes]:
    """Yield *parts* one by one, optionally waiting on *gate* before the first part."""

    if gate is not None:
        await gate.wait()
    for part in parts:
        if delay:
            await asyncio.sleep(delay)
        yield part


def sse_response(parts: Iterable[bytes], **kwargs) -> httpx.Response:
    return httpx.Response(
        200,
        headers={"content-type": "text/event-stream"},
        content=byte_stream(parts, **kwargs),
    )


def make_transport(handler: Callable) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def make_config(**overrides) -> ProviderConfig:
    values = {"name": "test", "base_url": BASE_URL, "model": "test-model"}
    values.update(overrides)
    return ProviderConfig(**values)


def make_adapter(handler: Callable, **overrides) -> ChatAdapter:
    return ChatAdapter(make_config(**overrides), make_transport(handler))


def user_request(text: str = "test", **kwargs) -> ChatRequest:
    return ChatRequest(messages=[ChatMessage("user", text)], **kwargs)


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(poll(), timeout)


async def drain(source) -> list:
    return [event async for event in source]
