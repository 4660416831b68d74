"""Chat adapter for OpenAI-compatible ``/chat/completions`` endpoints.

A single class covers every vendor; the differences (base URL, auth header and
prefix, default model) live in :class:`~fluxcode.models.ProviderConfig`.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import replace
from typing import List, Optional, Tuple

import httpx

from .concurrency import CancelToken, EventSource
from .errors import (
    TRANSPORT_FAILURES,
    DecodeError,
    EmptyResponseError,
    RequestCancelled,
    classify_transport_failure,
    protocol_error,
)
from .logging import get_logger
from .models import ChatRequest, ChatResponse, ProviderConfig, StreamEvent

LOGGER = get_logger(__name__)

DATA_MARKER = "data:"
DONE_PAYLOAD = "[DONE]"


class ChatAdapter:
    def __init__(self, config: ProviderConfig, transport: httpx.AsyncClient) -> None:
        self.config = config
        self._transport = transport

    @property
    def provider(self) -> str:
        return self.config.name

    @property
    def model(self) -> str:
        return self.config.model

    @property
    def completions_url(self) -> str:
        return f"{self.config.endpoint}/chat/completions"

    def with_model(self, model: str) -> "ChatAdapter":
        """Return an adapter for *model* that shares this adapter's transport."""

        return ChatAdapter(replace(self.config, model=model), self._transport)

    # ------------------------------------------------------------------
    # Non-streaming completion
    # ------------------------------------------------------------------
    async def complete(self, request: ChatRequest, cancel: Optional[CancelToken] = None) -> ChatResponse:
        payload = self._payload(request, stream=False)
        if cancel is None:
            return await self._post_completion(payload)
        if cancel.cancelled:
            raise RequestCancelled(f"Request to {self.provider} was cancelled.")

        task = asyncio.ensure_future(self._post_completion(payload))
        detach = cancel.add_callback(task.cancel)
        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if cancel.cancelled and (current is None or not current.cancelling()):
                raise RequestCancelled(f"Request to {self.provider} was cancelled.") from None
            raise
        finally:
            detach()

    async def _post_completion(self, payload: dict) -> ChatResponse:
        LOGGER.debug("POST %s (provider=%s, model=%s)", self.completions_url, self.provider, payload["model"])
        try:
            response = await self._transport.post(
                self.completions_url, json=payload, headers=self.config.headers()
            )
        except TRANSPORT_FAILURES as exc:
            raise classify_transport_failure(exc, provider=self.provider) from exc

        if not response.is_success:
            error = protocol_error(response)
            LOGGER.warning("%s completion failed with status %s", self.provider, error.status)
            raise error
        return parse_completion(response)

    # ------------------------------------------------------------------
    # Streaming completion
    # ------------------------------------------------------------------
    def stream(self, request: ChatRequest, cancel: Optional[CancelToken] = None) -> EventSource:
        """Start a background reader for *request* and return its event source.

        Must be called from inside a running event loop. The returned source yields
        ``chunk`` events followed by one ``done`` or ``error`` event, unless *cancel*
        fires first, in which case it simply closes.
        """

        payload = self._payload(request, stream=True)
        source = EventSource()
        if cancel is not None and cancel.cancelled:
            source.close()
            return source

        loop = asyncio.get_running_loop()
        task = loop.create_task(
            self._read_stream(payload, source, cancel),
            name=f"fluxcode-stream-{self.provider}",
        )
        source.attach(task)
        # runs even when the task is cancelled before its first step
        task.add_done_callback(lambda _task: source.close())
        if cancel is not None:
            detach = cancel.add_callback(task.cancel)
            task.add_done_callback(lambda _task: detach())
        return source

    async def _read_stream(
        self, payload: dict, source: EventSource, cancel: Optional[CancelToken]
    ) -> None:
        LOGGER.debug("POST %s (provider=%s, model=%s, stream)", self.completions_url, self.provider, payload["model"])
        finish_reason: Optional[str] = None
        try:
            async with self._transport.stream(
                "POST", self.completions_url, json=payload, headers=self.config.headers()
            ) as response:
                if not response.is_success:
                    await response.aread()
                    error = protocol_error(response)
                    LOGGER.warning("%s stream failed with status %s", self.provider, error.status)
                    source.put(StreamEvent.failed(error))
                    return

                async for line in response.aiter_lines():
                    data = sse_payload(line)
                    if data is None:
                        continue
                    if data == DONE_PAYLOAD:
                        source.put(StreamEvent.done(finish_reason))
                        return
                    fragments, reason = parse_stream_chunk(data)
                    if reason:
                        finish_reason = reason
                    for fragment in fragments:
                        source.put(StreamEvent.chunk(fragment))

            LOGGER.debug("%s stream ended without a [DONE] marker", self.provider)
            source.put(StreamEvent.done(finish_reason))
        except DecodeError as exc:
            LOGGER.warning("%s sent a malformed stream chunk: %s", self.provider, exc)
            source.put(StreamEvent.failed(exc))
        except TRANSPORT_FAILURES as exc:
            source.put(StreamEvent.failed(classify_transport_failure(exc, provider=self.provider)))
        except asyncio.CancelledError:
            if cancel is not None and cancel.cancelled:
                LOGGER.debug("%s stream cancelled by caller", self.provider)
                return
            raise

    # ------------------------------------------------------------------
    # Model discovery
    # ------------------------------------------------------------------
    async def list_models(self) -> List[str]:
        url = f"{self.config.endpoint}/models"
        try:
            response = await self._transport.get(url, headers=self.config.headers())
        except TRANSPORT_FAILURES as exc:
            raise classify_transport_failure(exc, provider=self.provider) from exc
        if not response.is_success:
            raise protocol_error(response)

        try:
            data = response.json()
        except ValueError as exc:
            raise DecodeError(f"{self.provider} returned a model list that is not JSON") from exc
        items = data.get("data") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise DecodeError(f"{self.provider} returned a model list without a 'data' array")
        return [str(item["id"]) for item in items if isinstance(item, dict) and item.get("id")]

    def _payload(self, request: ChatRequest, *, stream: bool) -> dict:
        if not request.messages:
            raise ValueError("A chat request needs at least one message.")
        return request.to_payload(model=self.config.model, stream=stream)


def sse_payload(line: str) -> Optional[str]:
    """Return the payload of an SSE ``data:`` line, or ``None`` for any other line."""

    if not line.startswith(DATA_MARKER):
        return None
    return line[len(DATA_MARKER):].strip()


def parse_stream_chunk(data: str) -> Tuple[List[str], Optional[str]]:
    """Decode one streamed JSON chunk into its non-empty text fragments and finish reason."""

    try:
        chunk = json.loads(data)
    except ValueError as exc:
        raise DecodeError(f"malformed stream chunk: {exc}") from exc
    if not isinstance(chunk, dict):
        raise DecodeError("stream chunk is not a JSON object")

    choices = chunk.get("choices")
    if not isinstance(choices, list):
        reported = chunk.get("error")
        if reported:
            message = reported.get("message") if isinstance(reported, dict) else reported
            raise DecodeError(f"provider reported an error mid-stream: {message}")
        raise DecodeError("stream chunk has no 'choices' list")

    fragments: List[str] = []
    finish_reason: Optional[str] = None
    for choice in choices:
        if not isinstance(choice, dict):
            raise DecodeError("stream choice is not a JSON object")
        delta = choice.get("delta") or {}
        if not isinstance(delta, dict):
            raise DecodeError("stream choice delta is not a JSON object")
        content = delta.get("content")
        if content is not None and not isinstance(content, str):
            raise DecodeError("stream delta content is not a string")
        if content:
            fragments.append(content)
        if choice.get("finish_reason"):
            finish_reason = str(choice["finish_reason"])
    return fragments, finish_reason


def parse_completion(response: httpx.Response) -> ChatResponse:
    try:
        data = response.json()
    except ValueError as exc:
        raise DecodeError(f"completion body is not valid JSON: {exc}") from exc
    if not isinstance(data, dict) or not isinstance(data.get("choices"), list):
        raise DecodeError("completion body has no 'choices' list")

    choices = data["choices"]
    if not choices:
        raise EmptyResponseError("provider returned no choices")
    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    if not isinstance(message, dict):
        raise DecodeError("first choice has no 'message' object")
    content = message.get("content")
    if content is None:
        content = ""
    if not isinstance(content, str):
        raise DecodeError("first choice content is not a string")
    return ChatResponse(
        content=content,
        finish_reason=first.get("finish_reason"),
        model=data.get("model"),
    )
