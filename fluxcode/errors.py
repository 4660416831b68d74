"""Closed error vocabulary for chat providers and the retryability predicate."""

from __future__ import annotations

from typing import Optional

import httpx

BODY_LIMIT = 512

# InvalidURL and StreamError sit outside the httpx.HTTPError tree
TRANSPORT_FAILURES = (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError)


class ModelClientError(RuntimeError):
    """Base exception raised for chat provider errors."""


class TransportError(ModelClientError):
    """Raised when the provider cannot be reached or the connection breaks mid-read."""


class ProtocolError(ModelClientError):
    """Raised when the provider answers with a non-2xx status."""

    def __init__(self, status: int, body: str = "", *, retry_after: Optional[float] = None) -> None:
        self.status = status
        self.body = body
        self.retry_after = retry_after
        detail = f": {body}" if body else ""
        super().__init__(f"provider returned status {status}{detail}")


class DecodeError(ModelClientError):
    """Raised when a 2xx body or stream chunk does not have the expected shape."""


class EmptyResponseError(ModelClientError):
    """Raised when a well-formed completion carries no choices."""


class ConfigurationError(ModelClientError):
    """Raised before any network activity when a provider cannot be built."""

    def __init__(self, provider_name: str, message: Optional[str] = None) -> None:
        self.provider_name = provider_name
        super().__init__(message or f"provider '{provider_name}' is not configured")


class RequestCancelled(Exception):
    """Raised by non-streaming calls when the caller cancels them.

    Not a :class:`ModelClientError`, so a cancellation is never reported as a provider fault.
    """


def is_retryable(error: Optional[BaseException]) -> bool:
    """Return ``True`` only for rate limiting (429) and server-side (5xx) protocol errors."""

    if isinstance(error, ProtocolError):
        return error.status == 429 or 500 <= error.status <= 599
    return False


def truncate_body(text: str, limit: int = BODY_LIMIT) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a ``Retry-After`` header given in seconds. HTTP-date values are ignored."""

    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def protocol_error(response: httpx.Response) -> ProtocolError:
    """Build a :class:`ProtocolError` from a response whose body has already been read."""

    try:
        body = response.text
    except (httpx.ResponseNotRead, UnicodeDecodeError):
        body = ""
    return ProtocolError(
        response.status_code,
        truncate_body(body),
        retry_after=parse_retry_after(response.headers.get("retry-after")),
    )


def classify_transport_failure(exc: Exception, *, provider: str = "") -> TransportError:
    """Wrap an httpx failure raised while talking to *provider*."""

    where = f" talking to {provider}" if provider else ""
    if isinstance(exc, httpx.TimeoutException):
        message = f"timed out{where}"
    elif isinstance(exc, httpx.ConnectError):
        message = f"unable to connect{where}"
    elif isinstance(exc, httpx.RemoteProtocolError):
        message = f"connection closed unexpectedly{where}"
    elif isinstance(exc, httpx.InvalidURL):
        message = f"invalid request URL{where}"
    else:
        message = f"transport failure{where}"
    detail = str(exc)
    if detail:
        message = f"{message}: {detail}"
    return TransportError(message)
