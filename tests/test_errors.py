import httpx
import pytest

from fluxcode.errors import (
    ConfigurationError,
    DecodeError,
    EmptyResponseError,
    ModelClientError,
    ProtocolError,
    RequestCancelled,
    TransportError,
    classify_transport_failure,
    is_retryable,
    parse_retry_after,
    protocol_error,
    truncate_body,
)


@pytest.mark.parametrize("status", [429, 500, 502, 503, 599])
def test_rate_limit_and_server_errors_are_retryable(status):
    assert is_retryable(ProtocolError(status))


@pytest.mark.parametrize("status", [400, 401, 403, 404, 422, 600])
def test_client_errors_are_not_retryable(status):
    assert not is_retryable(ProtocolError(status))


@pytest.mark.parametrize(
    "error",
    [
        None,
        TransportError("reset"),
        DecodeError("bad"),
        EmptyResponseError("none"),
        ConfigurationError("x"),
        RequestCancelled("stop"),
        ValueError("other"),
    ],
)
def test_other_failures_are_not_retryable(error):
    assert not is_retryable(error)


def test_classified_errors_share_the_base_class():
    for error in (TransportError("t"), ProtocolError(500), DecodeError("d"), EmptyResponseError("e"), ConfigurationError("p")):
        assert isinstance(error, ModelClientError)
    assert not isinstance(RequestCancelled(), ModelClientError)


def test_configuration_error_keeps_provider_name():
    error = ConfigurationError("unknown-provider")

    assert error.provider_name == "unknown-provider"
    assert "unknown-provider" in str(error)


def test_protocol_error_message_includes_status_and_body():
    error = ProtocolError(404, "model not found")

    assert str(error) == "provider returned status 404: model not found"


def test_truncate_body_limits_length():
    assert truncate_body("  short  ") == "short"
    assert truncate_body("a" * 600) == "a" * 512 + "..."
    assert truncate_body(None) == ""


@pytest.mark.parametrize(
    "value, expected",
    [("12", 12.0), ("0.5", 0.5), (None, None), ("", None), ("-3", None), ("Wed, 21 Oct 2015 07:28:00 GMT", None)],
)
def test_parse_retry_after(value, expected):
    assert parse_retry_after(value) == expected


def test_protocol_error_from_response():
    response = httpx.Response(503, text="busy", headers={"Retry-After": "3"})

    error = protocol_error(response)

    assert (error.status, error.body, error.retry_after) == (503, "busy", 3.0)


def test_classify_transport_failure_messages():
    request = httpx.Request("POST", "http://provider.test/v1/chat/completions")

    timeout = classify_transport_failure(httpx.ReadTimeout("slow", request=request), provider="groq")
    connect = classify_transport_failure(httpx.ConnectError("refused", request=request))
    closed = classify_transport_failure(httpx.RemoteProtocolError("eof", request=request))

    assert str(timeout) == "timed out talking to groq: slow"
    assert str(connect) == "unable to connect: refused"
    assert str(closed).startswith("connection closed unexpectedly")
    assert all(isinstance(error, TransportError) for error in (timeout, connect, closed))


def test_invalid_url_is_classified_as_transport_error():
    error = classify_transport_failure(httpx.InvalidURL("Invalid port"), provider="custom")

    assert isinstance(error, TransportError)
    assert str(error).startswith("invalid request URL talking to custom")
