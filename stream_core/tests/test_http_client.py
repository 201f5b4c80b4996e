import json

import httpx
import pytest

from stream_core.domain.exceptions import CancellationError, ProtocolError, TransportError
from stream_core.domain.models import AbortSignal, ExchangeRequest
from stream_core.providers.http_client import HttpStreamClient, apply_credentials


class SettingsStub:
    http_timeout = 5.0


def _request(**overrides):
    params = dict(
        endpoint="http://stream.test/stream/chat",
        body={"prompt": "hi"},
        headers={"Authorization": "Bearer secret-token", "X-Trace": "1"},
    )
    params.update(overrides)
    return ExchangeRequest(**params)


async def _collect(client, request):
    return [chunk async for chunk in client.stream(request)]


@pytest.mark.asyncio
async def test_streams_body_and_sends_request():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["url"] = str(request.url)
        captured["headers"] = request.headers
        captured["json"] = json.loads(request.content)
        return httpx.Response(200, content=b'data: {"text":"a"}\n\n')

    client = HttpStreamClient(SettingsStub(), transport=httpx.MockTransport(handler))
    chunks = await _collect(client, _request())
    assert b"".join(chunks) == b'data: {"text":"a"}\n\n'
    assert captured["method"] == "POST"
    assert captured["url"] == "http://stream.test/stream/chat"
    assert captured["json"] == {"prompt": "hi"}
    assert captured["headers"]["content-type"] == "application/json"
    assert captured["headers"]["authorization"] == "Bearer secret-token"
    assert captured["headers"]["x-trace"] == "1"


@pytest.mark.asyncio
async def test_async_header_and_body_factories():
    captured = {}

    async def headers():
        return {"X-Dynamic": "yes"}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["headers"] = request.headers
        captured["json"] = json.loads(request.content)
        return httpx.Response(200, content=b"ok")

    client = HttpStreamClient(SettingsStub(), transport=httpx.MockTransport(handler))
    await _collect(client, _request(headers=headers, body=lambda: {"n": 1}))
    assert captured["headers"]["x-dynamic"] == "yes"
    assert captured["json"] == {"n": 1}


@pytest.mark.asyncio
async def test_credentials_omit_strips_auth_headers():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["headers"] = request.headers
        return httpx.Response(200, content=b"ok")

    client = HttpStreamClient(SettingsStub(), transport=httpx.MockTransport(handler))
    await _collect(client, _request(credentials="omit"))
    assert "authorization" not in captured["headers"]
    assert captured["headers"]["x-trace"] == "1"


def test_apply_credentials_passthrough():
    headers = {"Authorization": "x", "Cookie": "c"}
    assert apply_credentials(headers, "include") == headers
    assert apply_credentials(headers, "omit") == {}


@pytest.mark.asyncio
async def test_non_2xx_raises_transport_error():
    client = HttpStreamClient(
        SettingsStub(),
        transport=httpx.MockTransport(lambda request: httpx.Response(500, text="upstream down")),
    )
    with pytest.raises(TransportError) as exc_info:
        await _collect(client, _request())
    assert exc_info.value.code == "HTTP_ERROR"
    assert exc_info.value.http_status == 500
    assert "upstream down" in exc_info.value.message


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [204, 304])
async def test_no_content_raises_protocol_error(status):
    client = HttpStreamClient(SettingsStub(), transport=httpx.MockTransport(lambda request: httpx.Response(status)))
    with pytest.raises(ProtocolError) as exc_info:
        await _collect(client, _request())
    assert exc_info.value.code == "EMPTY_BODY"


@pytest.mark.asyncio
async def test_network_error_is_wrapped():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = HttpStreamClient(SettingsStub(), transport=httpx.MockTransport(handler))
    with pytest.raises(TransportError) as exc_info:
        await _collect(client, _request())
    assert exc_info.value.code == "NETWORK_ERROR"


@pytest.mark.asyncio
async def test_aborted_signal_before_request():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, content=b"ok")

    signal = AbortSignal()
    signal.abort()
    client = HttpStreamClient(SettingsStub(), transport=httpx.MockTransport(handler))
    with pytest.raises(CancellationError):
        await _collect(client, _request(signal=signal))
    assert calls == []
