"""Tests for request building and response handling in the provider façade."""

import asyncio

import httpx
import orjson
import pytest

from chatstream.config import ChatConfig, ProviderConfig, ProviderKind
from chatstream.models.request import ChatMessage
from chatstream.providers import ClaudeProvider, OpenAIProvider, ProviderRegistry
from chatstream.streaming.cancellation import CancellationToken
from chatstream.utils.exceptions import (
    ProviderConnectionError,
    ProviderHTTPError,
    RequestBuildError,
    StreamReadError,
)
from helpers import claude_delta, drain, openai_delta, sse

MESSAGES = [
    ChatMessage(role="user", content="Hi"),
    ChatMessage(role="assistant", content="Hello!"),
    ChatMessage(role="user", content="Say more"),
]

CLAUDE_BODY = "\n".join([
    "event: message_start",
    sse({"type": "message_start", "message": {"id": "msg_1"}}),
    "",
    "event: content_block_delta",
    claude_delta("Hello"),
    "",
    "event: content_block_delta",
    claude_delta(" world"),
    "",
    "event: message_stop",
    sse({"type": "message_stop"}),
    "",
]).encode()

OPENAI_BODY = "\n".join([
    openai_delta("Hello"),
    "",
    openai_delta("world", finish_reason="stop"),
    "",
    "data: [DONE]",
    "",
]).encode()


class Capture:
    """MockTransport handler that records requests and replays one response."""

    def __init__(self, status_code=200, body=b"", stream=None):
        self.status_code = status_code
        self.body = body
        self.stream = stream
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.stream is not None:
            return httpx.Response(self.status_code, stream=self.stream)
        return httpx.Response(
            self.status_code,
            content=self.body,
            headers={"content-type": "text/event-stream"},
        )

    @property
    def json(self) -> dict:
        return orjson.loads(self.requests[-1].content)


class BrokenStream(httpx.AsyncByteStream):
    """Body that drops the connection after one event."""

    def __init__(self):
        self.close_calls = 0

    async def __aiter__(self):
        yield claude_delta("Hel").encode() + b"\n\n"
        raise httpx.ReadError("connection reset by peer")

    async def aclose(self):
        self.close_calls += 1


def _config(kind, **overrides) -> ProviderConfig:
    values = {
        "name": "claude" if kind == ProviderKind.EVENT_TYPED else "openai",
        "kind": kind,
        "base_url": "https://api.example.com",
        "model": "test-model",
        "api_key": "sk-test",
        "max_tokens": 1024,
    }
    values.update(overrides)
    return ProviderConfig(**values)


def _claude(handler, **overrides) -> ClaudeProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ClaudeProvider(_config(ProviderKind.EVENT_TYPED, **overrides), client=client)


def _openai(handler, **overrides) -> OpenAIProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAIProvider(_config(ProviderKind.DELTA_TYPED, **overrides), client=client)


@pytest.mark.asyncio
async def test_claude_request_shape():
    capture = Capture(body=CLAUDE_BODY)
    provider = _claude(capture, system_prompt="Be brief.")

    await drain(await provider.stream(MESSAGES))

    request = capture.requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://api.example.com/v1/messages"
    assert request.headers["x-api-key"] == "sk-test"
    assert request.headers["anthropic-version"] == "2023-06-01"
    assert request.headers["content-type"] == "application/json"
    assert capture.json == {
        "model": "test-model",
        "max_tokens": 1024,
        "stream": True,
        "messages": [m.to_wire() for m in MESSAGES],
        "system": "Be brief.",
    }


@pytest.mark.asyncio
async def test_claude_omits_system_when_unset():
    capture = Capture(body=CLAUDE_BODY)

    await drain(await _claude(capture).stream(MESSAGES))

    assert "system" not in capture.json


@pytest.mark.asyncio
async def test_openai_request_shape_with_system_message():
    capture = Capture(body=OPENAI_BODY)
    provider = _openai(capture, base_url="https://api.example.com/v1/", system_prompt="Be brief.")

    await drain(await provider.stream(MESSAGES))

    request = capture.requests[0]
    assert str(request.url) == "https://api.example.com/v1/chat/completions"
    assert request.headers["authorization"] == "Bearer sk-test"
    assert request.headers["content-type"] == "application/json"
    body = capture.json
    assert body["model"] == "test-model"
    assert body["max_tokens"] == 1024
    assert body["stream"] is True
    assert body["messages"][0] == {"role": "system", "content": "Be brief."}
    assert body["messages"][1:] == [m.to_wire() for m in MESSAGES]


@pytest.mark.asyncio
async def test_openai_without_system_or_key():
    capture = Capture(body=OPENAI_BODY)
    provider = _openai(capture, api_key=None)

    await drain(await provider.stream(MESSAGES))

    assert "authorization" not in capture.requests[0].headers
    assert capture.json["messages"] == [m.to_wire() for m in MESSAGES]
    assert provider.is_configured()


@pytest.mark.asyncio
async def test_claude_stream_end_to_end():
    provider = _claude(Capture(body=CLAUDE_BODY))

    chunks = await drain(await provider.stream(MESSAGES))

    assert [c.content for c in chunks] == ["Hello", " world", ""]
    assert chunks[-1].done is True
    assert all(c.provider == "claude" for c in chunks)


@pytest.mark.asyncio
async def test_openai_stream_end_to_end():
    provider = _openai(Capture(body=OPENAI_BODY))

    chunks = await drain(await provider.stream(MESSAGES))

    assert len(chunks) >= 3
    assert [c.content for c in chunks[:2]] == ["Hello", "world"]
    assert chunks[-1].done is True


@pytest.mark.asyncio
async def test_unauthorized_raises_before_stream():
    capture = Capture(status_code=401, body=b'{"error":{"message":"invalid x-api-key"}}')
    provider = _claude(capture)

    with pytest.raises(ProviderHTTPError) as exc_info:
        await provider.stream(MESSAGES)

    assert exc_info.value.status_code == 401
    assert "401" in str(exc_info.value)
    assert "invalid x-api-key" in str(exc_info.value)
    assert exc_info.value.provider == "claude"
    assert provider.active_streams == 0


@pytest.mark.asyncio
async def test_server_error_raises_for_openai():
    provider = _openai(Capture(status_code=503, body=b"upstream unavailable"))

    with pytest.raises(ProviderHTTPError, match="503"):
        await provider.stream(MESSAGES)


@pytest.mark.asyncio
async def test_connection_failure_raises():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderConnectionError, match="connection refused"):
        await _claude(refuse).stream(MESSAGES)


@pytest.mark.asyncio
async def test_cancelled_token_raises_before_send():
    capture = Capture(body=CLAUDE_BODY)
    token = CancellationToken()
    token.cancel()

    with pytest.raises(ProviderConnectionError, match="cancelled"):
        await _claude(capture).stream(MESSAGES, token=token)

    assert capture.requests == []


@pytest.mark.asyncio
async def test_unserializable_payload_is_request_error():
    class BadPayloadProvider(ClaudeProvider):
        def _build_payload(self, messages):
            return {"messages": {object()}}

    capture = Capture(body=CLAUDE_BODY)
    client = httpx.AsyncClient(transport=httpx.MockTransport(capture))
    provider = BadPayloadProvider(_config(ProviderKind.EVENT_TYPED), client=client)

    with pytest.raises(RequestBuildError, match="marshal"):
        await provider.stream(MESSAGES)

    assert capture.requests == []


@pytest.mark.asyncio
async def test_read_error_arrives_as_chunk():
    stream = BrokenStream()
    provider = _claude(Capture(stream=stream))

    chunks = await drain(await provider.stream(MESSAGES))

    assert chunks[0].content == "Hel"
    assert isinstance(chunks[-1].error, StreamReadError)
    assert stream.close_calls == 1


@pytest.mark.asyncio
async def test_active_streams_tracked():
    provider = _openai(Capture(body=OPENAI_BODY))

    handle = await provider.stream(MESSAGES)
    assert provider.active_streams == 1

    await drain(handle)
    await handle.wait_closed()
    assert provider.active_streams == 0


@pytest.mark.asyncio
async def test_registry_builds_by_kind():
    config = ChatConfig(
        default_provider="work",
        providers={
            "work": _config(ProviderKind.EVENT_TYPED, name="work"),
            "local": _config(ProviderKind.DELTA_TYPED, name="local", api_key=None),
        },
    )
    registry = ProviderRegistry.from_config(config)

    assert isinstance(registry.get_provider("work"), ClaudeProvider)
    assert isinstance(registry.get_provider("local"), OpenAIProvider)
    assert registry.get_default() is registry.get_provider("work")
    assert sorted(registry.get_provider_names()) == ["local", "work"]
    assert registry.get_provider("missing") is None

    await registry.cleanup(timeout=0)
    assert registry.get_provider_names() == []


@pytest.mark.asyncio
async def test_registry_cleanup_waits_for_streams():
    client = httpx.AsyncClient(transport=httpx.MockTransport(Capture(body=OPENAI_BODY)))
    registry = ProviderRegistry()
    registry.load([_config(ProviderKind.DELTA_TYPED)], client=client)
    provider = registry.get_provider("openai")

    handle = await provider.stream(MESSAGES)
    chunks = await drain(handle)
    await registry.cleanup(timeout=1.0)

    assert chunks[-1].done is True
    assert provider.active_streams == 0
    # Injected clients stay open for their owner
    assert not client.is_closed
    await client.aclose()


class StalledStream(httpx.AsyncByteStream):
    """Body that never delivers a byte."""

    def __init__(self):
        self.close_calls = 0

    async def __aiter__(self):
        await asyncio.sleep(3600)
        yield b""

    async def aclose(self):
        self.close_calls += 1


@pytest.mark.asyncio
async def test_unset_max_tokens_sends_default():
    capture = Capture(body=CLAUDE_BODY)
    config = ProviderConfig(
        name="claude",
        kind=ProviderKind.EVENT_TYPED,
        base_url="https://api.example.com",
        model="test-model",
        api_key="sk-test",
    )
    client = httpx.AsyncClient(transport=httpx.MockTransport(capture))

    await drain(await ClaudeProvider(config, client=client).stream(MESSAGES))

    assert capture.json["max_tokens"] == 4096


@pytest.mark.asyncio
async def test_cancel_interrupts_stalled_error_body():
    stream = StalledStream()
    provider = _claude(Capture(status_code=500, stream=stream))
    token = CancellationToken()

    task = asyncio.create_task(provider.stream(MESSAGES, token=token))
    await asyncio.sleep(0.05)
    token.cancel()

    with pytest.raises(ProviderConnectionError, match="cancelled"):
        await asyncio.wait_for(task, timeout=1.0)
    assert stream.close_calls == 1
