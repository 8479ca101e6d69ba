import json

import anyio
import httpx
import pytest
from unittest.mock import MagicMock

from services.assistant_client import AssistantClientError, StudyAssistantClient

MESSAGES = [{"role": "user", "content": "Summarise the 2021 physics paper."}]


class RelayDouble:
    """Relay stand-in serving one scripted response per stream mode."""

    def __init__(self, streamed, buffered=None):
        self.streamed = streamed
        self.buffered = buffered
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append({"path": request.url.path, "headers": dict(request.headers), "body": body})
        return self.streamed() if body["stream"] else self.buffered()

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def plain_stream(*fragments, model="gpt-5-mini"):
    async def body():
        for fragment in fragments:
            yield fragment.encode("utf-8")

    return lambda: httpx.Response(
        200,
        headers={"content-type": "text/plain; charset=utf-8", "x-model-used": model},
        content=body(),
    )


def buffered_reply(reply, model="gpt-4o-mini"):
    return lambda: httpx.Response(200, json={"reply": reply, "model": model})


def make_client(relay, **kwargs):
    return StudyAssistantClient(
        "http://relay.test",
        api_key="anon-key",
        client=relay.client(),
        logger=MagicMock(),
        **kwargs,
    )


@pytest.mark.anyio
async def test_ask_returns_streamed_reply_and_model_header():
    """Given a healthy stream, ask() should assemble the fragments without a buffered call."""
    relay = RelayDouble(streamed=plain_stream("Newton's ", "second ", "law."))

    async with make_client(relay) as client:
        answer = await client.ask(MESSAGES)

    assert answer.text == "Newton's second law."
    assert answer.model == "gpt-5-mini"
    assert answer.streamed is True
    assert len(relay.requests) == 1
    assert relay.requests[0]["path"] == "/chatbot"
    assert relay.requests[0]["headers"]["apikey"] == "anon-key"
    assert relay.requests[0]["body"] == {"messages": MESSAGES, "stream": True}

@pytest.mark.anyio
async def test_ask_falls_back_to_buffered_on_error_status():
    relay = RelayDouble(
        streamed=lambda: httpx.Response(502, json={"error": "Upstream request failed"}),
        buffered=buffered_reply("Buffered answer."),
    )

    async with make_client(relay) as client:
        answer = await client.ask(MESSAGES)

    assert answer.text == "Buffered answer."
    assert answer.model == "gpt-4o-mini"
    assert answer.streamed is False
    assert [r["body"]["stream"] for r in relay.requests] == [True, False]

@pytest.mark.anyio
async def test_ask_falls_back_to_buffered_when_stream_times_out():
    """Given a stream slower than the wall-clock limit, ask() should abandon it and ask again buffered."""
    async def stalled():
        yield b"Partial"
        await anyio.sleep(5)
        yield b" never arrives"

    relay = RelayDouble(
        streamed=lambda: httpx.Response(200, headers={"x-model-used": "gpt-5-mini"}, content=stalled()),
        buffered=buffered_reply("Complete answer."),
    )

    async with make_client(relay, stream_timeout=0.05) as client:
        answer = await client.ask(MESSAGES)

    assert answer.text == "Complete answer."
    assert answer.streamed is False

@pytest.mark.anyio
async def test_ask_falls_back_to_buffered_on_transport_error():
    async def dropped():
        yield b"Half an ans"
        raise httpx.ReadError("connection reset")

    relay = RelayDouble(
        streamed=lambda: httpx.Response(200, content=dropped()),
        buffered=buffered_reply("Whole answer."),
    )

    async with make_client(relay) as client:
        answer = await client.ask(MESSAGES)

    assert answer.text == "Whole answer."

@pytest.mark.anyio
async def test_ask_raises_when_buffered_fallback_fails():
    relay = RelayDouble(
        streamed=lambda: httpx.Response(400, json={"error": "Invalid messages format", "details": "messages: Field required"}),
        buffered=lambda: httpx.Response(400, json={"error": "Invalid messages format", "details": "messages: Field required"}),
    )

    async with make_client(relay) as client:
        with pytest.raises(AssistantClientError) as exc_info:
            await client.ask(MESSAGES)

    assert exc_info.value.status_code == 400
    assert exc_info.value.error == "Invalid messages format"
    assert exc_info.value.details == "messages: Field required"

@pytest.mark.anyio
async def test_stream_reply_yields_fragments():
    relay = RelayDouble(streamed=plain_stream("a", "b", "c"))

    async with make_client(relay, endpoint="/ai-chat") as client:
        fragments = [fragment async for fragment in client.stream_reply(MESSAGES)]

    assert "".join(fragments) == "abc"
    assert relay.requests[0]["path"] == "/ai-chat"

@pytest.mark.anyio
async def test_stream_reply_raises_on_error_without_json_body():
    relay = RelayDouble(streamed=lambda: httpx.Response(503, text="Service Unavailable"))

    async with make_client(relay) as client:
        with pytest.raises(AssistantClientError) as exc_info:
            async for _ in client.stream_reply(MESSAGES):
                pass

    assert exc_info.value.status_code == 503
    assert exc_info.value.error == "Service Unavailable"

@pytest.mark.anyio
async def test_injected_client_is_not_modified():
    """Given a shared httpx client, the assistant client should send its URL and key per request only."""
    relay = RelayDouble(streamed=plain_stream("ok"))
    shared = httpx.AsyncClient(transport=httpx.MockTransport(relay.handler), base_url="http://other.test")

    client = StudyAssistantClient("http://relay.test/", api_key="anon-key", client=shared, logger=MagicMock())
    answer = await client.ask(MESSAGES)
    await client.aclose()

    assert answer.text == "ok"
    assert shared.base_url == httpx.URL("http://other.test/")
    assert "apikey" not in shared.headers
    assert not shared.is_closed
    assert relay.requests[0]["headers"]["apikey"] == "anon-key"
    assert relay.requests[0]["path"] == "/chatbot"
    await shared.aclose()
