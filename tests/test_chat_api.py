"""HTTP API tests: POST /chat/stream, CORS, /agents, /health."""

import json

import httpx
import pytest

from nova_relay import main
from nova_relay.models import ChatRequest
from nova_relay.services.agent_profiles import get_agent_profile
from nova_relay.services.relay_service import STREAM_FALLBACK_MESSAGE

from helpers import ChunkedStream, groq_body, parse_sse

HI = {"messages": [{"role": "user", "content": "hi"}]}


def streaming_groq(*deltas):
    return lambda request: httpx.Response(200, content=groq_body(*deltas))


@pytest.mark.asyncio
async def test_chat_stream_relays_sse(relay_client):
    client = relay_client(streaming_groq("Hel", "lo"))

    resp = await client.post("/chat/stream", json={**HI, "agentId": "nova-coder"})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    assert resp.headers["cache-control"] == "no-cache"
    assert resp.headers["connection"] == "keep-alive"
    assert parse_sse(resp.content) == [{"content": "Hel"}, {"content": "lo"}, {"done": True}]


@pytest.mark.asyncio
async def test_unknown_agent_still_streams_with_default_prompt(relay_client, upstream_requests):
    client = relay_client(streaming_groq("ok"))

    resp = await client.post("/chat/stream", json={**HI, "agentId": "unknown-agent"})

    assert resp.status_code == 200
    assert parse_sse(resp.content)[-1] == {"done": True}
    sent = json.loads(upstream_requests[0].content)
    assert sent["messages"][0] == {"role": "system", "content": get_agent_profile(None).system_prompt}
    assert sent["messages"][1:] == HI["messages"]


@pytest.mark.asyncio
async def test_pass_through_fields_are_accepted(relay_client):
    client = relay_client(streaming_groq("ok"))

    resp = await client.post(
        "/chat/stream",
        json={
            **HI,
            "agentId": "nova-researcher",
            "agentType": "researcher",
            "conversationId": "c-1",
            "thinkingStyle": "deep",
            "userId": "u-1",
        },
    )

    assert resp.status_code == 200


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {},
        {"messages": []},
        {"messages": "hi"},
        {"messages": [{"role": "robot", "content": "hi"}]},
        {"messages": [{"role": "user"}]},
    ],
)
async def test_invalid_body_is_rejected_without_stream(relay_client, upstream_requests, body):
    client = relay_client(streaming_groq("never"))

    resp = await client.post("/chat/stream", json=body)

    assert resp.status_code == 422
    assert not resp.headers["content-type"].startswith("text/event-stream")
    assert upstream_requests == []


@pytest.mark.asyncio
async def test_system_only_conversation_is_400(relay_client, upstream_requests):
    client = relay_client(streaming_groq("never"))

    resp = await client.post("/chat/stream", json={"messages": [{"role": "system", "content": "x"}]})

    assert resp.status_code == 400
    assert upstream_requests == []


@pytest.mark.asyncio
async def test_upstream_error_status_before_stream(relay_client):
    client = relay_client(lambda request: httpx.Response(401, text="Invalid API Key"))

    resp = await client.post("/chat/stream", json=HI)

    assert resp.status_code == 502
    detail = resp.json()["detail"]
    assert detail["upstream_status"] == 401
    assert detail["upstream_body"] == "Invalid API Key"
    assert "401" in detail["error"]


@pytest.mark.asyncio
async def test_upstream_rate_limit_maps_to_429(relay_client):
    client = relay_client(lambda request: httpx.Response(429, text="Rate limit reached"))

    resp = await client.post("/chat/stream", json=HI)

    assert resp.status_code == 429
    detail = resp.json()["detail"]
    assert detail["error"] == main.RATE_LIMIT_MESSAGE
    assert detail["upstream_status"] == 429


@pytest.mark.asyncio
async def test_upstream_unreachable_is_503(relay_client):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = relay_client(refuse)

    resp = await client.post("/chat/stream", json=HI)

    assert resp.status_code == 503


@pytest.mark.asyncio
async def test_upstream_failure_mid_stream_ends_with_done(relay_client):
    stream = ChunkedStream([groq_body("partial", done=False), b"never sent"], fail_after=1)
    client = relay_client(lambda request: httpx.Response(200, stream=stream))

    resp = await client.post("/chat/stream", json=HI)

    assert resp.status_code == 200
    assert parse_sse(resp.content) == [
        {"content": "partial"},
        {"content": STREAM_FALLBACK_MESSAGE},
        {"done": True},
    ]
    assert stream.closed


@pytest.mark.asyncio
async def test_relay_not_initialized_is_503(monkeypatch):
    monkeypatch.setattr(main, "relay_service", None)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=main.app), base_url="http://relay.test") as client:
        resp = await client.post("/chat/stream", json=HI)
    assert resp.status_code == 503


# -----------------------------------------------------------------------------
# CORS
# -----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_bare_options_returns_200_with_cors_headers(relay_client):
    client = relay_client(streaming_groq())

    resp = await client.options("/chat/stream")

    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "*"
    assert "POST" in resp.headers["access-control-allow-methods"]
    assert "content-type" in resp.headers["access-control-allow-headers"]


@pytest.mark.asyncio
async def test_browser_preflight_gets_wildcard_origin(relay_client):
    client = relay_client(streaming_groq())

    resp = await client.options(
        "/chat/stream",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "content-type, authorization",
        },
    )

    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "*"
    assert "POST" in resp.headers["access-control-allow-methods"]


@pytest.mark.asyncio
async def test_stream_response_carries_cors_origin(relay_client):
    client = relay_client(streaming_groq("x"))

    resp = await client.post("/chat/stream", json=HI, headers={"Origin": "http://localhost:5173"})

    assert resp.headers["access-control-allow-origin"] == "*"


# -----------------------------------------------------------------------------
# DISCOVERY
# -----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_agents_lists_profiles_without_prompts(relay_client):
    client = relay_client(streaming_groq())

    resp = await client.get("/agents")

    assert resp.status_code == 200
    agents = resp.json()
    assert agents[0]["key"] == "nova-assistant"
    assert all("system_prompt" not in a for a in agents)
    researcher = next(a for a in agents if a["key"] == "researcher")
    assert researcher["max_response_time"] == 60
    assert "nova-researcher" in researcher["aliases"]


@pytest.mark.asyncio
async def test_health_and_root(relay_client):
    client = relay_client(streaming_groq())

    health = await client.get("/health")
    root = await client.get("/")

    assert health.json() == {"status": "healthy", "relay_service": True}
    assert "/chat/stream" in root.json()["endpoints"]


@pytest.mark.asyncio
async def test_response_releases_upstream_when_body_is_never_sent(make_relay, monkeypatch):
    stream = ChunkedStream([groq_body("unsent")])
    monkeypatch.setattr(main, "relay_service", make_relay(lambda request: httpx.Response(200, stream=stream)))

    response = await main.chat_stream(ChatRequest.model_validate(HI))
    # Client gone before the first chunk: only the background task runs.
    await response.background()

    assert stream.closed
    await main.relay_service.aclose()
