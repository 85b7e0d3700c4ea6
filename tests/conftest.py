"""Shared fixtures: a fake Groq upstream and an ASGI client for the relay."""

from typing import Callable, List

import httpx
import pytest
import pytest_asyncio

from nova_relay import main
from nova_relay.services.relay_service import RelayService


@pytest.fixture
def upstream_requests() -> List[httpx.Request]:
    """Every request the fake Groq received, in order."""
    return []


@pytest.fixture
def make_relay(upstream_requests) -> Callable[..., RelayService]:
    """Build a RelayService whose Groq is the given handler(request) -> httpx.Response."""

    def factory(handler) -> RelayService:
        def recording_handler(request: httpx.Request):
            upstream_requests.append(request)
            return handler(request)

        return RelayService(
            api_key="test-key",
            api_url="https://groq.test/openai/v1/chat/completions",
            default_model="llama-3.1-8b-instant",
            max_tokens=1000,
            temperature=0.7,
            transport=httpx.MockTransport(recording_handler),
        )

    return factory


@pytest_asyncio.fixture
async def relay_client(monkeypatch, make_relay):
    """
    connect(handler) -> httpx.AsyncClient talking to the FastAPI app, with the
    app's relay service wired to a fake Groq.
    """
    clients = []
    relays = []

    def connect(handler) -> httpx.AsyncClient:
        relay = make_relay(handler)
        relays.append(relay)
        monkeypatch.setattr(main, "relay_service", relay)
        client = httpx.AsyncClient(
            transport=httpx.ASGITransport(app=main.app),
            base_url="http://relay.test",
        )
        clients.append(client)
        return client

    yield connect

    for client in clients:
        await client.aclose()
    for relay in relays:
        await relay.aclose()
