"""
Tests for news_relay.ws_server.server

Request routing and the per-client handler are exercised with fakes; one
test runs the real server on an ephemeral port.
"""
import asyncio
import json
from unittest.mock import MagicMock

import pytest
from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosedError
from websockets.frames import Close
from websockets.protocol import State

from news_relay.service import RelayStatus
from news_relay.upstream.normalizer import normalize_news
from news_relay.ws_server.registry import SubscriberRegistry
from news_relay.ws_server.server import NewsWebSocketServer


# ── Helpers ───────────────────────────────────────────────────────────────────

STATUS = RelayStatus(
    subscribers=2,
    messages_relayed=7,
    last_message_age="never",
    uptime_seconds=12.5,
    upstream_connected=True,
)


class FakeClientConnection:
    """Server-side connection that yields queued frames, then closes."""

    def __init__(self, incoming=(), *, error=None):
        self.state = State.OPEN
        self.remote_address = ("203.0.113.7", 50123)
        self.incoming = list(incoming)
        self.error = error
        self.sent = []

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for frame in self.incoming:
            yield frame
        if self.error is not None:
            raise self.error
        self.state = State.CLOSED

    async def send(self, message):
        self.sent.append(json.loads(message))

    async def close(self, code=1000, reason=""):
        self.state = State.CLOSED


def _request(path):
    request = MagicMock()
    request.path = path
    return request


@pytest.fixture
def registry():
    return SubscriberRegistry()


@pytest.fixture
def server(registry):
    return NewsWebSocketServer(registry, lambda: STATUS, host="127.0.0.1", port=0)


# ── process_request ───────────────────────────────────────────────────────────

def test_health_returns_status_json(server):
    response = server._process_request(MagicMock(), _request("/health"))

    assert response.status_code == 200
    assert response.headers["Content-Type"] == "application/json"
    assert json.loads(response.body) == {
        "status": "ok",
        "clients": 2,
        "messages": 7,
        "lastMessage": "never",
        "uptime": 12.5,
        "upstreamConnected": True,
    }


def test_health_ignores_query_string(server):
    response = server._process_request(MagicMock(), _request("/health?probe=1"))
    assert response.status_code == 200


def test_stream_path_continues_handshake(server):
    assert server._process_request(MagicMock(), _request("/ws")) is None


def test_unknown_path_is_404(server):
    response = server._process_request(MagicMock(), _request("/other"))
    assert response.status_code == 404


# ── _handle_client ────────────────────────────────────────────────────────────

async def test_client_registered_for_its_lifetime(server, registry):
    seen_sizes = []

    class Watching(FakeClientConnection):
        async def _iterate(self):
            seen_sizes.append(registry.size())
            yield '{"type": "ping"}'
            self.state = State.CLOSED

    conn = Watching()

    await server._handle_client(conn)

    assert seen_sizes == [1]
    assert registry.size() == 0
    # Inbound frames are ignored: only the welcome item was sent
    assert [m["id"] for m in conn.sent] == ["welcome"]


async def test_client_error_deregisters(server, registry, caplog):
    conn = FakeClientConnection(error=ConnectionClosedError(Close(1006, ""), None))

    await server._handle_client(conn)

    assert registry.size() == 0
    assert "203.0.113.7:50123" in caplog.text


async def test_stop_without_start_is_noop(server):
    await server.stop()


# ── Live server ───────────────────────────────────────────────────────────────

async def test_live_server_sends_welcome_then_broadcast(registry):
    server = NewsWebSocketServer(registry, lambda: STATUS, host="127.0.0.1", port=0)
    await server.start()
    port = next(iter(server._server.sockets)).getsockname()[1]

    try:
        async with connect(f"ws://127.0.0.1:{port}/ws") as client:
            welcome = json.loads(await asyncio.wait_for(client.recv(), 1))
            assert welcome["id"] == "welcome"

            loop = asyncio.get_running_loop()
            deadline = loop.time() + 1
            while registry.size() == 0 and loop.time() < deadline:
                await asyncio.sleep(0.005)

            await registry.broadcast(normalize_news({"id": "n1", "text": "$BTC airdrop"}))
            item = json.loads(await asyncio.wait_for(client.recv(), 1))
            assert item["id"] == "n1"
            assert item["category"] == "airdrop"
            assert item["tokens"] == ["BTC"]
    finally:
        await server.stop()
