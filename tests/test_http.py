"""Tests for perplexity_mcp/main.py — POST routing, SSE event stream, health."""
import asyncio
import json
from unittest.mock import MagicMock

import httpx
import pytest

from perplexity_mcp.main import _event_stream, create_app
from perplexity_mcp.manager import SessionManager
from perplexity_mcp.transports import StreamTransport

from conftest import FakeServer

PING = {"jsonrpc": "2.0", "id": 1, "method": "ping"}


def _client(manager):
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=create_app(manager)), base_url="http://test")


async def _settle(rounds=5):
    for _ in range(rounds):
        await asyncio.sleep(0)


class TestPostMessage:
    @pytest.mark.asyncio
    async def test_accepted(self, fake_server):
        manager = SessionManager(fake_server)
        session = manager.open_session(StreamTransport())
        async with _client(manager) as client:
            resp = await client.post(f"/messages?sessionId={session.session_id}", json=PING)
        assert resp.status_code == 202
        assert resp.text == "Accepted"
        await _settle()
        assert fake_server.received[0].message.root.id == 1
        await manager.shutdown(timeout=1)

    @pytest.mark.asyncio
    async def test_unknown_session(self, fake_server):
        manager = SessionManager(fake_server)
        async with _client(manager) as client:
            resp = await client.post("/messages?sessionId=deadbeef", json=PING)
        assert resp.status_code == 404
        assert resp.json() == {"detail": "Session not found"}

    @pytest.mark.asyncio
    async def test_missing_session_id(self, fake_server):
        manager = SessionManager(fake_server)
        manager.open_session(StreamTransport())
        async with _client(manager) as client:
            resp = await client.post("/messages", json=PING)
        assert resp.status_code == 404
        await manager.shutdown(timeout=1)

    @pytest.mark.asyncio
    async def test_closed_session(self, fake_server):
        manager = SessionManager(fake_server)
        session = manager.open_session(StreamTransport())
        manager.close_session(session.session_id)
        async with _client(manager) as client:
            resp = await client.post(f"/messages?sessionId={session.session_id}", json=PING)
        assert resp.status_code == 404
        assert fake_server.received == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [b"not json", b'{"hello": "world"}', b""])
    async def test_unparseable_body(self, fake_server, body):
        manager = SessionManager(fake_server)
        session = manager.open_session(StreamTransport())
        async with _client(manager) as client:
            resp = await client.post(
                f"/messages?sessionId={session.session_id}",
                content=body,
                headers={"content-type": "application/json"},
            )
        assert resp.status_code == 400
        assert resp.json() == {"detail": "Could not parse message"}
        assert fake_server.received == []
        # The session survives a bad message
        assert manager.lookup(session.session_id) is session
        await manager.shutdown(timeout=1)


class TestSseRoute:
    @pytest.mark.asyncio
    async def test_open_failure_is_500(self, fake_server):
        manager = SessionManager(fake_server)
        manager.open_session = MagicMock(side_effect=RuntimeError("boom"))
        async with _client(manager) as client:
            resp = await client.get("/sse")
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Failed to establish SSE connection"}


class TestEventStream:
    @pytest.mark.asyncio
    async def test_endpoint_then_messages(self):
        manager = SessionManager(FakeServer(echo=True))
        session = manager.open_session(StreamTransport())
        stream = _event_stream(manager, session)

        first = await stream.__anext__()
        assert first == {"event": "endpoint", "data": f"/messages?sessionId={session.session_id}"}

        async with _client(manager) as client:
            post = asyncio.create_task(client.post(f"/messages?sessionId={session.session_id}", json=PING))
            event = await stream.__anext__()
            resp = await post
        assert resp.status_code == 202
        assert event["event"] == "message"
        assert json.loads(event["data"]) == PING

        manager.close_session(session.session_id)
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()
        await asyncio.gather(session.server_task, return_exceptions=True)

    @pytest.mark.asyncio
    async def test_disconnect_closes_session(self, fake_server):
        manager = SessionManager(fake_server)
        session = manager.open_session(StreamTransport())
        stream = _event_stream(manager, session)
        await stream.__anext__()
        assert manager.session_count == 1

        await stream.aclose()

        assert manager.session_count == 0
        assert not session.is_active
        await asyncio.gather(session.server_task, return_exceptions=True)


class TestHealth:
    @pytest.mark.asyncio
    async def test_counts_sessions(self, fake_server):
        manager = SessionManager(fake_server)
        async with _client(manager) as client:
            assert (await client.get("/health")).json() == {"ok": True, "sessions": 0}
            manager.open_session(StreamTransport())
            manager.open_session(StreamTransport())
            assert (await client.get("/health")).json() == {"ok": True, "sessions": 2}
        await manager.shutdown(timeout=1)
