"""Tests for difftail.stream.server — WebSocket transport end to end."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import pytest_asyncio
from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake

from difftail.observability import Collector, SubscriberConnected
from difftail.stream.hub import BroadcastHub
from difftail.stream.protocol import MessageHandler
from difftail.stream.server import SLOW_CONSUMER_CLOSE, TransportServer

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def hub() -> AsyncIterator[BroadcastHub]:
    hub = BroadcastHub()
    hub.start()
    yield hub
    await hub.stop()


@pytest_asyncio.fixture
async def server(
    hub: BroadcastHub, log_file: Path, collector: Collector,
) -> AsyncIterator[TransportServer]:
    server = TransportServer(
        hub, MessageHandler(log_file, "file"), host="127.0.0.1", port=0, collector=collector,
    )
    await server.start()
    yield server
    await server.stop()


def _url(server: TransportServer, path: str = "/ws") -> str:
    return f"ws://127.0.0.1:{server.port}{path}"


async def _request(ws: object, message: dict) -> dict:
    await ws.send(json.dumps(message))  # type: ignore[attr-defined]
    return json.loads(await asyncio.wait_for(ws.recv(), timeout=5.0))  # type: ignore[attr-defined]


async def _wait_until(predicate: object, timeout: float = 5.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():  # type: ignore[operator]
        if asyncio.get_running_loop().time() > deadline:
            msg = "condition not met"
            raise AssertionError(msg)
        await asyncio.sleep(0.01)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestRequests:
    """Inbound requests get replies on the same connection."""

    @pytest.mark.asyncio
    async def test_ping(self, server: TransportServer) -> None:
        async with connect(_url(server)) as ws:
            assert await _request(ws, {"type": "ping"}) == {"type": "pong"}

    @pytest.mark.asyncio
    async def test_get_info(self, server: TransportServer, log_file: Path) -> None:
        async with connect(_url(server)) as ws:
            reply = await _request(ws, {"type": "get_info"})
        assert reply["type"] == "info"
        assert reply["data"]["path"] == str(log_file)

    @pytest.mark.asyncio
    async def test_get_file_content(self, server: TransportServer, log_file: Path) -> None:
        async with connect(_url(server)) as ws:
            reply = await _request(ws, {"type": "get_file_content", "data": str(log_file)})
        assert reply == {"type": "file_content", "data": "line one\nline two\n"}

    @pytest.mark.asyncio
    async def test_bad_message_keeps_connection(self, server: TransportServer) -> None:
        async with connect(_url(server)) as ws:
            await ws.send("{not json")
            error = json.loads(await asyncio.wait_for(ws.recv(), timeout=5.0))
            assert error["type"] == "error"

            unknown = await _request(ws, {"type": "nope"})
            assert unknown["type"] == "error"
            assert "unknown message type" in unknown["data"]

            assert await _request(ws, {"type": "ping"}) == {"type": "pong"}

    @pytest.mark.asyncio
    async def test_wrong_path_rejected(self, server: TransportServer) -> None:
        with pytest.raises(InvalidHandshake):
            async with connect(_url(server, "/elsewhere")):
                pass


class TestBroadcast:
    """Hub messages reach every connected client."""

    @pytest.mark.asyncio
    async def test_publish_reaches_all_clients(
        self, server: TransportServer, hub: BroadcastHub,
    ) -> None:
        async with connect(_url(server)) as a, connect(_url(server)) as b:
            # A round trip proves each connection is registered
            await _request(a, {"type": "ping"})
            await _request(b, {"type": "ping"})
            assert hub.subscriber_count == 2

            hub.publish('{"type":"log","data":1}')
            hub.publish('{"type":"log","data":2}')
            for ws in (a, b):
                first = json.loads(await asyncio.wait_for(ws.recv(), timeout=5.0))
                second = json.loads(await asyncio.wait_for(ws.recv(), timeout=5.0))
                assert (first["data"], second["data"]) == (1, 2)

    @pytest.mark.asyncio
    async def test_disconnect_unregisters(
        self, server: TransportServer, hub: BroadcastHub, collector: Collector,
    ) -> None:
        async with connect(_url(server)) as ws:
            await _request(ws, {"type": "ping"})
            assert hub.subscriber_count == 1
        await _wait_until(lambda: hub.subscriber_count == 0)
        assert len(collector.log.query(event_type=SubscriberConnected)) == 1

    @pytest.mark.asyncio
    async def test_dropped_subscriber_connection_closed(
        self, server: TransportServer, hub: BroadcastHub,
    ) -> None:
        async with connect(_url(server)) as ws:
            await _request(ws, {"type": "ping"})
            (subscriber,) = hub.get_subscribers()
            assert hub.drop(subscriber)

            with pytest.raises(ConnectionClosed) as exc_info:
                await asyncio.wait_for(ws.recv(), timeout=5.0)
        assert exc_info.value.rcvd is not None
        assert exc_info.value.rcvd.code == SLOW_CONSUMER_CLOSE

    @pytest.mark.asyncio
    async def test_drop_from_another_thread_closes_connection(
        self, server: TransportServer, hub: BroadcastHub,
    ) -> None:
        async with connect(_url(server)) as ws:
            await _request(ws, {"type": "ping"})
            (subscriber,) = hub.get_subscribers()
            assert await asyncio.to_thread(hub.drop, subscriber)

            with pytest.raises(ConnectionClosed) as exc_info:
                await asyncio.wait_for(ws.recv(), timeout=5.0)
        assert exc_info.value.rcvd is not None
        assert exc_info.value.rcvd.code == SLOW_CONSUMER_CLOSE
