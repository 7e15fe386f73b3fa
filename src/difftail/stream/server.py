"""WebSocket transport — one read loop and one write loop per subscriber.

Connections are accepted on a single path (``/ws`` by default); anything
else is refused during the handshake. Each connection registers a Subscriber
with the BroadcastHub. The write loop drains the subscriber's queue onto the
socket; the read loop answers inbound requests through the MessageHandler by
queueing replies on the same subscriber, so all writes go through one task.
"""

from __future__ import annotations

import asyncio
import sys
from http import HTTPStatus
from typing import TYPE_CHECKING

from websockets.asyncio.server import serve
from websockets.exceptions import ConnectionClosed

from difftail._errors import ProtocolError
from difftail.stream.protocol import encode_error

if TYPE_CHECKING:
    from websockets.asyncio.server import Server, ServerConnection
    from websockets.http11 import Request, Response

    from difftail.observability.collector import Collector
    from difftail.stream.hub import BroadcastHub, Subscriber
    from difftail.stream.protocol import MessageHandler

# Close code sent to subscribers dropped for falling behind ("try again later").
SLOW_CONSUMER_CLOSE = 1013


class TransportServer:
    """Serves the hub and the request handler over WebSockets.

    Args:
        hub: Broadcast hub subscribers are registered with.
        handler: Answers inbound requests.
        host: Bind address.
        port: Bind port (0 picks a free one).
        path: Request path of the WebSocket endpoint.
        collector: Optional observability collector.

    """

    def __init__(
        self,
        hub: BroadcastHub,
        handler: MessageHandler,
        *,
        host: str = "localhost",
        port: int = 8081,
        path: str = "/ws",
        collector: Collector | None = None,
    ) -> None:
        self._hub = hub
        self._handler = handler
        self._host = host
        self._port = port
        self._path = path
        self._collector = collector
        self._server: Server | None = None
        self._closing: set[asyncio.Task[None]] = set()

    @property
    def port(self) -> int:
        """The bound port (resolved after start when 0 was requested)."""
        if self._server is not None:
            for sock in self._server.sockets:
                return sock.getsockname()[1]
        return self._port

    async def start(self) -> None:
        """Bind and start accepting connections."""
        if self._server is not None:
            return
        self._server = await serve(
            self._handle,
            self._host,
            self._port,
            process_request=self._check_path,
        )

    async def serve_forever(self) -> None:
        """Run until the server is closed or the task is cancelled."""
        await self.start()
        assert self._server is not None
        await self._server.serve_forever()

    async def stop(self) -> None:
        """Close all connections and stop listening."""
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None

    def _check_path(self, connection: ServerConnection, request: Request) -> Response | None:
        if request.path.split("?", 1)[0] != self._path:
            return connection.respond(HTTPStatus.NOT_FOUND, "Not Found\n")
        return None

    async def _handle(self, websocket: ServerConnection) -> None:
        remote = _format_remote(websocket.remote_address)
        loop = asyncio.get_running_loop()

        def _close_slow() -> None:
            # May run on any thread that called hub.drop()
            loop.call_soon_threadsafe(self._schedule_close, websocket)

        subscriber = self._hub.register(on_drop=_close_slow)
        if self._collector is not None:
            self._collector.record_connect(subscriber.client_id, remote=remote)

        writer = asyncio.create_task(self._write_loop(websocket, subscriber))
        try:
            await self._read_loop(websocket, subscriber)
        finally:
            writer.cancel()
            if self._hub.unregister(subscriber) and self._collector is not None:
                self._collector.record_disconnect(subscriber.client_id)

    def _schedule_close(self, websocket: ServerConnection) -> None:
        task = asyncio.get_running_loop().create_task(
            websocket.close(code=SLOW_CONSUMER_CLOSE, reason="subscriber too slow")
        )
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    async def _read_loop(self, websocket: ServerConnection, subscriber: Subscriber) -> None:
        try:
            async for raw in websocket:
                try:
                    reply = self._handler.handle(raw)
                except ProtocolError as exc:
                    print(f"  Message error ({subscriber.client_id}): {exc}", file=sys.stderr)
                    reply = encode_error(str(exc))
                if not subscriber.offer(reply):
                    self._hub.drop(subscriber)
                    return
        except ConnectionClosed:
            return

    async def _write_loop(self, websocket: ServerConnection, subscriber: Subscriber) -> None:
        try:
            async for message in subscriber.messages():
                await websocket.send(message)
        except ConnectionClosed:
            return


def _format_remote(address: object) -> str:
    if isinstance(address, tuple) and len(address) >= 2:
        return f"{address[0]}:{address[1]}"
    return str(address or "")
