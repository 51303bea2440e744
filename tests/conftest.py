"""
Shared fixtures for vncproxy tests.

FakeWebSocket stands in for an accepted Starlette WebSocket; real loopback
TCP servers stand in for VNC backends.
"""

import asyncio
from collections import namedtuple

import pytest
from fastapi.datastructures import URL, QueryParams
from fastapi.websockets import WebSocketState

from vncproxy.proxy.session import PeerSession

Address = namedtuple("Address", ["host", "port"])


class FakeWebSocket:
    """Minimal accepted WebSocket driven through an inbound queue."""

    def __init__(self, query: str = "", client=("10.0.0.7", 51234)):
        self.url = URL(f"ws://testserver/ws?{query}" if query else "ws://testserver/ws")
        self.query_params = QueryParams(query)
        self.headers = {}
        self.client = Address(*client) if client else None
        self.application_state = WebSocketState.CONNECTED
        self.client_state = WebSocketState.CONNECTED

        self.inbox: asyncio.Queue = asyncio.Queue()
        self.sent: list[bytes] = []
        self.close_codes: list[int] = []
        self.receive_error: Exception | None = None

    # -- driving the fake from tests ------------------------------------------

    def feed_bytes(self, data: bytes) -> None:
        self.inbox.put_nowait({"type": "websocket.receive", "bytes": data})

    def feed_text(self, text: str) -> None:
        self.inbox.put_nowait({"type": "websocket.receive", "text": text})

    def disconnect(self, code: int = 1000) -> None:
        self.inbox.put_nowait({"type": "websocket.disconnect", "code": code})

    def fail_receive(self, exc: Exception) -> None:
        self.receive_error = exc
        self.inbox.put_nowait(None)

    @property
    def received(self) -> bytes:
        return b"".join(self.sent)

    # -- Starlette WebSocket surface -------------------------------------------

    async def receive(self) -> dict:
        if self.client_state == WebSocketState.DISCONNECTED:
            raise RuntimeError(
                'Cannot call "receive" once a disconnect message has been received.'
            )
        message = await self.inbox.get()
        if message is None:
            raise self.receive_error
        if message["type"] == "websocket.disconnect":
            self.client_state = WebSocketState.DISCONNECTED
        return message

    async def send_bytes(self, data: bytes) -> None:
        if self.application_state == WebSocketState.DISCONNECTED:
            raise RuntimeError('Cannot call "send" once a close message has been sent.')
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        if self.application_state == WebSocketState.DISCONNECTED:
            raise RuntimeError('Cannot call "send" once a close message has been sent.')
        self.application_state = WebSocketState.DISCONNECTED
        self.close_codes.append(code)
        # The peer answers the close handshake
        self.disconnect(code)


class FakeWriter:
    """Stream writer double counting close() calls."""

    def __init__(self):
        self.data = bytearray()
        self.close_calls = 0

    def write(self, data: bytes) -> None:
        self.data.extend(data)

    async def drain(self) -> None:
        pass

    def close(self) -> None:
        self.close_calls += 1

    async def wait_closed(self) -> None:
        pass

    def get_extra_info(self, name, default=None):
        return default


class Backend:
    """Loopback TCP server recording what each connection sends."""

    def __init__(self):
        self.server: asyncio.AbstractServer | None = None
        self.received = bytearray()
        self.writers: list[asyncio.StreamWriter] = []
        self.connected = asyncio.Event()
        self.data_event = asyncio.Event()

    @property
    def address(self) -> str:
        host, port = self.server.sockets[0].getsockname()[:2]
        return f"{host}:{port}"

    async def _handle(self, reader, writer):
        self.writers.append(writer)
        self.connected.set()
        try:
            while data := await reader.read(65536):
                self.received.extend(data)
                self.data_event.set()
        except OSError:
            pass

    async def wait_for_bytes(self, count: int, timeout: float = 2.0) -> bytes:
        async def _wait():
            while len(self.received) < count:
                self.data_event.clear()
                await self.data_event.wait()

        await asyncio.wait_for(_wait(), timeout)
        return bytes(self.received)

    async def send(self, data: bytes) -> None:
        writer = self.writers[-1]
        writer.write(data)
        await writer.drain()

    async def start(self):
        self.server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        return self

    async def stop(self):
        for writer in self.writers:
            writer.close()
        self.server.close()
        await self.server.wait_closed()


@pytest.fixture
def fake_ws():
    return FakeWebSocket()


@pytest.fixture
async def backend():
    server = await Backend().start()
    yield server
    await server.stop()


@pytest.fixture
async def second_backend():
    server = await Backend().start()
    yield server
    await server.stop()


@pytest.fixture
def closed_port():
    """A loopback port nothing listens on."""
    import socket

    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def session_factory():
    """Build sessions over fakes, without dialing."""

    def _make(address: str = "127.0.0.1:5901") -> PeerSession:
        return PeerSession(
            FakeWebSocket(), address, asyncio.StreamReader(), FakeWriter()
        )

    return _make
