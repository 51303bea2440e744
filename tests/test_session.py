"""
Tests for vncproxy.proxy.session.PeerSession.
"""

import asyncio

import pytest
from fastapi.websockets import WebSocketState

from vncproxy.backend import dialer
from vncproxy.exceptions import ConfigurationError, DialError, RelayError
from vncproxy.models.enums import SessionState
from vncproxy.proxy import session as session_module
from vncproxy.proxy.session import PeerSession


class FailingReader:
    """Backend reader whose next read raises."""

    def __init__(self, exc: Exception):
        self.exc = exc

    async def read(self, n: int) -> bytes:
        raise self.exc


# ---------------------------------------------------------------------------
# open
# ---------------------------------------------------------------------------

class TestOpen:

    @pytest.fixture
    def no_dial(self, monkeypatch):
        async def must_not_dial(address, timeout):
            raise AssertionError("dial attempted")

        monkeypatch.setattr(session_module, "dial_backend", must_not_dial)

    async def test_missing_websocket(self, no_dial):
        with pytest.raises(ConfigurationError, match="WebSocket"):
            await PeerSession.open(None, "127.0.0.1:5901")

    async def test_empty_address(self, no_dial, fake_ws):
        with pytest.raises(ConfigurationError, match="empty"):
            await PeerSession.open(fake_ws, "")

    async def test_dial_failure_propagates(self, fake_ws, closed_port):
        with pytest.raises(DialError):
            await PeerSession.open(fake_ws, f"127.0.0.1:{closed_port}", 1.0)

    async def test_negative_timeout_dials_with_default(self, fake_ws, backend, monkeypatch):
        seen = {}
        real_wait_for = asyncio.wait_for

        async def spy_wait_for(aw, timeout):
            seen.setdefault("timeout", timeout)
            return await real_wait_for(aw, timeout)

        monkeypatch.setattr(dialer.asyncio, "wait_for", spy_wait_for)
        session = await PeerSession.open(fake_ws, backend.address, dial_timeout=-1)
        monkeypatch.undo()
        await session.close()

        assert seen["timeout"] == 5.0

    async def test_new_session_has_identity(self, fake_ws, backend):
        session = await PeerSession.open(fake_ws, backend.address)
        other = await PeerSession.open(fake_ws, backend.address)
        try:
            assert session.session_id != other.session_id
            assert session.client == "10.0.0.7:51234"
            assert session.state == SessionState.DIALING
        finally:
            await session.close()
            await other.close()


# ---------------------------------------------------------------------------
# relay
# ---------------------------------------------------------------------------

class TestRelay:

    async def test_client_frame_reaches_backend(self, fake_ws, backend):
        session = await PeerSession.open(fake_ws, backend.address)
        relay = asyncio.create_task(session.relay())

        fake_ws.feed_bytes(bytes([1, 2, 3]))
        assert await backend.wait_for_bytes(3) == bytes([1, 2, 3])

        fake_ws.disconnect()
        assert await asyncio.wait_for(relay, 2.0) is None
        await session.close()
        await session.wait_closed()

    async def test_bytes_preserved_in_order_both_ways(self, fake_ws, backend):
        session = await PeerSession.open(fake_ws, backend.address)
        relay = asyncio.create_task(session.relay())
        await asyncio.wait_for(backend.connected.wait(), 2.0)

        upstream = [bytes([i % 251]) * size for i, size in enumerate([1, 7, 4096, 70_000, 3])]
        for chunk in upstream:
            fake_ws.feed_bytes(chunk)
        expected_up = b"".join(upstream)
        assert await backend.wait_for_bytes(len(expected_up)) == expected_up

        downstream = [b"RFB 003.008\n", b"\x00" * 50_000, b"tail"]
        for chunk in downstream:
            await backend.send(chunk)
        expected_down = b"".join(downstream)

        async def all_down():
            while fake_ws.received != expected_down:
                await asyncio.sleep(0.01)

        await asyncio.wait_for(all_down(), 2.0)
        assert session.bytes_up == len(expected_up)
        assert session.bytes_down == len(expected_down)

        fake_ws.disconnect()
        await asyncio.wait_for(relay, 2.0)
        await session.close()
        await session.wait_closed()

    async def test_backend_eof_ends_relay(self, fake_ws, backend):
        session = await PeerSession.open(fake_ws, backend.address)
        relay = asyncio.create_task(session.relay())
        await asyncio.wait_for(backend.connected.wait(), 2.0)

        backend.writers[-1].close()

        assert await asyncio.wait_for(relay, 2.0) is None
        await session.close()
        await session.wait_closed()

    async def test_backend_failure_is_relay_error(self, fake_ws, session_factory):
        session = session_factory()
        session.reader = FailingReader(ConnectionResetError("reset by peer"))

        with pytest.raises(RelayError) as exc_info:
            await session.relay_from_backend()

        assert exc_info.value.direction == "downstream"
        assert isinstance(exc_info.value.__cause__, ConnectionResetError)

    async def test_client_failure_is_relay_error(self, session_factory):
        session = session_factory()
        session.websocket.fail_receive(OSError("socket broke"))

        with pytest.raises(RelayError) as exc_info:
            await session.relay_from_transport()
        assert exc_info.value.direction == "upstream"

    async def test_client_gone_while_sending_is_graceful(self, session_factory):
        session = session_factory()

        async def client_gone(data):
            raise ConnectionResetError("client disconnected")

        session.websocket.send_bytes = client_gone
        session.reader.feed_data(b"framebuffer update")

        error = await asyncio.wait_for(session.relay(), 2.0)

        assert error is None
        assert session.bytes_down == 0
        await session.close()
        await session.wait_closed()

    async def test_errors_after_close_are_suppressed(self, session_factory):
        session = session_factory()
        await session.close()
        session.reader = FailingReader(OSError("use of closed connection"))

        assert await session.relay_from_backend() is None

    async def test_relay_reports_first_error(self, session_factory):
        session = session_factory()
        session.reader = FailingReader(ConnectionResetError("reset"))

        error = await asyncio.wait_for(session.relay(), 2.0)

        assert isinstance(error, RelayError)
        assert session.error is error
        await session.close()
        await session.wait_closed()


# ---------------------------------------------------------------------------
# teardown
# ---------------------------------------------------------------------------

class TestTeardown:

    async def test_close_is_single_fire(self, session_factory):
        session = session_factory()

        await asyncio.gather(session.close(), session.close(), session.close())
        await session.close()

        assert session.writer.close_calls == 1
        assert session.websocket.close_codes == [1000]
        assert session.closed
        assert session.state == SessionState.CLOSING

    async def test_close_skips_disconnected_websocket(self, session_factory):
        session = session_factory()
        session.websocket.client_state = WebSocketState.DISCONNECTED

        await session.close()

        assert session.websocket.close_codes == []
        assert session.writer.close_calls == 1

    async def test_close_tolerates_already_closed_websocket(self, session_factory):
        session = session_factory()

        async def already_closed(code=1000, reason=None):
            raise RuntimeError("Unexpected ASGI message 'websocket.close'")

        session.websocket.close = already_closed
        await session.close()

        assert session.closed

    async def test_teardown_unblocks_other_direction(self, fake_ws, backend):
        session = await PeerSession.open(fake_ws, backend.address)
        relay = asyncio.create_task(session.relay())
        await asyncio.wait_for(backend.connected.wait(), 2.0)

        # Backend goes away: downstream ends, upstream stays blocked on receive
        backend.writers[-1].close()
        await asyncio.wait_for(relay, 2.0)
        assert any(not task.done() for task in session._tasks)

        await session.close()
        await asyncio.wait_for(session.wait_closed(grace=1.0), 2.0)

        assert all(task.done() for task in session._tasks)
        assert session.error is None

    async def test_stuck_relay_is_cancelled(self, session_factory):
        session = session_factory()

        async def stuck_receive():
            await asyncio.sleep(3600)

        session.websocket.receive = stuck_receive
        relay = asyncio.create_task(session.relay())
        session.reader.feed_eof()
        await asyncio.wait_for(relay, 1.0)

        await session.close()
        await asyncio.wait_for(session.wait_closed(grace=0.05), 1.0)

        assert all(task.done() for task in session._tasks)
