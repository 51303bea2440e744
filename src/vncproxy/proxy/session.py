"""
Peer session: one WebSocket client paired with one VNC backend connection.

The session owns both connections. It runs the two relay directions as
sibling asyncio tasks and closes both connections exactly once, whichever
side ends first.
"""

import asyncio
import datetime
import uuid

from fastapi import WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState

from vncproxy.backend.dialer import dial_backend
from vncproxy.config import DEFAULT_DIAL_TIMEOUT
from vncproxy.exceptions import ConfigurationError, RelayError
from vncproxy.models.enums import RelayDirection, SessionState
from vncproxy.proxy.adapter import WebSocketStream
from vncproxy.utils.logger import get_logger

logger = get_logger(__name__)

READ_CHUNK_SIZE = 32 * 1024
CLOSE_GRACE = 1.0  # seconds


class PeerSession:
    """
    An active WebSocket <-> TCP tunnel.

    Use PeerSession.open() to build one; it validates the input and dials
    the backend before any session object exists.
    """

    def __init__(
        self,
        websocket: WebSocket,
        address: str,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ):
        self.session_id = uuid.uuid4().hex
        self.websocket = websocket
        self.address = address
        self.reader = reader
        self.writer = writer
        self.stream = WebSocketStream(websocket)

        self.state = SessionState.DIALING
        self.created_at = datetime.datetime.now()
        self.bytes_up = 0
        self.bytes_down = 0
        self.error: RelayError | None = None

        self._closed = False
        self._tasks: list[asyncio.Task] = []
        self._collected: set[asyncio.Task] = set()
        self.log_prefix = f"[Session {self.session_id[:8]}]"

    @classmethod
    async def open(
        cls,
        websocket: WebSocket | None,
        address: str,
        dial_timeout: float | None = DEFAULT_DIAL_TIMEOUT,
    ) -> "PeerSession":
        """
        Validate input, dial the backend and build a session.

        Raises:
            ConfigurationError: websocket is None or address is empty.
            DialError: The backend could not be reached.
        """
        if websocket is None:
            raise ConfigurationError("WebSocket connection is None")
        if not address:
            raise ConfigurationError("Backend address is empty")

        reader, writer = await dial_backend(address, dial_timeout)
        return cls(websocket, address, reader, writer)

    @property
    def closed(self) -> bool:
        """True once teardown has started."""
        return self._closed

    @property
    def client(self) -> str | None:
        """Remote address of the WebSocket client, if known."""
        client = getattr(self.websocket, "client", None)
        if not client:
            return None
        return f"{client.host}:{client.port}"

    # -------------------------------------------------------------------------
    # Relay Directions
    # -------------------------------------------------------------------------

    def _relay_failed(self, direction: RelayDirection, exc: Exception) -> None:
        """Classify an I/O error: teardown noise is dropped, the rest raised."""
        if self._closed:
            logger.debug(
                f"{self.log_prefix} {direction.value} stopped by teardown: "
                f"{type(exc).__name__}: {exc}"
            )
            return
        raise RelayError(str(exc) or type(exc).__name__, direction.value) from exc

    async def relay_from_transport(self) -> None:
        """Copy WebSocket messages to the backend until either side ends."""
        try:
            while True:
                data = await self.stream.read(READ_CHUNK_SIZE)
                self.writer.write(data)
                await self.writer.drain()
                self.bytes_up += len(data)
                logger.trace(f"{self.log_prefix} client -> backend {len(data)} bytes")
        except WebSocketDisconnect as e:
            logger.debug(f"{self.log_prefix} Client disconnected (code={e.code})")
        except Exception as e:
            self._relay_failed(RelayDirection.UPSTREAM, e)

    async def relay_from_backend(self) -> None:
        """Copy backend bytes to the WebSocket until either side ends."""
        try:
            while True:
                data = await self.reader.read(READ_CHUNK_SIZE)
                if not data:
                    logger.debug(f"{self.log_prefix} Backend closed the connection")
                    return
                await self.stream.write(data)
                self.bytes_down += len(data)
                logger.trace(f"{self.log_prefix} backend -> client {len(data)} bytes")
        except WebSocketDisconnect as e:
            logger.debug(f"{self.log_prefix} Client gone while sending (code={e.code})")
        except Exception as e:
            self._relay_failed(RelayDirection.DOWNSTREAM, e)

    def _collect(self, task: asyncio.Task) -> None:
        """Retrieve a finished relay task's outcome exactly once."""
        if task in self._collected:
            return
        self._collected.add(task)
        if task.cancelled():
            return

        exc = task.exception()
        if exc is None:
            return
        if isinstance(exc, RelayError):
            logger.warning(f"{self.log_prefix} {exc}")
            if self.error is None:
                self.error = exc
        else:
            logger.opt(exception=exc).error(
                f"{self.log_prefix} Unexpected relay failure: {exc}"
            )

    async def relay(self) -> RelayError | None:
        """
        Run both relay directions until the first one finishes.

        Returns:
            The first RelayError raised, or None if the session ended
            gracefully. The other direction is left to teardown.
        """
        self.state = SessionState.ACTIVE
        self._tasks = [
            asyncio.create_task(
                self.relay_from_transport(), name=f"{self.session_id}-upstream"
            ),
            asyncio.create_task(
                self.relay_from_backend(), name=f"{self.session_id}-downstream"
            ),
        ]

        try:
            done, _ = await asyncio.wait(
                self._tasks, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            for task in self._tasks:
                task.cancel()
            raise

        for task in done:
            self._collect(task)
        return self.error

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """
        Close both connections.

        Only the first call does anything; later or concurrent calls return
        immediately. Errors from already-closed connections are ignored.
        """
        if self._closed:
            return
        self._closed = True
        self.state = SessionState.CLOSING
        logger.debug(f"{self.log_prefix} Closing connections")

        try:
            self.writer.close()
            await asyncio.wait_for(self.writer.wait_closed(), timeout=CLOSE_GRACE)
        except (OSError, RuntimeError, asyncio.TimeoutError) as e:
            logger.debug(f"{self.log_prefix} Backend close: {e!r}")

        if (
            self.websocket.application_state != WebSocketState.DISCONNECTED
            and self.websocket.client_state != WebSocketState.DISCONNECTED
        ):
            try:
                await self.websocket.close(code=1000)
            except (OSError, RuntimeError, WebSocketDisconnect) as e:
                logger.debug(f"{self.log_prefix} WebSocket close: {e!r}")

    async def wait_closed(self, grace: float = CLOSE_GRACE) -> None:
        """
        Wait for the remaining relay task after close().

        Tasks still blocked after `grace` seconds are cancelled.
        """
        pending = [task for task in self._tasks if not task.done()]
        if pending:
            _, still_pending = await asyncio.wait(pending, timeout=grace)
            for task in still_pending:
                logger.debug(f"{self.log_prefix} Cancelling {task.get_name()}")
                task.cancel()
            if still_pending:
                await asyncio.gather(*still_pending, return_exceptions=True)

        for task in self._tasks:
            self._collect(task)

    def __repr__(self) -> str:
        return (
            f"PeerSession(id={self.session_id[:8]}, address={self.address!r}, "
            f"state={self.state.value})"
        )
