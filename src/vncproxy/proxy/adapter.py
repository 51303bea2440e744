"""
Byte-stream view of a WebSocket.

The relay loops only deal with read(n)/write(data). This adapter maps them
onto WebSocket messages: one received message feeds one or more reads, and
every write goes out as exactly one binary frame.
"""

from fastapi import WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState

# Close code for a connection that dropped without a close frame
CLOSE_ABNORMAL = 1006


class WebSocketStream:
    """
    Reader/writer pair over an accepted WebSocket.

    A message larger than the caller's buffer is not truncated: the rest is
    kept and served by the following read() calls before a new message is
    received.
    """

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self._buffer = b""

    @property
    def pending(self) -> int:
        """Number of received bytes not yet handed out by read()."""
        return len(self._buffer)

    async def _receive_message(self) -> bytes:
        """Receive one message payload; text frames are UTF-8 encoded."""
        message = await self.websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(
                code=message.get("code", 1000), reason=message.get("reason")
            )

        data = message.get("bytes")
        if data is None:
            data = (message.get("text") or "").encode("utf-8")
        return data

    async def read(self, n: int) -> bytes:
        """
        Read up to n bytes.

        Never returns an empty chunk: empty frames are skipped and the end
        of the stream is reported as WebSocketDisconnect.
        """
        while not self._buffer:
            self._buffer = await self._receive_message()

        chunk, self._buffer = self._buffer[:n], self._buffer[n:]
        return chunk

    def _gone(self) -> bool:
        return (
            self.websocket.application_state == WebSocketState.DISCONNECTED
            or self.websocket.client_state == WebSocketState.DISCONNECTED
        )

    async def write(self, data: bytes) -> int:
        """
        Send data as one binary frame and return the number of bytes sent.

        A client that went away mid-send is reported as WebSocketDisconnect
        whichever way the ASGI server signals it (uvicorn raises
        ClientDisconnected, an OSError; Starlette raises RuntimeError once
        the socket is closed).
        """
        if not data:
            return 0
        try:
            await self.websocket.send_bytes(bytes(data))
        except OSError as e:
            raise WebSocketDisconnect(code=CLOSE_ABNORMAL) from e
        except RuntimeError as e:
            if not self._gone():
                raise
            raise WebSocketDisconnect(code=CLOSE_ABNORMAL) from e
        return len(data)
