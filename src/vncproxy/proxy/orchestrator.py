"""
Tunnel orchestrator.

Takes an accepted WebSocket, resolves the VNC backend for it, builds the
peer session, and drives it until either side ends.

Per-connection lifecycle:
    UPGRADED -> RESOLVING -> DIALING -> ACTIVE -> CLOSING -> CLOSED
"""

import inspect
from collections.abc import Mapping

from fastapi import WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState

from vncproxy.config import ProxyConfig, TokenHandler
from vncproxy.exceptions import ProxyError, ResolveError
from vncproxy.models.enums import SessionState
from vncproxy.proxy.registry import SessionRegistry
from vncproxy.proxy.resolvers import fixed_address_resolver, token_map_resolver
from vncproxy.proxy.session import PeerSession
from vncproxy.utils.logger import get_logger

logger = get_logger(__name__)

# WebSocket close codes
CLOSE_POLICY_VIOLATION = 1008
CLOSE_INTERNAL_ERROR = 1011


class VNCProxy:
    """
    WebSocket to VNC proxy.

    Backends are resolved by config.TOKEN_HANDLER if set, else by looking
    the TOKEN_QUERY_PARAM query value up in config.TOKEN_BACKENDS. With
    neither, every connection goes to config.DEFAULT_BACKEND (":5901").
    """

    def __init__(self, conf: ProxyConfig | None = None):
        self.config = conf if conf is not None else ProxyConfig()
        self.dial_timeout = self.config.get_dial_timeout()
        self.token_handler = self._build_token_handler()
        self.registry = SessionRegistry()

    def _build_token_handler(self) -> TokenHandler:
        if self.config.TOKEN_HANDLER is not None:
            return self.config.TOKEN_HANDLER
        if self.config.TOKEN_BACKENDS:
            return token_map_resolver(
                self.config.TOKEN_BACKENDS, self.config.TOKEN_QUERY_PARAM
            )
        return fixed_address_resolver(self.config.DEFAULT_BACKEND)

    async def resolve(self, websocket: WebSocket) -> str:
        """Run the token handler (sync or async) for a connection."""
        address = self.token_handler(websocket)
        if inspect.isawaitable(address):
            address = await address
        if not address:
            raise ResolveError("Token handler returned an empty address")
        return address

    async def _reject(self, websocket: WebSocket, code: int) -> None:
        """Close a WebSocket that never got a session."""
        if (
            websocket.application_state == WebSocketState.DISCONNECTED
            or websocket.client_state == WebSocketState.DISCONNECTED
        ):
            return
        try:
            await websocket.close(code=code)
        except (OSError, RuntimeError, WebSocketDisconnect) as e:
            logger.debug(f"[Proxy] Close after rejection failed: {e!r}")

    async def serve_ws(self, websocket: WebSocket) -> PeerSession | None:
        """
        Tunnel an accepted WebSocket to its VNC backend.

        Returns when the tunnel is fully torn down. Errors are logged, never
        raised; the client only sees the WebSocket closing.

        Returns:
            The finished session, or None if no session was created.
        """
        client = getattr(websocket, "client", None)
        log_prefix = f"[Proxy {client.host}:{client.port}]" if client else "[Proxy]"
        state = SessionState.UPGRADED
        logger.debug(f"{log_prefix} {state.value}: {websocket.url}")

        # Resolve backend address
        state = SessionState.RESOLVING
        try:
            address = await self.resolve(websocket)
        except Exception as e:
            logger.info(f"{log_prefix} Get VNC backend failed: {e}")
            await self._reject(websocket, CLOSE_POLICY_VIOLATION)
            return None

        # Dial backend
        state = SessionState.DIALING
        logger.debug(f"{log_prefix} {state.value}: {address}")
        try:
            session = await PeerSession.open(websocket, address, self.dial_timeout)
        except ProxyError as e:
            logger.info(f"{log_prefix} New VNC peer failed: {e}")
            await self._reject(websocket, CLOSE_INTERNAL_ERROR)
            return None

        await self.registry.add(session)
        logger.info(
            f"{session.log_prefix} Tunnel {session.client or '?'} <-> {address} active"
        )

        try:
            await session.relay()
        finally:
            await self.registry.remove(session)
            await session.wait_closed()
            session.state = SessionState.CLOSED
            logger.info(
                f"{session.log_prefix} Closed peer "
                f"(up={session.bytes_up}B, down={session.bytes_down}B)"
            )

        return session

    def sessions(self) -> Mapping[str, PeerSession]:
        """Read-only view of the active sessions."""
        return self.registry.snapshot()

    async def shutdown(self) -> None:
        """Close every active session."""
        await self.registry.close_all()
