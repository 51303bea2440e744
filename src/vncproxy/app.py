"""
vncproxy FastAPI Application.

This module provides the main entry point for the proxy server.

Responsibilities:
    - WebSocket tunnel endpoint (upgrade, then hand over to VNCProxy)
    - Session introspection API
    - Closing live tunnels on shutdown
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket

from vncproxy import __version__
from vncproxy.config import ProxyConfig, config
from vncproxy.models.enums import LogLevel
from vncproxy.models.responses import HealthResponse, SessionInfo
from vncproxy.proxy.orchestrator import VNCProxy
from vncproxy.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)

# Subprotocol requested by noVNC clients
BINARY_SUBPROTOCOL = "binary"


# =============================================================================
# Application Setup
# =============================================================================


def create_app(conf: ProxyConfig | None = None) -> FastAPI:
    """
    Build the FastAPI application around a VNCProxy.

    Args:
        conf: Proxy configuration, defaults to the global config.
    """
    conf = conf if conf is not None else config
    proxy = VNCProxy(conf)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            f"Proxy ready: {conf.WS_PATH} -> "
            f"{conf.DEFAULT_BACKEND if conf.uses_fixed_backend() else 'token resolver'}"
        )
        yield
        await proxy.shutdown()
        logger.info("Proxy stopped")

    app = FastAPI(
        title="vncproxy",
        description="WebSocket to VNC TCP tunnel",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.proxy = proxy

    # -------------------------------------------------------------------------
    # WebSocket Endpoint
    # -------------------------------------------------------------------------

    @app.websocket(conf.WS_PATH)
    async def websocket_tunnel(websocket: WebSocket):
        """Upgrade the request and tunnel it to the resolved VNC backend."""
        subprotocols = websocket.scope.get("subprotocols", [])
        subprotocol = BINARY_SUBPROTOCOL if BINARY_SUBPROTOCOL in subprotocols else None
        await websocket.accept(subprotocol=subprotocol)
        await proxy.serve_ws(websocket)

    # -------------------------------------------------------------------------
    # Introspection Endpoints
    # -------------------------------------------------------------------------

    @app.get("/api/sessions", response_model=list[SessionInfo], tags=["Sessions"])
    async def list_sessions(request: Request):
        """List active tunnels."""
        sessions = request.app.state.proxy.sessions()
        return [SessionInfo.from_session(s) for s in sessions.values()]

    @app.get("/api/health", response_model=HealthResponse, tags=["Health"])
    async def health(request: Request):
        """Report proxy health and the number of active tunnels."""
        proxy = request.app.state.proxy
        return HealthResponse(
            active_sessions=len(proxy.registry),
            default_backend=conf.DEFAULT_BACKEND if conf.uses_fixed_backend() else None,
        )

    return app


# =============================================================================
# Server Entry Points
# =============================================================================


def run(conf: ProxyConfig | None = None):
    """Run the proxy server using uvicorn."""
    import uvicorn

    conf = conf if conf is not None else config

    # Configure logging before starting uvicorn
    configure_logging(conf.LOG_LEVEL, conf.LOG_FILE or None, conf.LOGGER_SINK)

    # Map log levels to uvicorn levels
    uvicorn_level_map = {
        LogLevel.FULL: "trace",
        LogLevel.DEBUG: "debug",
        LogLevel.INFO: "info",
        LogLevel.WARNING: "warning",
    }
    uvicorn_level = uvicorn_level_map.get(conf.LOG_LEVEL, "info")

    logger.info(f"Starting vncproxy on {conf.BIND_IP}:{conf.PORT}")

    uvicorn.run(
        create_app(conf),
        host=conf.BIND_IP,
        port=conf.PORT,
        log_level=uvicorn_level,
        log_config=None,  # Keep uvicorn off the stdlib logging config (use loguru)
        ws="websockets",
    )


def main():
    """Entry point for the proxy server."""
    run()
