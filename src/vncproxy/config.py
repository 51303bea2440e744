"""
Proxy configuration for vncproxy.

This module defines the configuration dataclass for the proxy server,
providing a centralized place for all configurable parameters.

Configuration is read-only once the proxy is constructed. Modify the global
config instance (or build a fresh ProxyConfig) before starting the server.

Usage:
    from vncproxy.config import config

    # Modify configuration before starting
    config.PORT = 6080
    config.LOG_LEVEL = LogLevel.DEBUG
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from fastapi.requests import HTTPConnection

from vncproxy.models.enums import LogLevel

# Resolver: maps an inbound (upgraded) request to a "host:port" backend
# address. May be sync or async; raises to reject the request.
TokenHandler = Callable[[HTTPConnection], str | Awaitable[str]]

DEFAULT_DIAL_TIMEOUT = 5.0
DEFAULT_BACKEND = ":5901"


# =============================================================================
# Configuration Dataclass
# =============================================================================


@dataclass
class ProxyConfig:
    """
    Proxy server configuration.

    Attributes:
        BIND_IP: IP address to bind the HTTP/WebSocket server to.
        PORT: HTTP/WebSocket port.
        WS_PATH: Path of the WebSocket tunnel endpoint.
        DIAL_TIMEOUT: Backend dial timeout in seconds (<= 0 means default).
        DEFAULT_BACKEND: Address used when no token handler is configured.
        TOKEN_QUERY_PARAM: Query parameter holding the token for TOKEN_BACKENDS.
        TOKEN_BACKENDS: token -> "host:port"; used when TOKEN_HANDLER is None.
        TOKEN_HANDLER: Resolver callable, None for TOKEN_BACKENDS or the
            fixed-address default.
        LOG_LEVEL: Logging verbosity level.
        LOG_FILE: Optional log file path.
        LOGGER_SINK: Optional loguru sink replacing stderr.
    """

    # -------------------------------------------------------------------------
    # Network Configuration
    # -------------------------------------------------------------------------

    BIND_IP: str = "0.0.0.0"
    PORT: int = 8080
    WS_PATH: str = "/ws"

    # -------------------------------------------------------------------------
    # Backend Configuration
    # -------------------------------------------------------------------------

    DIAL_TIMEOUT: float = DEFAULT_DIAL_TIMEOUT
    DEFAULT_BACKEND: str = DEFAULT_BACKEND
    TOKEN_QUERY_PARAM: str = "token"
    TOKEN_BACKENDS: dict[str, str] = field(default_factory=dict)
    TOKEN_HANDLER: TokenHandler | None = None

    # -------------------------------------------------------------------------
    # Logging Configuration
    # -------------------------------------------------------------------------

    LOG_LEVEL: LogLevel = LogLevel.INFO
    LOG_FILE: str = ""
    LOGGER_SINK: Any = None

    # -------------------------------------------------------------------------
    # Helper Methods
    # -------------------------------------------------------------------------

    def get_dial_timeout(self) -> float:
        """Get the effective dial timeout, falling back to the default."""
        if self.DIAL_TIMEOUT is None or self.DIAL_TIMEOUT <= 0:
            return DEFAULT_DIAL_TIMEOUT
        return self.DIAL_TIMEOUT

    def uses_fixed_backend(self) -> bool:
        """Check whether every connection goes to DEFAULT_BACKEND."""
        return self.TOKEN_HANDLER is None and not self.TOKEN_BACKENDS


# =============================================================================
# Global Configuration Instance
# =============================================================================

config = ProxyConfig()
