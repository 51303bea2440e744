"""
Backend dialer.

Opens the raw TCP connection to a VNC server and enables keepalive probing
on it. A single attempt is made; the caller decides what a failure means.
"""

import asyncio
import socket

from vncproxy.config import DEFAULT_DIAL_TIMEOUT
from vncproxy.exceptions import DialError
from vncproxy.utils.logger import get_logger

logger = get_logger(__name__)

KEEPALIVE_PERIOD = 30  # seconds


def split_address(address: str) -> tuple[str, int]:
    """
    Split a "host:port" address.

    An empty host (":5901") means the local machine. IPv6 hosts must be
    bracketed ("[::1]:5901").
    """
    host, sep, port_str = address.rpartition(":")
    if not sep or not port_str.isdigit():
        raise ValueError(f"Invalid backend address: {address!r}")

    port = int(port_str)
    if not 0 < port < 65536:
        raise ValueError(f"Port out of range in backend address: {address!r}")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host or "localhost", port


def enable_keepalive(sock: socket.socket, period: int = KEEPALIVE_PERIOD) -> None:
    """Enable TCP keepalive with the given probe period on a socket."""
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
    if hasattr(socket, "TCP_KEEPIDLE"):
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, period)
    elif hasattr(socket, "TCP_KEEPALIVE"):
        # macOS spells the idle option differently
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPALIVE, period)
    if hasattr(socket, "TCP_KEEPINTVL"):
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, period)


async def dial_backend(
    address: str, timeout: float | None = DEFAULT_DIAL_TIMEOUT
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """
    Connect to a VNC backend.

    Args:
        address: Backend "host:port".
        timeout: Connect timeout in seconds; zero, negative or None means
            the 5 second default.

    Returns:
        Tuple of (reader, writer) for the backend connection.

    Raises:
        DialError: Malformed address, connect failure/timeout, or keepalive
            setup failure. The underlying exception is chained.
    """
    if timeout is None or timeout <= 0:
        timeout = DEFAULT_DIAL_TIMEOUT

    try:
        host, port = split_address(address)
    except ValueError as e:
        raise DialError(str(e), address) from e

    logger.debug(f"[Dialer] Connecting to {host}:{port} (timeout={timeout}s)")
    try:
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port), timeout=timeout
        )
    except asyncio.TimeoutError as e:
        raise DialError(f"timeout after {timeout}s", address) from e
    except (OSError, ValueError) as e:
        # Hostnames the IDNA codec rejects fail with UnicodeError
        raise DialError(str(e) or type(e).__name__, address) from e

    try:
        sock = writer.get_extra_info("socket")
        if sock is None:
            raise OSError("backend transport exposes no socket")
        enable_keepalive(sock)
    except OSError as e:
        writer.close()
        raise DialError(f"enable keepalive failed: {e}", address) from e

    logger.debug(
        f"[Dialer] Connected to {host}:{port}, keepalive every {KEEPALIVE_PERIOD}s"
    )
    return reader, writer
