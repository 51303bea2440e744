"""vncproxy exception classes."""


class ProxyError(Exception):
    """Base exception for proxy operations."""

    pass


class ConfigurationError(ProxyError):
    """Invalid input when building a session (no websocket, empty address)."""

    pass


class ResolveError(ProxyError):
    """Token handler refused to map a request to a backend."""

    pass


class DialError(ProxyError):
    """Backend unreachable or its connection could not be tuned."""

    def __init__(self, message: str, address: str):
        self.address = address
        super().__init__(f"Cannot connect to VNC backend {address}: {message}")


class RelayError(ProxyError):
    """Steady-state read/write failure in one relay direction."""

    def __init__(self, message: str, direction: str):
        self.direction = direction
        super().__init__(f"Relay {direction} failed: {message}")
