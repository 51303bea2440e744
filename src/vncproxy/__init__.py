"""vncproxy: WebSocket to VNC TCP tunnel."""

__version__ = "0.1.0"
