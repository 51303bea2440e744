"""
Enumeration types for vncproxy.

This module defines the enumeration types used throughout vncproxy for
session lifecycle tracking and configuration options.
"""

from enum import Enum


# =============================================================================
# Session-Related Enums
# =============================================================================


class SessionState(str, Enum):
    """
    Lifecycle state of one inbound tunnel connection.

    State transitions:
        UPGRADED -> RESOLVING -> DIALING -> ACTIVE -> CLOSING -> CLOSED
        RESOLVING -> CLOSING (resolver rejected the request)
        DIALING -> CLOSING (backend unreachable)
    """

    UPGRADED = "upgraded"  # WebSocket accepted, nothing resolved yet
    RESOLVING = "resolving"  # Token handler is picking a backend
    DIALING = "dialing"  # TCP connection to the backend in progress
    ACTIVE = "active"  # Both relay directions running
    CLOSING = "closing"  # Teardown started
    CLOSED = "closed"  # Both connections closed, deregistered


class RelayDirection(str, Enum):
    """
    One of the two copy loops of a session.

    - UPSTREAM: WebSocket client -> VNC backend
    - DOWNSTREAM: VNC backend -> WebSocket client
    """

    UPSTREAM = "upstream"
    DOWNSTREAM = "downstream"


# =============================================================================
# Configuration Enums
# =============================================================================


class LogLevel(str, Enum):
    """
    Logging verbosity levels for vncproxy.

    Levels (from most to least verbose):
        - FULL: Per-chunk relay tracing
        - DEBUG: Debug messages and above
        - INFO: Informational messages and above
        - WARNING: Only warnings and errors
    """

    FULL = "full"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
