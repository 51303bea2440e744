"""
Pydantic models for the introspection API.

Model Categories:
    - Session Responses: Active tunnel information
    - Health Responses: Proxy health checks
"""

import datetime

from pydantic import BaseModel, Field

from vncproxy.models.enums import SessionState


# =============================================================================
# Session Response Models
# =============================================================================


class SessionInfo(BaseModel):
    """One active tunnel, as listed by /api/sessions."""

    session_id: str
    address: str = Field(..., description="VNC backend host:port")
    client: str | None = Field(default=None, description="WebSocket client address")
    state: SessionState
    created_at: datetime.datetime
    bytes_up: int = Field(default=0, description="Bytes relayed client -> backend")
    bytes_down: int = Field(default=0, description="Bytes relayed backend -> client")

    @classmethod
    def from_session(cls, session) -> "SessionInfo":
        """Build from a PeerSession."""
        return cls(
            session_id=session.session_id,
            address=session.address,
            client=session.client,
            state=session.state,
            created_at=session.created_at,
            bytes_up=session.bytes_up,
            bytes_down=session.bytes_down,
        )


# =============================================================================
# Health Response Models
# =============================================================================


class HealthResponse(BaseModel):
    """Proxy health status."""

    status: str = "ok"
    active_sessions: int = 0
    default_backend: str | None = None
