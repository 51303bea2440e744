"""
WebSocket to TCP tunnel engine.

This package holds the per-connection machinery: the WebSocket byte-stream
adapter, the peer session running the duplex relay, the session registry,
and the orchestrator tying them together.
"""

from vncproxy.proxy.orchestrator import VNCProxy
from vncproxy.proxy.registry import SessionRegistry
from vncproxy.proxy.resolvers import fixed_address_resolver, token_map_resolver
from vncproxy.proxy.session import PeerSession

__all__ = [
    "VNCProxy",
    "SessionRegistry",
    "PeerSession",
    "fixed_address_resolver",
    "token_map_resolver",
]
