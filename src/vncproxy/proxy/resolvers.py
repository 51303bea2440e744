"""
Token handlers mapping an inbound WebSocket request to a VNC backend.

A token handler takes the upgraded connection (url, headers, query params)
and returns a "host:port" string, or raises to reject the request.
"""

from collections.abc import Mapping

from fastapi.requests import HTTPConnection

from vncproxy.config import DEFAULT_BACKEND, TokenHandler
from vncproxy.exceptions import ResolveError


def fixed_address_resolver(address: str = DEFAULT_BACKEND) -> TokenHandler:
    """Resolver that always returns the same backend."""

    def resolve(conn: HTTPConnection) -> str:
        return address

    return resolve


def token_map_resolver(
    backends: Mapping[str, str], param: str = "token"
) -> TokenHandler:
    """
    Resolver that looks the `?token=` query value up in a mapping.

    Args:
        backends: token -> "host:port".
        param: Query parameter holding the token.
    """

    def resolve(conn: HTTPConnection) -> str:
        token = conn.query_params.get(param)
        if not token:
            raise ResolveError(f"Missing '{param}' query parameter")
        address = backends.get(token)
        if not address:
            raise ResolveError(f"Unknown token: {token}")
        return address

    return resolve
