"""
API client for CLI commands.

Provides functions to query a running proxy's introspection API.
Returns structured data instead of printing.
"""

import httpx

from vncproxy.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_URL = "http://127.0.0.1:8080"


class APIError(Exception):
    """API request error with status code and detail."""

    def __init__(
        self, message: str, status_code: int | None = None, detail: str | None = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


def _handle_http_error(e: httpx.HTTPStatusError, context: str = "request") -> None:
    """Handle HTTP errors with consistent logging."""
    status = e.response.status_code
    try:
        detail = e.response.json()
        detail_str = detail.get("detail", str(detail))
    except ValueError:
        detail_str = e.response.text

    logger.error(f"HTTP {status} on {context}: {detail_str}")
    raise APIError(
        f"HTTP {status}: {detail_str}", status_code=status, detail=detail_str
    )


def _get(base_url: str, path: str, context: str):
    url = f"{base_url.rstrip('/')}/api/{path}"
    try:
        response = httpx.get(url, timeout=10.0)
        response.raise_for_status()
        return response.json()
    except httpx.HTTPStatusError as e:
        _handle_http_error(e, context)
    except httpx.RequestError as e:
        logger.error(f"Request error: {e}")
        raise APIError(f"Network error: {e}")


def get_sessions(base_url: str = DEFAULT_URL) -> list[dict]:
    """Get active sessions."""
    return _get(base_url, "sessions", "get sessions") or []


def get_health(base_url: str = DEFAULT_URL) -> dict:
    """Get proxy health."""
    return _get(base_url, "health", "get health") or {}
