"""Request utility functions for handling common request operations."""

import ipaddress
import logging

from fastapi import Request

from update_feed.core.config import settings

logger = logging.getLogger(__name__)


def _is_valid_ip(ip_str: str) -> bool:
    """Check if a string is a valid IP address."""
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def get_client_ip(request: Request, header_names: list[str] | None = None) -> str | None:
    """Get the client IP address from a request.

    Proxy headers are checked in priority order (``CLIENT_IP_HEADERS``,
    by default CF-Connecting-IP, X-Forwarded-For, X-Real-IP). For
    comma-separated values only the first entry is considered. The first
    header yielding a valid IP wins; otherwise the direct connection
    address is used.

    Args:
        request: The FastAPI request object
        header_names: Override for the configured header priority list

    Returns:
        Client IP address or None if not available
    """
    for header in header_names if header_names is not None else settings.client_ip_headers:
        value = request.headers.get(header)
        if not value:
            continue
        ip = value.split(",")[0].strip()
        if _is_valid_ip(ip):
            return ip
        logger.debug(f"Ignoring unparseable {header}: {value!r}")

    if request.client and request.client.host:
        return request.client.host

    return None


def get_bearer_token(request: Request) -> str | None:
    """Credential from an ``Authorization: Bearer`` header, if any."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None
