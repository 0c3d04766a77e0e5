"""Host session dependencies for owner and admin routes."""

from fastapi import Depends, Request

from update_feed.core.exceptions import ForbiddenError
from update_feed.services.session import SessionClaims, SessionError, decode_session_token


async def get_session(request: Request) -> SessionClaims:
    """Dependency to get the host session from the Bearer JWT."""
    auth_header = request.headers.get("Authorization", "")

    if not auth_header.startswith("Bearer "):
        raise SessionError("Missing or invalid authorization header")

    return decode_session_token(auth_header[7:])  # Remove "Bearer " prefix


async def get_current_owner(session: SessionClaims = Depends(get_session)) -> str:
    """Dependency to get the owner id of the current session."""
    return session.owner_id


async def require_admin(session: SessionClaims = Depends(get_session)) -> SessionClaims:
    """Dependency that only lets admin sessions through."""
    if not session.is_admin:
        raise ForbiddenError()
    return session
