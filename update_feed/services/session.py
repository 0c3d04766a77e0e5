"""Host session verification for JWTs issued by the storefront."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt.exceptions import PyJWTError

from update_feed.core import settings
from update_feed.core.exceptions import AuthError

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"


class SessionError(AuthError):
    """Host session missing, expired or forged."""

    code = "invalid_session"
    default_message = "Invalid or expired session"


@dataclass(frozen=True)
class SessionClaims:
    """Identity carried by a host session token."""

    owner_id: str
    is_admin: bool = False


def create_session_token(
    owner_id: str,
    role: str | None = None,
    expires_minutes: int = 15,
) -> str:
    """Issue a session token the way the storefront does."""
    payload: dict[str, Any] = {
        "sub": str(owner_id),
        "exp": datetime.now(UTC) + timedelta(minutes=expires_minutes),
    }
    if role:
        payload["role"] = role
    token = jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    # PyJWT 2.x returns str; older type stubs may declare bytes
    return str(token)


def decode_session_token(token: str) -> SessionClaims:
    """Verify a host session token and return its claims."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise SessionError("Session has expired") from e
    except PyJWTError as e:
        logger.debug(f"Rejected host session token: {e}")
        raise SessionError() from e

    owner_id = payload.get("sub")
    if not isinstance(owner_id, str) or not owner_id:
        raise SessionError()

    return SessionClaims(owner_id=owner_id, is_admin=payload.get("role") == ADMIN_ROLE)
