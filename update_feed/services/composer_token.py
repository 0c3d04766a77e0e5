"""Composer token service - generation, validation and revocation."""

import hashlib
import logging
import re
import secrets
import string
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from update_feed.core.config import settings
from update_feed.core.exceptions import (
    InvalidTokenFormatError,
    QuotaExceededError,
    RateLimitedError,
    StorageError,
    TokenNotFoundError,
)
from update_feed.middleware.rate_limit import RateLimiter
from update_feed.models.composer_token import ComposerToken

logger = logging.getLogger(__name__)

# Length of the random part of a token (excluding prefix)
TOKEN_LENGTH = 32

# Random characters exposed in the display prefix
DISPLAY_CHARS = 4

TOKEN_ALPHABET = string.ascii_lowercase + string.digits

_RANDOM_PART = re.compile(rf"[A-Za-z0-9]{{{TOKEN_LENGTH}}}")


def generate_secret(prefix: str) -> str:
    """Prefix plus TOKEN_LENGTH characters drawn uniformly from TOKEN_ALPHABET."""
    return prefix + "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(TOKEN_LENGTH))


def hash_token(raw_token: str) -> str:
    """SHA-256 hex digest used as the lookup key."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def is_valid_format(raw_token: str, prefix: str) -> bool:
    """Prefix followed by exactly TOKEN_LENGTH ASCII alphanumerics."""
    if not raw_token.startswith(prefix):
        return False
    if len(raw_token) != len(prefix) + TOKEN_LENGTH:
        return False
    return _RANDOM_PART.fullmatch(raw_token[len(prefix) :]) is not None


class ComposerTokenService:
    """Service for managing Composer repository tokens."""

    def __init__(self, db: AsyncSession, rate_limiter: RateLimiter | None = None):
        self.db = db
        self.rate_limiter = rate_limiter or RateLimiter.get_instance()
        self.prefix = settings.token_prefix

    async def count_active(self, owner_id: str) -> int:
        """Count non-revoked tokens for an owner."""
        result = await self.db.execute(
            select(func.count(ComposerToken.id)).where(
                ComposerToken.owner_id == owner_id,
                ComposerToken.revoked_at.is_(None),
            )
        )
        return result.scalar() or 0

    async def generate(self, owner_id: str, name: str | None = "Default") -> str:
        """Create a token and return the raw secret.

        The secret is returned only here; it is never stored or logged.
        """
        if await self.count_active(owner_id) >= settings.token_max_per_owner:
            raise QuotaExceededError(
                f"Maximum number of tokens ({settings.token_max_per_owner}) reached. "
                "Please revoke an existing token first."
            )

        raw_token = generate_secret(self.prefix)
        token = ComposerToken(
            owner_id=owner_id,
            token_hash=hash_token(raw_token),
            display_prefix=raw_token[: len(self.prefix) + DISPLAY_CHARS],
            name=(name or "").strip()[:255] or "Default",
        )

        try:
            self.db.add(token)
            await self.db.flush()
        except SQLAlchemyError as e:
            logger.error(f"Failed to store composer token for owner {owner_id}: {type(e).__name__}")
            raise StorageError("Failed to generate token.") from e

        logger.info(
            f"Generated composer token {token.display_prefix}", extra={"owner_id": owner_id}
        )
        return raw_token

    async def validate(self, raw_token: str, client_ip: str | None = None) -> str:
        """Resolve a raw secret to its owner id.

        The per-IP rate limit is checked before any format or hash work.
        Every attempt counts toward the limit, successful or not.
        """
        if client_ip:
            allowed, retry_after = await self.rate_limiter.check(
                f"token_validation:{client_ip}",
                settings.token_rate_limit,
                settings.token_rate_window_seconds,
            )
            if not allowed:
                logger.warning(
                    "Token validation rate limit exceeded", extra={"client_ip": client_ip}
                )
                raise RateLimitedError(retry_after=retry_after)

        if not is_valid_format(raw_token, self.prefix):
            raise InvalidTokenFormatError()

        # Exact hash equality only, never prefix matching
        result = await self.db.execute(
            select(ComposerToken).where(
                ComposerToken.token_hash == hash_token(raw_token),
                ComposerToken.revoked_at.is_(None),
            )
        )
        token = result.scalar_one_or_none()
        if token is None:
            raise TokenNotFoundError()

        token.last_used_at = datetime.now(UTC)
        await self.db.flush()
        return token.owner_id

    async def revoke(self, token_id: UUID, owner_id: str) -> bool:
        """Revoke a token belonging to ``owner_id``.

        Returns False when the token does not exist or belongs to someone
        else. Revoking an already revoked token is a no-op returning True.
        """
        result = await self.db.execute(
            select(ComposerToken).where(
                ComposerToken.id == token_id,
                ComposerToken.owner_id == owner_id,
            )
        )
        token = result.scalar_one_or_none()
        if token is None:
            return False

        if token.revoked_at is None:
            token.revoked_at = datetime.now(UTC)
            await self.db.flush()
            logger.info(
                f"Revoked composer token {token.display_prefix}", extra={"owner_id": owner_id}
            )
        return True

    async def list_for_owner(
        self,
        owner_id: str,
        include_revoked: bool = False,
    ) -> list[ComposerToken]:
        """List an owner's tokens, newest first."""
        query = select(ComposerToken).where(ComposerToken.owner_id == owner_id)
        if not include_revoked:
            query = query.where(ComposerToken.revoked_at.is_(None))
        result = await self.db.execute(
            query.order_by(ComposerToken.created_at.desc(), ComposerToken.id)
        )
        return list(result.scalars().all())
