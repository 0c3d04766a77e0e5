"""ComposerToken model - hashed credentials for the package feed."""

from datetime import datetime

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from update_feed.models.base import BaseModel


class ComposerToken(BaseModel):
    """A Composer repository token owned by a storefront customer.

    Only the SHA-256 hash of the secret is stored; the raw value is shown
    to the owner once at generation time. Tokens are never deleted,
    revocation sets ``revoked_at`` and the row is kept for audit.
    """

    __tablename__ = "composer_tokens"

    owner_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    # Prefix plus the first random characters, for display only
    display_prefix: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="Default")

    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("ix_composer_tokens_owner_revoked", "owner_id", "revoked_at"),)

    @property
    def is_active(self) -> bool:
        return self.revoked_at is None

    def __repr__(self) -> str:
        return (
            f"<ComposerToken {self.display_prefix} owner={self.owner_id} active={self.is_active}>"
        )
