"""Pydantic schemas for Composer tokens."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class TokenCreate(BaseModel):
    """Schema for generating a token."""

    name: str | None = None


class TokenRevoke(BaseModel):
    """Schema for revoking a token."""

    token_id: UUID


class TokenResponse(BaseModel):
    """Schema for token response (never includes the secret or its hash)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    display_prefix: str
    created_at: datetime
    last_used_at: datetime | None
    revoked_at: datetime | None
    is_active: bool


class TokenListResponse(BaseModel):
    tokens: list[TokenResponse]
    repository_url: str


class TokenGenerateResponse(BaseModel):
    """The raw secret, shown exactly once."""

    token: str
    tokens: list[TokenResponse]


class TokenRevokeResponse(BaseModel):
    tokens: list[TokenResponse]
