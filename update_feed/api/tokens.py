"""Composer token management endpoints for the signed-in owner."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from update_feed.api.session import get_current_owner
from update_feed.core import get_db, settings
from update_feed.core.exceptions import ValidationError
from update_feed.schemas.composer_token import (
    TokenCreate,
    TokenGenerateResponse,
    TokenListResponse,
    TokenResponse,
    TokenRevoke,
    TokenRevokeResponse,
)
from update_feed.services.composer_token import ComposerTokenService

router = APIRouter(
    prefix="/tokens",
    tags=["tokens"],
)


def get_token_service(db: AsyncSession = Depends(get_db)) -> ComposerTokenService:
    """Dependency to get token service."""
    return ComposerTokenService(db)


async def _active_tokens(service: ComposerTokenService, owner_id: str) -> list[TokenResponse]:
    tokens = await service.list_for_owner(owner_id)
    return [TokenResponse.model_validate(t) for t in tokens]


@router.get("", response_model=TokenListResponse)
async def list_tokens(
    owner_id: str = Depends(get_current_owner),
    service: ComposerTokenService = Depends(get_token_service),
) -> TokenListResponse:
    """List the owner's active tokens and the repository URL to configure."""
    return TokenListResponse(
        tokens=await _active_tokens(service, owner_id),
        repository_url=settings.repository_url,
    )


@router.post("", response_model=TokenGenerateResponse, status_code=status.HTTP_201_CREATED)
async def generate_token(
    data: TokenCreate,
    owner_id: str = Depends(get_current_owner),
    service: ComposerTokenService = Depends(get_token_service),
) -> TokenGenerateResponse:
    """Generate a token. The raw secret is only ever returned here."""
    raw_token = await service.generate(owner_id, data.name)
    return TokenGenerateResponse(
        token=raw_token,
        tokens=await _active_tokens(service, owner_id),
    )


@router.post("/revoke", response_model=TokenRevokeResponse)
async def revoke_token(
    data: TokenRevoke,
    owner_id: str = Depends(get_current_owner),
    service: ComposerTokenService = Depends(get_token_service),
) -> TokenRevokeResponse:
    """Revoke one of the owner's tokens."""
    if not await service.revoke(data.token_id, owner_id):
        raise ValidationError("Invalid token ID.", code="invalid_token_id")
    return TokenRevokeResponse(tokens=await _active_tokens(service, owner_id))
