"""Composer repository endpoint authenticated by a Composer token."""

import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from update_feed.core import get_db, settings
from update_feed.core.exceptions import (
    AuthError,
    InvalidTokenFormatError,
    MissingTokenError,
    TokenNotFoundError,
)
from update_feed.core.request_utils import get_bearer_token, get_client_ip
from update_feed.services.composer_token import ComposerTokenService
from update_feed.services.entitlements import SqlEntitlementStore
from update_feed.services.package_feed import PackageFeedBuilder

logger = logging.getLogger(__name__)

router = APIRouter(tags=["composer"])


@router.get("/packages.json")
async def packages_json(
    request: Request,
    token: str | None = Query(None, description="Token, when no Authorization header is sent"),
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    """Composer ``packages.json`` listing the token owner's purchased packages.

    Format errors, unknown and revoked tokens all answer the same
    ``invalid_token`` so callers cannot tell them apart.
    """
    raw_token = get_bearer_token(request) or (token or "").strip()
    if not raw_token:
        raise MissingTokenError()

    try:
        owner_id = await ComposerTokenService(db).validate(raw_token, get_client_ip(request))
    except (InvalidTokenFormatError, TokenNotFoundError) as e:
        raise AuthError() from e

    feed = await PackageFeedBuilder(SqlEntitlementStore(db)).build_feed(owner_id)
    return JSONResponse(
        content=feed,
        headers={"Cache-Control": f"private, max-age={settings.packages_cache_max_age}"},
    )
