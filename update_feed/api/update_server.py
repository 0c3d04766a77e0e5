"""WordPress update-check endpoint for installed plugins and themes."""

import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from update_feed.core import get_db, settings
from update_feed.core.exceptions import (
    AuthError,
    InvalidTokenFormatError,
    TokenNotFoundError,
    ValidationError,
)
from update_feed.core.request_utils import get_bearer_token, get_client_ip
from update_feed.services.composer_token import ComposerTokenService
from update_feed.services.entitlements import SqlEntitlementStore
from update_feed.services.session import decode_session_token
from update_feed.services.update_server import ACTIONS, UpdateServer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["updates"])


async def resolve_owner(request: Request, token: str | None, db: AsyncSession) -> str | None:
    """Owner id behind the request's credential, or None when anonymous.

    A Bearer value carrying the Composer token prefix, or a ``token``
    query parameter, is checked as a Composer token; any other Bearer
    value must be a host session JWT. A credential that is presented but
    invalid is rejected rather than treated as anonymous.
    """
    bearer = get_bearer_token(request)
    if bearer and not bearer.startswith(settings.token_prefix):
        return decode_session_token(bearer).owner_id

    raw_token = bearer or (token or "").strip()
    if not raw_token:
        return None

    try:
        return await ComposerTokenService(db).validate(raw_token, get_client_ip(request))
    except (InvalidTokenFormatError, TokenNotFoundError) as e:
        raise AuthError() from e


@router.get("/update", response_model=None)
async def update_check(
    request: Request,
    update_action: str = Query(..., description="get_metadata or download"),
    update_slug: str = Query(..., min_length=1, description="Product SKU"),
    token: str | None = Query(None, description="Composer token, when no header is sent"),
    db: AsyncSession = Depends(get_db),
) -> JSONResponse | RedirectResponse:
    """Latest release metadata, or a redirect to the owner's download."""
    if update_action not in ACTIONS:
        raise ValidationError(f"Unknown update_action: {update_action}", code="invalid_action")

    owner_id = await resolve_owner(request, token, db)
    server = UpdateServer(SqlEntitlementStore(db))

    if update_action == "download":
        url = await server.download_url(update_slug, owner_id)
        return RedirectResponse(url, status_code=302)

    metadata = await server.metadata(update_slug, owner_id)
    return JSONResponse(content=metadata, headers={"Cache-Control": "private, no-store"})
