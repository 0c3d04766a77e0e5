"""Downloads listing for the signed-in owner."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from update_feed.api.session import get_current_owner
from update_feed.core import get_db, settings
from update_feed.schemas.product import DownloadProduct, DownloadsResponse
from update_feed.services.entitlements import SqlEntitlementStore
from update_feed.services.package_feed import PackageFeedBuilder

router = APIRouter(
    prefix="/downloads",
    tags=["downloads"],
)


def get_feed_builder(db: AsyncSession = Depends(get_db)) -> PackageFeedBuilder:
    """Dependency to get a feed builder over the SQL entitlement store."""
    return PackageFeedBuilder(SqlEntitlementStore(db))


@router.get("", response_model=DownloadsResponse)
async def list_downloads(
    owner_id: str = Depends(get_current_owner),
    builder: PackageFeedBuilder = Depends(get_feed_builder),
) -> DownloadsResponse:
    """Every purchased product with all of its downloadable versions."""
    products = await builder.list_downloads(owner_id)
    return DownloadsResponse(
        products=[DownloadProduct.model_validate(p) for p in products],
        repository_url=settings.repository_url,
    )
