"""Admin catalog endpoints: products, release files and entitlements."""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from update_feed.api.session import require_admin
from update_feed.core import get_db
from update_feed.core.exceptions import NotFoundError
from update_feed.schemas.product import (
    EntitlementGrant,
    EntitlementResponse,
    ProductFilesReplace,
    ProductResponse,
    ProductUpsert,
)
from update_feed.services.catalog import ProductCatalogService

router = APIRouter(
    prefix="/products",
    tags=["products"],
    dependencies=[Depends(require_admin)],
)


def get_catalog_service(db: AsyncSession = Depends(get_db)) -> ProductCatalogService:
    return ProductCatalogService(db)


@router.post("", response_model=ProductResponse)
async def upsert_product(
    data: ProductUpsert,
    service: ProductCatalogService = Depends(get_catalog_service),
) -> ProductResponse:
    """Create or update a product by SKU."""
    product = await service.upsert(data)
    return ProductResponse.model_validate(product)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: UUID,
    service: ProductCatalogService = Depends(get_catalog_service),
) -> ProductResponse:
    product = await service.get(product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return ProductResponse.model_validate(product)


@router.put("/{product_id}/files", response_model=ProductResponse)
async def replace_product_files(
    product_id: UUID,
    data: ProductFilesReplace,
    service: ProductCatalogService = Depends(get_catalog_service),
) -> ProductResponse:
    """Replace the product's release files; cached versions are dropped."""
    product = await service.replace_files(product_id, data.files)
    return ProductResponse.model_validate(product)


@router.post(
    "/{product_id}/entitlements",
    response_model=EntitlementResponse,
    status_code=status.HTTP_201_CREATED,
)
async def grant_entitlement(
    product_id: UUID,
    data: EntitlementGrant,
    service: ProductCatalogService = Depends(get_catalog_service),
) -> EntitlementResponse:
    """Grant an owner download access to the product."""
    entitlement = await service.grant(product_id, data)
    return EntitlementResponse.model_validate(entitlement)
