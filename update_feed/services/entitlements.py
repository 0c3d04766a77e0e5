"""Entitlement store - which products an owner may download, and from where.

The feed builder only talks to the ``EntitlementStore`` protocol. The
bundled ``SqlEntitlementStore`` reads the local catalog tables; a
deployment fronting a different storefront provides its own
implementation with the same methods.
"""

import logging
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlencode
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from update_feed.core.config import settings
from update_feed.models.product import Entitlement, Product, ProductFile

logger = logging.getLogger(__name__)

THEME_TAGS = {"theme", "themes"}


@dataclass(frozen=True)
class OwnedProduct:
    """A product an owner holds a download grant for."""

    product_id: str
    sku: str
    name: str
    type: str  # "plugin" or "theme"
    requires_wp: str | None = None
    tested_up_to: str | None = None
    order_key: str = ""
    email: str = ""


@dataclass(frozen=True)
class ProductFileInfo:
    """An enabled release archive of a product."""

    file_id: str
    name: str
    file_path: str
    remote: bool = False


class EntitlementStore(Protocol):
    """Narrow interface the package feed needs from the storefront."""

    async def list_owned_products(self, owner_id: str) -> list[OwnedProduct]: ...

    async def find_product(self, sku: str) -> OwnedProduct | None: ...

    async def list_product_files(self, product_id: str) -> list[ProductFileInfo]: ...

    def download_url(self, product: OwnedProduct, file_id: str) -> str: ...


def classify_product(software_type: str | None, tags: list[str] | None) -> str:
    """Theme if tagged as one or typed as one, plugin otherwise."""
    if any(tag.lower() in THEME_TAGS for tag in tags or []):
        return "theme"
    if software_type == "theme":
        return "theme"
    return "plugin"


class SqlEntitlementStore:
    """Entitlement store backed by the local products/entitlements tables."""

    def __init__(self, db: AsyncSession, storefront_url: str | None = None):
        self.db = db
        self.storefront_url = storefront_url or settings.storefront_url

    async def list_owned_products(self, owner_id: str) -> list[OwnedProduct]:
        """One entry per downloadable product the owner has a grant for."""
        result = await self.db.execute(
            select(Entitlement, Product)
            .join(Product, Product.id == Entitlement.product_id)
            .where(Entitlement.owner_id == owner_id, Product.downloadable.is_(True))
            .order_by(Entitlement.created_at, Product.sku)
        )

        products: dict[UUID, OwnedProduct] = {}
        for entitlement, product in result.all():
            if product.id in products:
                continue
            products[product.id] = OwnedProduct(
                product_id=str(product.id),
                sku=product.sku,
                name=product.name,
                type=classify_product(product.software_type, product.tags),
                requires_wp=product.requires_wp or None,
                tested_up_to=product.tested_up_to or None,
                order_key=entitlement.order_key,
                email=entitlement.email,
            )
        return list(products.values())

    async def find_product(self, sku: str) -> OwnedProduct | None:
        """Downloadable product by SKU, without any grant details."""
        result = await self.db.execute(
            select(Product).where(Product.sku == sku, Product.downloadable.is_(True))
        )
        product = result.scalar_one_or_none()
        if product is None:
            return None
        return OwnedProduct(
            product_id=str(product.id),
            sku=product.sku,
            name=product.name,
            type=classify_product(product.software_type, product.tags),
            requires_wp=product.requires_wp or None,
            tested_up_to=product.tested_up_to or None,
        )

    async def list_product_files(self, product_id: str) -> list[ProductFileInfo]:
        """Enabled files in stored order."""
        result = await self.db.execute(
            select(ProductFile)
            .where(
                ProductFile.product_id == UUID(product_id),
                ProductFile.enabled.is_(True),
            )
            .order_by(ProductFile.position, ProductFile.created_at)
        )
        return [
            ProductFileInfo(
                file_id=f.file_key,
                name=f.name,
                file_path=f.file_path,
                remote=f.is_remote,
            )
            for f in result.scalars().all()
        ]

    def download_url(self, product: OwnedProduct, file_id: str) -> str:
        """Permission-scoped storefront download link for one file."""
        query = urlencode(
            {
                "download_file": product.product_id,
                "order": product.order_key,
                "email": product.email,
                "key": file_id,
            }
        )
        return f"{self.storefront_url.rstrip('/')}/?{query}"
