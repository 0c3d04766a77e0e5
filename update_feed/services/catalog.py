"""Product catalog service - admin maintenance of the bundled entitlement store."""

import logging
from uuid import UUID

from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from update_feed.core.exceptions import NotFoundError
from update_feed.models.product import Entitlement, Product, ProductFile
from update_feed.schemas.product import EntitlementGrant, ProductFileIn, ProductUpsert
from update_feed.services.product_versions import VersionCache

logger = logging.getLogger(__name__)


class ProductCatalogService:
    """Service for managing products, their release files and grants."""

    def __init__(self, db: AsyncSession, cache: VersionCache | None = None):
        self.db = db
        self.cache = cache or VersionCache.get_instance()

    async def get(self, product_id: UUID) -> Product | None:
        """Get a product with its files loaded."""
        result = await self.db.execute(
            select(Product)
            .options(selectinload(Product.files))
            .where(Product.id == product_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _require(self, product_id: UUID) -> Product:
        product = await self.get(product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    async def upsert(self, data: ProductUpsert) -> Product:
        """Create a product, or update the one with the same SKU."""
        result = await self.db.execute(select(Product).where(Product.sku == data.sku))
        product = result.scalar_one_or_none()

        if product is None:
            product = Product(**data.model_dump())
            self.db.add(product)
            logger.info(f"Created product {data.sku}")
        else:
            for field, value in data.model_dump().items():
                setattr(product, field, value)
            logger.info(f"Updated product {data.sku}")

        await self.db.flush()
        return await self._require(product.id)

    async def replace_files(self, product_id: UUID, files: list[ProductFileIn]) -> Product:
        """Replace a product's file set; order in ``files`` becomes the stored order."""
        product = await self._require(product_id)

        # Flush the removals first so reused file keys do not collide
        product.files.clear()
        await self.db.flush()

        for position, file in enumerate(files):
            product.files.append(ProductFile(position=position, **file.model_dump()))
        await self.db.flush()

        self._invalidate_versions(str(product_id))
        logger.info(f"Replaced files of product {product_id}: {len(files)} files")
        return await self._require(product_id)

    def _invalidate_versions(self, product_id: str) -> None:
        """Drop cached versions now and again once the transaction commits.

        A feed request running on another connection before the commit
        still sees the old files; the second invalidation evicts whatever
        it cached.
        """
        self.cache.invalidate(product_id)

        def _after_commit(session) -> None:
            self.cache.invalidate(product_id)

        event.listen(self.db.sync_session, "after_commit", _after_commit, once=True)

    async def grant(self, product_id: UUID, data: EntitlementGrant) -> Entitlement:
        """Grant (or refresh) an owner's download access to a product."""
        await self._require(product_id)

        result = await self.db.execute(
            select(Entitlement).where(
                Entitlement.owner_id == data.owner_id,
                Entitlement.product_id == product_id,
            )
        )
        entitlement = result.scalar_one_or_none()
        if entitlement is None:
            entitlement = Entitlement(product_id=product_id, **data.model_dump())
            self.db.add(entitlement)
        else:
            entitlement.order_key = data.order_key
            entitlement.email = data.email

        await self.db.flush()
        await self.db.refresh(entitlement)
        logger.info(f"Granted product {product_id} to owner {data.owner_id}")
        return entitlement
