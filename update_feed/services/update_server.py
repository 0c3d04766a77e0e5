"""Update server - answers the WordPress update checker of installed plugins.

Installed copies poll ``/update?update_action=get_metadata&update_slug=<sku>``
for the latest release and fetch it through ``update_action=download``,
which redirects entitled owners to their storefront download link.
"""

import logging
from typing import Any
from urllib.parse import urlencode

from update_feed.core.config import settings
from update_feed.core.exceptions import NotFoundError, NoValidOrderError
from update_feed.services.entitlements import EntitlementStore, OwnedProduct
from update_feed.services.product_versions import ProductVersions, VersionCache, VersionInfo

logger = logging.getLogger(__name__)

ACTIONS = ("get_metadata", "download")


def update_endpoint_url(sku: str, action: str = "download") -> str:
    """Public URL of the update endpoint for one package."""
    query = urlencode({"update_action": action, "update_slug": sku})
    return f"{settings.public_url.rstrip('/')}/update?{query}"


class UpdateServer:
    """Resolves update-check metadata and download redirects for a SKU."""

    def __init__(self, store: EntitlementStore, cache: VersionCache | None = None):
        self.store = store
        self.versions = ProductVersions(store, cache)

    async def _owned(self, owner_id: str | None, sku: str) -> OwnedProduct | None:
        if not owner_id:
            return None
        for product in await self.store.list_owned_products(owner_id):
            if product.sku == sku:
                return product
        return None

    async def _latest(self, product: OwnedProduct) -> VersionInfo | None:
        """Latest stable release, or the latest pre-release when no stable exists."""
        latest = await self.versions.latest_for(product.product_id)
        if latest is None:
            latest = await self.versions.latest_for(product.product_id, include_prerelease=True)
        return latest

    async def _resolve(self, sku: str) -> tuple[OwnedProduct, VersionInfo]:
        product = await self.store.find_product(sku)
        latest = await self._latest(product) if product is not None else None
        if product is None or latest is None:
            raise NotFoundError("Package not found")
        return product, latest

    async def metadata(self, sku: str, owner_id: str | None = None) -> dict[str, Any]:
        """Update-check metadata of the newest release.

        Owners with a grant get their direct download link; everyone else
        gets the ``download`` action URL, which checks entitlement itself.
        """
        product, latest = await self._resolve(sku)

        owned = await self._owned(owner_id, sku)
        if owned is not None:
            download_url = self.store.download_url(owned, latest.file_id)
        else:
            download_url = update_endpoint_url(sku)

        return {
            "name": product.name,
            "slug": product.sku,
            "version": latest.version,
            "download_url": download_url,
            "requires": product.requires_wp,
            "tested": product.tested_up_to,
        }

    async def download_url(self, sku: str, owner_id: str | None) -> str:
        """Storefront download link of the newest release for an entitled owner.

        Raises:
            NotFoundError: Unknown SKU, or no versioned release
            NoValidOrderError: Anonymous caller, or no grant for the product
        """
        _, latest = await self._resolve(sku)

        owned = await self._owned(owner_id, sku)
        if owned is None:
            logger.info(f"Download of {sku} refused: no valid order")
            raise NoValidOrderError()
        return self.store.download_url(owned, latest.file_id)
