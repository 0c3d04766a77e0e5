"""Package feed builder - renders an owner's Composer packages.json."""

import logging
from typing import Any

from update_feed.core.config import settings
from update_feed.services.entitlements import EntitlementStore, OwnedProduct
from update_feed.services.product_versions import ProductVersions, VersionCache

logger = logging.getLogger(__name__)

PACKAGE_TYPES = {
    "plugin": "wordpress-plugin",
    "theme": "wordpress-theme",
}


def composer_package_name(sku: str, vendor: str | None = None) -> str:
    """``<vendor>/<sku>`` lowercased with underscores turned into hyphens.

    Returns an empty string when the SKU is empty.
    """
    slug = (sku or "").strip().replace("_", "-").lower()
    if not slug:
        return ""
    return f"{vendor or settings.composer_vendor}/{slug}"


class PackageFeedBuilder:
    """Builds feed documents from the entitlement store. Never writes."""

    def __init__(self, store: EntitlementStore, cache: VersionCache | None = None):
        self.store = store
        self.versions = ProductVersions(store, cache)

    def _package_entry(
        self,
        package_name: str,
        product: OwnedProduct,
        version: str,
        download_url: str,
    ) -> dict[str, Any]:
        require = {"php": settings.composer_php_requirement}
        if product.requires_wp:
            require[settings.composer_platform_package] = f">={product.requires_wp}"

        return {
            "name": package_name,
            "version": version,
            "type": PACKAGE_TYPES.get(product.type, PACKAGE_TYPES["plugin"]),
            "dist": {
                "url": download_url,
                "type": "zip",
            },
            "require": require,
        }

    async def build_feed(self, owner_id: str) -> dict[str, Any]:
        """packages.json for everything the owner has purchased.

        Versions are listed newest first; a product without a usable SKU
        is left out.
        """
        packages: dict[str, dict[str, Any]] = {}

        for product in await self.store.list_owned_products(owner_id):
            package_name = composer_package_name(product.sku)
            if not package_name:
                continue

            entries: dict[str, Any] = {}
            for version in await self.versions.versions_for(product.product_id):
                # Duplicate version strings keep the first (newest file order) entry
                if version.version in entries:
                    continue
                entries[version.version] = self._package_entry(
                    package_name,
                    product,
                    version.version,
                    self.store.download_url(product, version.file_id),
                )
            packages[package_name] = entries

        logger.debug(f"Built package feed for owner {owner_id}: {len(packages)} packages")
        return {"packages": packages}

    async def list_downloads(self, owner_id: str) -> list[dict[str, Any]]:
        """Products with every downloadable version, for the account page."""
        downloads = []
        for product in await self.store.list_owned_products(owner_id):
            versions = await self.versions.versions_for(product.product_id)
            latest_stable = await self.versions.latest_for(product.product_id)
            downloads.append(
                {
                    "product_id": product.product_id,
                    "name": product.name,
                    "sku": product.sku,
                    "type": product.type,
                    "requires": product.requires_wp,
                    "tested_up_to": product.tested_up_to,
                    "versions": [
                        {
                            "version": v.version,
                            "file_id": v.file_id,
                            "name": v.name,
                            "download_url": self.store.download_url(product, v.file_id),
                        }
                        for v in versions
                    ],
                    "latest_version": versions[0].version if versions else None,
                    "latest_stable_version": latest_stable.version if latest_stable else None,
                }
            )
        return downloads

    async def version_download_url(self, owner_id: str, sku: str, version: str) -> str | None:
        """Download URL of one specific version, if the owner has it."""
        for product in await self.store.list_owned_products(owner_id):
            if product.sku != sku:
                continue
            for info in await self.versions.versions_for(product.product_id):
                if info.version == version:
                    return self.store.download_url(product, info.file_id)
        return None
