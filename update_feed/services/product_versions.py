"""Product versions - the release list of a product, newest first."""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

from update_feed.core.config import settings
from update_feed.core.versioning import (
    is_valid_version,
    latest_version,
    sort_versions_desc,
    version_from_filename,
)
from update_feed.services.archive_metadata import read_archive_metadata
from update_feed.services.entitlements import EntitlementStore, ProductFileInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VersionInfo:
    """One release of a product."""

    version: str
    file_id: str
    name: str


class VersionCache:
    """Per-product cache of sorted version lists with a TTL.

    Entries are invalidated explicitly whenever a product's file set
    changes, and expire after ``VERSION_CACHE_TTL_SECONDS`` otherwise.

    Each product also has a generation counter that ``invalidate`` bumps.
    A reader takes the generation before loading files and passes it to
    ``set``; a list loaded before an invalidation is then discarded
    instead of resurrecting the old file set.
    """

    _instance: Optional["VersionCache"] = None
    _instance_lock: threading.Lock = threading.Lock()

    def __init__(self, ttl_seconds: int | None = None):
        if ttl_seconds is None:
            ttl_seconds = settings.version_cache_ttl_seconds
        self.ttl_seconds = ttl_seconds
        self._entries: dict[str, tuple[float, list[VersionInfo]]] = {}
        self._generations: dict[str, int] = {}
        self._lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> "VersionCache":
        """Get singleton instance (thread-safe)."""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get(self, product_id: str) -> list[VersionInfo] | None:
        with self._lock:
            entry = self._entries.get(product_id)
            if entry is None:
                return None
            expires_at, versions = entry
            if time.monotonic() >= expires_at:
                del self._entries[product_id]
                return None
            return list(versions)

    def generation(self, product_id: str) -> int:
        with self._lock:
            return self._generations.get(product_id, 0)

    def set(
        self,
        product_id: str,
        versions: list[VersionInfo],
        generation: int | None = None,
    ) -> bool:
        """Store a version list; refused when loaded before the last invalidation.

        Returns:
            True if the list was stored
        """
        with self._lock:
            if generation is not None and generation != self._generations.get(product_id, 0):
                return False
            self._entries[product_id] = (time.monotonic() + self.ttl_seconds, list(versions))
            return True

    def invalidate(self, product_id: str) -> None:
        """Drop a product's cached versions (its files changed)."""
        with self._lock:
            self._entries.pop(product_id, None)
            self._generations[product_id] = self._generations.get(product_id, 0) + 1

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generations.clear()


def extract_version(file: ProductFileInfo) -> str | None:
    """Version of one release file.

    Embedded archive metadata wins when the file is a readable local zip;
    otherwise the version is parsed from the file name. Remote files are
    not downloaded, only their name is inspected. Returns None when no
    source yields a parseable version.
    """
    if not file.remote:
        metadata = read_archive_metadata(file.file_path)
        if metadata is not None and is_valid_version(metadata.version):
            return metadata.version

    version = version_from_filename(file.name)
    if version is None and file.remote:
        version = version_from_filename(file.file_path.rsplit("/", 1)[-1].split("?", 1)[0])
    return version


class ProductVersions:
    """Resolves and caches the version list of products."""

    def __init__(self, store: EntitlementStore, cache: VersionCache | None = None):
        self.store = store
        self.cache = cache or VersionCache.get_instance()

    async def versions_for(self, product_id: str) -> list[VersionInfo]:
        """All versions of a product, newest first (stable for ties)."""
        cached = self.cache.get(product_id)
        if cached is not None:
            return cached

        generation = self.cache.generation(product_id)
        loop = asyncio.get_running_loop()

        versions = []
        for file in await self.store.list_product_files(product_id):
            if file.remote:
                version = extract_version(file)
            else:
                # Zip reads happen off the event loop
                version = await loop.run_in_executor(None, extract_version, file)
            if version is None:
                logger.info(f"Skipping file without a version: {file.name} (product {product_id})")
                continue
            versions.append(VersionInfo(version=version, file_id=file.file_id, name=file.name))

        versions = sort_versions_desc(versions, key=lambda v: v.version)
        self.cache.set(product_id, versions, generation)
        return versions

    async def latest_for(
        self,
        product_id: str,
        include_prerelease: bool = False,
    ) -> VersionInfo | None:
        """Latest release, skipping pre-releases unless asked."""
        versions = await self.versions_for(product_id)
        latest = latest_version([v.version for v in versions], include_prerelease)
        if latest is None:
            return None
        return next(v for v in versions if v.version == latest)
