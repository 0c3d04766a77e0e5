"""Tests for the package feed builder and product versions."""

import pytest

from update_feed.services.entitlements import (
    OwnedProduct,
    ProductFileInfo,
    SqlEntitlementStore,
    classify_product,
)
from update_feed.services.package_feed import PackageFeedBuilder, composer_package_name
from update_feed.services.product_versions import (
    ProductVersions,
    VersionCache,
    extract_version,
)


class FakeStore:
    """In-memory entitlement store."""

    def __init__(self, products=None, files=None):
        self.products = products or {}
        self.files = files or {}
        self.file_calls = 0

    async def list_owned_products(self, owner_id):
        return self.products.get(owner_id, [])

    async def list_product_files(self, product_id):
        self.file_calls += 1
        return self.files.get(product_id, [])

    def download_url(self, product, file_id):
        return f"https://shop.example.com/dl/{product.product_id}/{file_id}"


def _product(**kwargs) -> OwnedProduct:
    defaults = {
        "product_id": "p1",
        "sku": "ultimate_addon",
        "name": "Ultimate Addon",
        "type": "plugin",
    }
    defaults.update(kwargs)
    return OwnedProduct(**defaults)


def _file(name: str, file_id: str | None = None, path: str = "/nonexistent/file.zip"):
    return ProductFileInfo(file_id=file_id or name, name=name, file_path=path)


class TestHelpers:
    """Tests for naming and classification helpers."""

    def test_package_name(self):
        assert composer_package_name("Ultimate_Addon") == "ultimate-multisite/ultimate-addon"
        assert composer_package_name("addon", vendor="acme") == "acme/addon"
        assert composer_package_name("  ") == ""

    @pytest.mark.parametrize(
        "software_type,tags,expected",
        [
            ("plugin", [], "plugin"),
            ("theme", [], "theme"),
            ("plugin", ["Themes"], "theme"),
            (None, None, "plugin"),
        ],
    )
    def test_classify_product(self, software_type, tags, expected):
        assert classify_product(software_type, tags) == expected


class TestExtractVersion:
    """Tests for version source precedence."""

    def test_embedded_metadata_wins_over_filename(self, plugin_zip):
        path = plugin_zip("upload.zip", "2.3.4")
        assert extract_version(_file("ultimate-addon-1.0.0.zip", path=path)) == "2.3.4"

    def test_filename_when_metadata_missing(self, plugin_zip):
        path = plugin_zip("upload.zip", None)
        assert extract_version(_file("ultimate-addon-1.0.0.zip", path=path)) == "1.0.0"

    def test_remote_file_uses_url_basename(self):
        remote = ProductFileInfo(
            file_id="k",
            name="Latest build",
            file_path="https://cdn.example.com/ultimate-addon-3.1.0.zip?sig=abc",
            remote=True,
        )
        assert extract_version(remote) == "3.1.0"

    def test_no_version_anywhere(self):
        assert extract_version(_file("ultimate-addon.zip")) is None


class TestProductVersions:
    """Tests for ProductVersions."""

    @pytest.mark.asyncio
    async def test_sorted_newest_first_and_unversioned_excluded(self):
        store = FakeStore(
            files={
                "p1": [
                    _file("addon-1.2.0.zip"),
                    _file("addon.zip"),
                    _file("addon-1.10.0.zip"),
                    _file("addon-1.2.0-beta.zip"),
                ]
            }
        )
        versions = await ProductVersions(store, VersionCache()).versions_for("p1")

        assert [v.version for v in versions] == ["1.10.0", "1.2.0", "1.2.0-beta"]

    @pytest.mark.asyncio
    async def test_cached_until_invalidated(self):
        cache = VersionCache()
        store = FakeStore(files={"p1": [_file("addon-1.0.0.zip")]})
        versions = ProductVersions(store, cache)

        await versions.versions_for("p1")
        await versions.versions_for("p1")
        assert store.file_calls == 1

        store.files["p1"].append(_file("addon-2.0.0.zip"))
        cache.invalidate("p1")
        assert [v.version for v in await versions.versions_for("p1")] == ["2.0.0", "1.0.0"]
        assert store.file_calls == 2

    @pytest.mark.asyncio
    async def test_load_overtaken_by_invalidation_is_not_cached(self):
        cache = VersionCache()
        store = FakeStore(files={"p1": [_file("addon-1.0.0.zip")]})

        async def list_then_invalidate(product_id):
            store.file_calls += 1
            files = list(store.files["p1"])
            if store.file_calls == 1:
                # File set changes while the first load is in flight
                store.files["p1"] = [_file("addon-2.0.0.zip")]
                cache.invalidate(product_id)
            return files

        store.list_product_files = list_then_invalidate
        versions = ProductVersions(store, cache)

        assert [v.version for v in await versions.versions_for("p1")] == ["1.0.0"]
        assert cache.get("p1") is None
        assert [v.version for v in await versions.versions_for("p1")] == ["2.0.0"]

    def test_set_refuses_outdated_generation(self):
        cache = VersionCache()
        generation = cache.generation("p1")
        cache.invalidate("p1")

        assert cache.set("p1", [], generation) is False
        assert cache.get("p1") is None
        assert cache.set("p1", [], cache.generation("p1")) is True

    @pytest.mark.asyncio
    async def test_cache_ttl_expiry(self):
        cache = VersionCache(ttl_seconds=0)
        store = FakeStore(files={"p1": [_file("addon-1.0.0.zip")]})
        versions = ProductVersions(store, cache)

        await versions.versions_for("p1")
        await versions.versions_for("p1")
        assert store.file_calls == 2

    @pytest.mark.asyncio
    async def test_latest_stable(self):
        store = FakeStore(files={"p1": [_file("addon-1.0.0.zip"), _file("addon-2.0.0-rc1.zip")]})
        versions = ProductVersions(store, VersionCache())

        assert (await versions.latest_for("p1")).version == "1.0.0"
        assert (await versions.latest_for("p1", include_prerelease=True)).version == "2.0.0-rc1"


class TestBuildFeed:
    """Tests for PackageFeedBuilder.build_feed."""

    @pytest.mark.asyncio
    async def test_feed_document(self):
        store = FakeStore(
            products={"owner-1": [_product(requires_wp="5.8")]},
            files={"p1": [_file("addon-1.2.0.zip", "f1"), _file("addon-1.10.0.zip", "f2")]},
        )

        feed = await PackageFeedBuilder(store, VersionCache()).build_feed("owner-1")

        package = feed["packages"]["ultimate-multisite/ultimate-addon"]
        assert list(package) == ["1.10.0", "1.2.0"]
        assert package["1.10.0"] == {
            "name": "ultimate-multisite/ultimate-addon",
            "version": "1.10.0",
            "type": "wordpress-plugin",
            "dist": {"url": "https://shop.example.com/dl/p1/f2", "type": "zip"},
            "require": {"php": ">=7.4", "wordpress/core": ">=5.8"},
        }

    @pytest.mark.asyncio
    async def test_platform_requirement_only_when_known(self):
        store = FakeStore(
            products={"owner-1": [_product()]},
            files={"p1": [_file("addon-1.0.0.zip")]},
        )
        feed = await PackageFeedBuilder(store, VersionCache()).build_feed("owner-1")

        entry = feed["packages"]["ultimate-multisite/ultimate-addon"]["1.0.0"]
        assert entry["require"] == {"php": ">=7.4"}

    @pytest.mark.asyncio
    async def test_theme_package_type(self):
        store = FakeStore(
            products={"owner-1": [_product(sku="starter", type="theme")]},
            files={"p1": [_file("starter-1.0.0.zip")]},
        )
        feed = await PackageFeedBuilder(store, VersionCache()).build_feed("owner-1")

        assert feed["packages"]["ultimate-multisite/starter"]["1.0.0"]["type"] == "wordpress-theme"

    @pytest.mark.asyncio
    async def test_empty_sku_skipped(self):
        store = FakeStore(
            products={"owner-1": [_product(sku="")]},
            files={"p1": [_file("addon-1.0.0.zip")]},
        )
        assert await PackageFeedBuilder(store, VersionCache()).build_feed("owner-1") == {
            "packages": {}
        }

    @pytest.mark.asyncio
    async def test_owner_without_purchases(self):
        feed = await PackageFeedBuilder(FakeStore(), VersionCache()).build_feed("nobody")
        assert feed == {"packages": {}}

    @pytest.mark.asyncio
    async def test_duplicate_versions_keep_first(self):
        store = FakeStore(
            products={"owner-1": [_product()]},
            files={"p1": [_file("addon-1.0.0.zip", "first"), _file("addon-v1.0.0.zip", "second")]},
        )
        feed = await PackageFeedBuilder(store, VersionCache()).build_feed("owner-1")

        entry = feed["packages"]["ultimate-multisite/ultimate-addon"]["1.0.0"]
        assert entry["dist"]["url"].endswith("/first")


class TestDownloads:
    """Tests for list_downloads and version_download_url."""

    @pytest.mark.asyncio
    async def test_list_downloads(self):
        store = FakeStore(
            products={"owner-1": [_product(requires_wp="6.0", tested_up_to="6.5")]},
            files={"p1": [_file("addon-1.0.0.zip", "f1"), _file("addon-2.0.0-beta.zip", "f2")]},
        )
        downloads = await PackageFeedBuilder(store, VersionCache()).list_downloads("owner-1")

        assert len(downloads) == 1
        product = downloads[0]
        assert product["requires"] == "6.0"
        assert [v["version"] for v in product["versions"]] == ["2.0.0-beta", "1.0.0"]
        assert product["latest_version"] == "2.0.0-beta"
        assert product["latest_stable_version"] == "1.0.0"

    @pytest.mark.asyncio
    async def test_version_download_url(self):
        store = FakeStore(
            products={"owner-1": [_product()]},
            files={"p1": [_file("addon-1.0.0.zip", "f1")]},
        )
        builder = PackageFeedBuilder(store, VersionCache())

        assert await builder.version_download_url("owner-1", "ultimate_addon", "1.0.0") == (
            "https://shop.example.com/dl/p1/f1"
        )
        assert await builder.version_download_url("owner-1", "ultimate_addon", "9.9.9") is None
        assert await builder.version_download_url("owner-2", "ultimate_addon", "1.0.0") is None


class TestSqlEntitlementStore:
    """Tests for the bundled SQL entitlement store."""

    @pytest.mark.asyncio
    async def test_owned_products_and_files(self, db_session, product_factory, entitlement_factory):
        product = await product_factory(
            files=[
                ("addon-1.0.0.zip", "/srv/files/addon-1.0.0.zip"),
                {"name": "addon-0.9.0.zip", "file_path": "/srv/old.zip", "enabled": False},
                ("addon-1.1.0.zip", "https://cdn.example.com/addon-1.1.0.zip"),
            ],
            tags=["plugins"],
        )
        await entitlement_factory(product)
        store = SqlEntitlementStore(db_session)

        owned = await store.list_owned_products("owner-1")
        assert [p.sku for p in owned] == ["ultimate-addon"]
        assert owned[0].type == "plugin"

        files = await store.list_product_files(owned[0].product_id)
        assert [f.name for f in files] == ["addon-1.0.0.zip", "addon-1.1.0.zip"]
        assert [f.remote for f in files] == [False, True]

    @pytest.mark.asyncio
    async def test_non_downloadable_products_hidden(
        self, db_session, product_factory, entitlement_factory
    ):
        product = await product_factory(downloadable=False)
        await entitlement_factory(product)

        assert await SqlEntitlementStore(db_session).list_owned_products("owner-1") == []

    @pytest.mark.asyncio
    async def test_download_url(self, db_session):
        store = SqlEntitlementStore(db_session, storefront_url="https://shop.example.com/")
        url = store.download_url(
            _product(order_key="wc_order_1", email="a@example.com"),
            "key-0",
        )
        assert url == (
            "https://shop.example.com/?download_file=p1&order=wc_order_1"
            "&email=a%40example.com&key=key-0"
        )
