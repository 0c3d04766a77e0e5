"""Tests for the Composer repository endpoint."""

import pytest
import pytest_asyncio
from httpx import AsyncClient

from update_feed.core import settings
from update_feed.services.composer_token import ComposerTokenService, generate_secret


@pytest.fixture
def issue_token(db_session):
    async def _issue(owner_id: str = "owner-1") -> str:
        return await ComposerTokenService(db_session).generate(owner_id)

    return _issue


@pytest_asyncio.fixture
async def purchased_addon(product_factory, entitlement_factory):
    product = await product_factory(
        sku="ultimate_addon",
        requires_wp="5.8",
        files=[
            ("ultimate-addon-1.2.0.zip", "/srv/files/ultimate-addon-1.2.0.zip"),
            ("ultimate-addon-1.10.0.zip", "/srv/files/ultimate-addon-1.10.0.zip"),
            ("ultimate-addon-1.2.0-beta.zip", "/srv/files/ultimate-addon-1.2.0-beta.zip"),
            ("ultimate-addon.zip", "/srv/files/ultimate-addon.zip"),
        ],
    )
    await entitlement_factory(product)
    return product


class TestPackagesJson:
    """Tests for GET /packages.json."""

    @pytest.mark.asyncio
    async def test_missing_token(self, async_client: AsyncClient):
        response = await async_client.get("/packages.json")

        assert response.status_code == 401
        assert response.json()["code"] == "missing_token"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", ["wu_tk_short", "garbage"])
    async def test_malformed_token(self, async_client: AsyncClient, token):
        response = await async_client.get(
            "/packages.json", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 401
        assert response.json()["code"] == "invalid_token"

    @pytest.mark.asyncio
    async def test_unknown_and_revoked_tokens_look_alike(
        self, async_client: AsyncClient, db_session, issue_token
    ):
        raw = await issue_token()
        service = ComposerTokenService(db_session)
        token = (await service.list_for_owner("owner-1"))[0]
        await service.revoke(token.id, "owner-1")

        revoked = await async_client.get("/packages.json", params={"token": raw})
        unknown = await async_client.get(
            "/packages.json", params={"token": generate_secret(settings.token_prefix)}
        )

        assert revoked.status_code == unknown.status_code == 401
        assert revoked.json() == unknown.json()

    @pytest.mark.asyncio
    async def test_feed_with_bearer_token(
        self, async_client: AsyncClient, issue_token, purchased_addon
    ):
        raw = await issue_token()

        response = await async_client.get(
            "/packages.json", headers={"Authorization": f"Bearer {raw}"}
        )

        assert response.status_code == 200
        assert response.headers["cache-control"] == "private, max-age=300"

        package = response.json()["packages"]["ultimate-multisite/ultimate-addon"]
        assert list(package) == ["1.10.0", "1.2.0", "1.2.0-beta"]

        entry = package["1.10.0"]
        assert entry["type"] == "wordpress-plugin"
        assert entry["require"] == {"php": ">=7.4", "wordpress/core": ">=5.8"}
        assert entry["dist"]["type"] == "zip"
        assert entry["dist"]["url"].startswith("https://shop.example.com/?download_file=")
        assert "key=key-1" in entry["dist"]["url"]

    @pytest.mark.asyncio
    async def test_feed_with_query_token(
        self, async_client: AsyncClient, issue_token, purchased_addon
    ):
        raw = await issue_token()

        response = await async_client.get("/packages.json", params={"token": raw})

        assert response.status_code == 200
        assert "ultimate-multisite/ultimate-addon" in response.json()["packages"]

    @pytest.mark.asyncio
    async def test_owner_without_purchases_gets_empty_object(
        self, async_client: AsyncClient, issue_token, purchased_addon
    ):
        raw = await issue_token("owner-without-orders")

        response = await async_client.get("/packages.json", params={"token": raw})

        assert response.status_code == 200
        assert response.json() == {"packages": {}}

    @pytest.mark.asyncio
    async def test_rate_limited_after_ten_attempts(self, async_client: AsyncClient, issue_token):
        raw = await issue_token()
        headers = {"X-Forwarded-For": "203.0.113.50"}

        for _ in range(settings.token_rate_limit):
            response = await async_client.get(
                "/packages.json", params={"token": "wu_tk_wrong"}, headers=headers
            )
            assert response.status_code == 401

        response = await async_client.get(
            "/packages.json", params={"token": raw}, headers=headers
        )

        assert response.status_code == 429
        assert response.json()["code"] == "rate_limited"
        assert int(response.headers["retry-after"]) >= 1

        # A different client address is not affected
        response = await async_client.get(
            "/packages.json", params={"token": raw}, headers={"X-Forwarded-For": "203.0.113.51"}
        )
        assert response.status_code == 200
