"""Pytest configuration and fixtures for update feed tests.

Database Handling:
- TEST_DATABASE_URL is used when set
- Otherwise, if testcontainers is installed and Docker is available, a
  PostgreSQL container is started
- Otherwise a temporary SQLite database (aiosqlite) is used
"""

import asyncio
import os
import tempfile
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Set test environment variables before importing app modules
os.environ["JWT_SECRET_KEY"] = "test-secret-key-with-at-least-32-characters"
os.environ["PUBLIC_URL"] = "https://updates.example.com"
os.environ["STOREFRONT_URL"] = "https://shop.example.com"


# --- Database Selection ---

_container = None
_database_url = None
_sqlite_dir = None


def _try_testcontainers() -> str | None:
    """Try to start PostgreSQL using testcontainers.

    Returns database URL if successful, None otherwise.
    """
    try:
        from testcontainers.postgres import PostgresContainer
    except ImportError:
        return None

    try:
        global _container
        _container = PostgresContainer(
            image="postgres:15-alpine",
            username="test",
            password="test",
            dbname="update_feed_test",
        )
        _container.start()

        url = _container.get_connection_url()
        # Convert postgresql:// or postgresql+psycopg2:// to postgresql+asyncpg://
        async_url = url.replace("postgresql+psycopg2://", "postgresql+asyncpg://")
        async_url = async_url.replace("postgresql://", "postgresql+asyncpg://")
        return async_url
    except Exception as e:
        # Docker not available or other error
        import warnings

        warnings.warn(f"Testcontainers not available: {e}", stacklevel=2)
        if _container:
            try:
                _container.stop()
            except Exception:
                pass
            _container = None
        return None


def _get_database_url() -> str:
    """Get database URL, preferring an explicit URL, then testcontainers, then SQLite."""
    global _database_url, _sqlite_dir

    if _database_url is not None:
        return _database_url

    explicit_url = os.environ.get("TEST_DATABASE_URL")
    if explicit_url:
        _database_url = explicit_url
        return _database_url

    container_url = _try_testcontainers()
    if container_url:
        _database_url = container_url
        return _database_url

    _sqlite_dir = tempfile.TemporaryDirectory(prefix="update_feed_test_")
    _database_url = f"sqlite+aiosqlite:///{_sqlite_dir.name}/update_feed_test.db"
    return _database_url


# Set DATABASE_URL for app imports
os.environ["DATABASE_URL"] = _get_database_url()


def pytest_sessionfinish(session, exitstatus):
    """Clean up testcontainers and temporary files when tests finish."""
    global _container, _sqlite_dir
    if _container:
        try:
            _container.stop()
        except Exception:
            pass
        _container = None
    if _sqlite_dir:
        _sqlite_dir.cleanup()
        _sqlite_dir = None


def check_database_available() -> bool:
    """Check if the test database accepts connections."""
    from sqlalchemy import text

    async def _check():
        try:
            engine = create_async_engine(_get_database_url(), poolclass=NullPool)
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            await engine.dispose()
            return True
        except Exception as e:
            import warnings

            warnings.warn(f"Test database not available: {e}", stacklevel=2)
            return False

    return asyncio.run(_check())


_db_available = check_database_available()


# --- In-process State Reset ---


def _reset_rate_limiter_state():
    """Clear rate limiter buckets on the existing singleton.

    Services hold a reference to the singleton, so the instance is kept
    and only its data is cleared.
    """
    from update_feed.middleware.rate_limit import RateLimiter

    RateLimiter.get_instance()._buckets.clear()


def _reset_version_cache():
    from update_feed.services.product_versions import VersionCache

    VersionCache.get_instance().clear()


@pytest.fixture(autouse=True)
def reset_rate_limiter(request):
    """Reset rate limiter and version cache before and after each test.

    Tests marked with pytest.mark.skip_rate_limiter_reset will skip this.
    """
    if request.node.get_closest_marker("skip_rate_limiter_reset"):
        yield
        return

    _reset_rate_limiter_state()
    _reset_version_cache()
    yield
    _reset_rate_limiter_state()
    _reset_version_cache()


# --- Database Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create a database engine with all tables for one test."""
    if not _db_available:
        pytest.skip("Test database not available")

    from update_feed.core.database import Base
    from update_feed import models  # noqa: F401

    engine = create_async_engine(
        _get_database_url(),
        poolclass=NullPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database override."""
    from update_feed.core.database import get_db
    from update_feed.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# --- Host Session Fixtures ---


@pytest.fixture
def owner_headers() -> dict[str, str]:
    """Authorization headers for a regular storefront customer."""
    from update_feed.services.session import create_session_token

    return {"Authorization": f"Bearer {create_session_token('owner-1')}"}


@pytest.fixture
def other_owner_headers() -> dict[str, str]:
    from update_feed.services.session import create_session_token

    return {"Authorization": f"Bearer {create_session_token('owner-2')}"}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    """Authorization headers for a storefront administrator."""
    from update_feed.services.session import create_session_token

    return {"Authorization": f"Bearer {create_session_token('admin-1', role='admin')}"}


# --- Test Factories ---


@pytest.fixture
def product_factory(db_session):
    """Factory for creating a Product with release files.

    ``files`` is a list of ``(name, file_path)`` tuples or dicts of
    ProductFile fields; stored order follows the list.
    """
    from update_feed.models.product import Product, ProductFile

    async def _create_product(
        sku: str = "ultimate-addon",
        name: str = "Ultimate Addon",
        files: list | None = None,
        **kwargs,
    ) -> Product:
        product = Product(sku=sku, name=name, **kwargs)
        db_session.add(product)
        await db_session.flush()

        for position, file in enumerate(files or []):
            if isinstance(file, tuple):
                file = {"name": file[0], "file_path": file[1]}
            file.setdefault("file_key", f"key-{position}")
            db_session.add(ProductFile(product_id=product.id, position=position, **file))
        await db_session.flush()
        return product

    return _create_product


@pytest.fixture
def entitlement_factory(db_session):
    """Factory for granting an owner access to a product."""
    from update_feed.models.product import Entitlement

    async def _grant(
        product,
        owner_id: str = "owner-1",
        order_key: str = "wc_order_abc123",
        email: str = "customer@example.com",
    ) -> Entitlement:
        entitlement = Entitlement(
            owner_id=owner_id,
            product_id=product.id,
            order_key=order_key,
            email=email,
        )
        db_session.add(entitlement)
        await db_session.flush()
        return entitlement

    return _grant


@pytest.fixture
def plugin_zip(tmp_path):
    """Factory for writing a WordPress plugin zip with a version header."""
    import zipfile

    def _make(filename: str, version: str | None, slug: str = "ultimate-addon") -> str:
        path = tmp_path / filename
        header = "<?php\n/**\n * Plugin Name: Ultimate Addon\n"
        if version is not None:
            header += f" * Version: {version}\n"
        header += " */\n"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr(f"{slug}/{slug}.php", header)
            archive.writestr(f"{slug}/readme.txt", "=== Ultimate Addon ===\n")
        return str(path)

    return _make


# --- Pytest Hooks for Auto-Marking ---


def pytest_collection_modifyitems(config, items):
    """Mark tests using database fixtures as 'integration', the rest as 'unit'."""
    integration_fixtures = {"db_session", "db_engine", "async_client"}

    for item in items:
        if any(mark.name in ("unit", "integration") for mark in item.iter_markers()):
            continue

        if hasattr(item, "fixturenames") and integration_fixtures & set(item.fixturenames):
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
