# tests/conftest.py
import os

# The application engine is created at import time; point it at SQLite before any stocksync import
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("MARKETPLACE_FUNCTIONS_URL", "")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from stocksync import models  # noqa: F401
from stocksync.core.config import Settings
from stocksync.database import Base
from stocksync.integrations.registry import AdapterRegistry
from stocksync.integrations.stock_manager import StockManager
from tests.mocks.memory_stores import (
    InMemoryConnectionRegistry,
    InMemoryMarketplaceProductStore,
    InMemoryMasterListingStore,
    InMemorySyncLogStore,
)
from tests.mocks.mock_marketplace import MockMarketplaceAdapter


@pytest.fixture
def settings(tmp_path):
    """Provide test settings"""
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        MARKETPLACE_FUNCTIONS_URL="https://functions.test/v1",
        MARKETPLACE_FUNCTIONS_KEY="test_key",
        SYNC_MAX_CONCURRENT_TARGETS=5,
        SYNC_TARGET_TIMEOUT=5.0,
        SYNC_QUEUE_MAXSIZE=10,
    )


@pytest.fixture(scope="function")
async def test_engine(settings):
    """File-backed SQLite engine with all tables (function-scoped)."""
    engine = create_async_engine(settings.DATABASE_URL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Provide a database session for tests"""
    async with session_factory() as session:
        yield session
        await session.rollback()


# In-memory stock manager wiring

@pytest.fixture
def connections():
    return InMemoryConnectionRegistry()


@pytest.fixture
def products(connections):
    return InMemoryMarketplaceProductStore(connections)


@pytest.fixture
def sync_log():
    return InMemorySyncLogStore()


@pytest.fixture
def master_listings():
    return InMemoryMasterListingStore()


@pytest.fixture
def adapters():
    """One mock adapter per marketplace used in the tests"""
    return {
        name: MockMarketplaceAdapter(name)
        for name in ("trendyol", "hepsiburada", "amazon", "shopify", "ikas")
    }


@pytest.fixture
def registry(adapters):
    registry = AdapterRegistry()
    for name, adapter in adapters.items():
        registry.register(name, adapter)
    return registry


@pytest.fixture
def manager(registry, connections, products, sync_log, master_listings):
    return StockManager(
        registry=registry,
        connections=connections,
        products=products,
        sync_log=sync_log,
        master_listings=master_listings,
        max_concurrent_targets=5,
        target_timeout=2.0,
        queue_maxsize=10,
    )


@pytest.fixture
def listing_p1(connections, master_listings):
    """
    P1 listed on trendyol, hepsiburada, amazon (inactive connection) and
    shopify, each with a stored stock of 3.
    """
    master_listings.add("P1", user_id="user-1", total_stock=3, title="Ceramic Mug")
    links = {}
    for marketplace, active in (("trendyol", True), ("hepsiburada", True), ("amazon", False), ("shopify", True)):
        connection_id = connections.add_connection(marketplace, is_active=active)
        links[marketplace] = connections.add_link("P1", connection_id, stock=3,
                                                  remote_product_id=f"{marketplace}-p1")
    return links


@pytest.fixture
def test_client():
    """Provide a test client; the lifespan builds a real (SQLite-backed) stock manager"""
    from stocksync.main import app

    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
