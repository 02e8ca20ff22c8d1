from datetime import datetime, timedelta, timezone

import pytest

from stocksync.core.enums import SyncOutcome, SyncStatus
from stocksync.core.exceptions import AggregateWriteFailedError
from stocksync.models import MarketplaceConnection, MarketplaceProduct, MasterListing
from stocksync.services.connection_registry import SQLConnectionRegistry
from stocksync.services.marketplace_products import SQLMarketplaceProductStore
from stocksync.services.master_listings import SQLMasterListingStore
from stocksync.services.sync_log import SQLSyncLogStore, SyncLogEntry


@pytest.fixture
async def seeded(db_session):
    """P1 on Trendyol, hepsiburada, an inactive amazon and shopify"""
    listing = MasterListing(id="P1", user_id="user-1", title="Ceramic Mug", total_stock=3)
    db_session.add(listing)

    links = {}
    for marketplace, active in (("Trendyol", True), ("hepsiburada", True), ("amazon", False), ("shopify", True)):
        connection = MarketplaceConnection(user_id="user-1", marketplace=marketplace, is_active=active)
        db_session.add(connection)
        await db_session.flush()
        link = MarketplaceProduct(
            user_id="user-1",
            master_listing_id="P1",
            marketplace_connection_id=connection.id,
            remote_product_id=f"{marketplace.lower()}-p1",
            marketplace_specific_data={"stock": 3, "barcode": "869000"},
        )
        db_session.add(link)
        await db_session.flush()
        links[marketplace.lower()] = link.id

    await db_session.commit()
    return links


@pytest.mark.asyncio
async def test_resolve_targets_filters_inactive_and_source(session_factory, seeded):
    registry = SQLConnectionRegistry(session_factory)

    targets = await registry.resolve_targets("P1", "SHOPIFY")

    assert sorted(t.marketplace for t in targets) == ["hepsiburada", "trendyol"]
    trendyol = next(t for t in targets if t.marketplace == "trendyol")
    assert trendyol.link_id == seeded["trendyol"]
    assert trendyol.remote_product_id == "trendyol-p1"
    assert trendyol.previous_stock == 3


@pytest.mark.asyncio
async def test_resolve_targets_source_matches_stored_case(session_factory, seeded):
    registry = SQLConnectionRegistry(session_factory)

    targets = await registry.resolve_targets("P1", "trendyol")

    assert sorted(t.marketplace for t in targets) == ["hepsiburada", "shopify"]


@pytest.mark.asyncio
async def test_resolve_targets_unknown_listing(session_factory, seeded):
    assert await SQLConnectionRegistry(session_factory).resolve_targets("P9", "shopify") == []


@pytest.mark.asyncio
async def test_list_connections(session_factory, seeded):
    connections = await SQLConnectionRegistry(session_factory).list_connections("user-1")

    assert len(connections) == 4
    assert {c["marketplace"]: c["is_active"] for c in connections}["amazon"] is False


@pytest.mark.asyncio
async def test_mark_synced_and_error(session_factory, db_session, seeded):
    store = SQLMarketplaceProductStore(session_factory)
    synced_at = datetime.now(timezone.utc)

    await store.mark_synced(seeded["trendyol"], {"stock": 5, "barcode": "869000"}, synced_at)
    await store.mark_error(seeded["hepsiburada"], "rate limited")
    db_session.expire_all()

    trendyol = await db_session.get(MarketplaceProduct, seeded["trendyol"])
    hepsiburada = await db_session.get(MarketplaceProduct, seeded["hepsiburada"])
    assert trendyol.sync_status == SyncStatus.SYNCED.value
    assert trendyol.marketplace_specific_data == {"stock": 5, "barcode": "869000"}
    assert trendyol.last_synced_at is not None
    assert hepsiburada.sync_status == SyncStatus.ERROR.value
    assert hepsiburada.sync_error == "rate limited"
    assert hepsiburada.marketplace_specific_data["stock"] == 3


@pytest.mark.asyncio
async def test_update_total_stock(session_factory, db_session, seeded):
    store = SQLMasterListingStore(session_factory)
    now = datetime.now(timezone.utc)

    assert await store.update_total_stock("P1", 5, as_of=now) is True
    # A run that started earlier must not overwrite it
    assert await store.update_total_stock("P1", 9, as_of=now - timedelta(seconds=30)) is False

    record = await store.get("P1")
    assert record.total_stock == 5
    assert record.user_id == "user-1"


@pytest.mark.asyncio
async def test_update_total_stock_missing_listing(session_factory, test_engine):
    store = SQLMasterListingStore(session_factory)

    with pytest.raises(AggregateWriteFailedError):
        await store.update_total_stock("gone", 1, as_of=datetime.now(timezone.utc))


@pytest.mark.asyncio
async def test_master_listing_reads(session_factory, seeded):
    store = SQLMasterListingStore(session_factory)

    assert await store.get("missing") is None
    assert [r.id for r in await store.list_for_user("user-1")] == ["P1"]


@pytest.mark.asyncio
async def test_sync_log_newest_first(session_factory, test_engine):
    store = SQLSyncLogStore(session_factory)
    base = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    for i, target in enumerate(("trendyol", "hepsiburada", "ikas")):
        await store.append(SyncLogEntry(
            user_id="user-1",
            master_listing_id="P1",
            source_marketplace="shopify",
            target_marketplace=target,
            previous_stock=3,
            new_stock=5,
            sync_status=SyncOutcome.FAILED if target == "ikas" else SyncOutcome.SUCCESS,
            error_message="timeout" if target == "ikas" else None,
            created_at=base + timedelta(minutes=i),
        ))

    entries = await store.list_for_listing("P1", limit=2)
    assert [e.target_marketplace for e in entries] == ["ikas", "hepsiburada"]
    assert entries[0].success is False
    assert entries[0].error_message == "timeout"

    assert len(await store.list_recent("user-1")) == 3
    assert await store.list_recent("user-2") == []
