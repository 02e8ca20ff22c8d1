# tests/test_routes/test_stock_sync_routes.py
import pytest

from stocksync.core.exceptions import AggregateWriteFailedError, MarketplaceAdapterError
from stocksync.dependencies import get_db, get_stock_manager
from stocksync.integrations.stock_manager import StockManager


@pytest.fixture
def db(mocker):
    return mocker.AsyncMock()


@pytest.fixture
def bookkeeping(mocker):
    """Patch the per-request low stock and activity services"""
    low_stock = mocker.patch("stocksync.routes.stock_sync.LowStockService")
    low_stock.return_value.check_listing = mocker.AsyncMock(return_value=None)
    low_stock.return_value.check_user = mocker.AsyncMock(return_value={"created": 2, "updated": 1})
    activity = mocker.patch("stocksync.routes.stock_sync.ActivityLogger")
    activity.return_value.log_stock_sync = mocker.AsyncMock()
    activity.return_value.log_low_stock_check = mocker.AsyncMock()
    return low_stock, activity


@pytest.fixture
def client(test_client, manager, db, bookkeeping, listing_p1):
    async def override_db():
        yield db

    test_client.app.dependency_overrides[get_stock_manager] = lambda: manager
    test_client.app.dependency_overrides[get_db] = override_db
    return test_client


def test_sync_success(client, adapters, master_listings, bookkeeping, db):
    response = client.post("/api/stock/sync", json={
        "masterListingId": "P1", "newStock": 5, "sourceMarketplace": "Shopify"
    })

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["status"] == "success"
    assert data["aggregateUpdated"] is True
    assert sorted(r["marketplace"] for r in data["results"]) == ["hepsiburada", "trendyol"]
    assert all(r["previousStock"] == 3 and r["newStock"] == 5 for r in data["results"])
    assert master_listings.listings["P1"].total_stock == 5

    low_stock, activity = bookkeeping
    low_stock.return_value.check_listing.assert_awaited_once_with("P1")
    activity.return_value.log_stock_sync.assert_awaited_once()
    db.commit.assert_awaited()


def test_sync_accepts_snake_case(client):
    response = client.post("/api/stock/sync", json={
        "master_listing_id": "P1", "new_stock": 0, "source_marketplace": "shopify"
    })

    assert response.status_code == 200
    assert response.json()["success"] is True


def test_sync_partial_failure(client, adapters):
    adapters["hepsiburada"].error = MarketplaceAdapterError("rate limited")

    response = client.post("/api/stock/sync", json={
        "masterListingId": "P1", "newStock": 5, "sourceMarketplace": "shopify"
    })

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["status"] == "partial"
    assert (data["succeeded"], data["failed"]) == (1, 1)
    failed = next(r for r in data["results"] if not r["success"])
    assert failed == {
        "marketplace": "hepsiburada", "success": False, "previousStock": 3, "newStock": 5, "error": "rate limited"
    }


def test_sync_bookkeeping_errors_do_not_fail_request(client, bookkeeping, db):
    low_stock, _ = bookkeeping
    low_stock.return_value.check_listing.side_effect = RuntimeError("db down")

    response = client.post("/api/stock/sync", json={
        "masterListingId": "P1", "newStock": 1, "sourceMarketplace": "shopify"
    })

    assert response.status_code == 200
    db.rollback.assert_awaited()


@pytest.mark.parametrize("payload", [
    {"masterListingId": "P1", "newStock": -1, "sourceMarketplace": "shopify"},
    {"masterListingId": "P1", "newStock": "many", "sourceMarketplace": "shopify"},
    {"masterListingId": "", "newStock": 1, "sourceMarketplace": "shopify"},
    {"masterListingId": "P1", "newStock": 1},
])
def test_sync_validation(client, adapters, payload):
    response = client.post("/api/stock/sync", json=payload)

    assert response.status_code == 422
    assert all(not a.update_calls for a in adapters.values())


def test_sync_blank_source_is_bad_request(client):
    response = client.post("/api/stock/sync", json={
        "masterListingId": "P1", "newStock": 1, "sourceMarketplace": "   "
    })

    assert response.status_code == 400


def test_sync_unknown_listing(client):
    response = client.post("/api/stock/sync", json={
        "masterListingId": "nope", "newStock": 1, "sourceMarketplace": "shopify"
    })

    assert response.status_code == 404


def test_sync_resolution_failure(client, connections):
    connections.fail_with = RuntimeError("connection refused")

    response = client.post("/api/stock/sync", json={
        "masterListingId": "P1", "newStock": 1, "sourceMarketplace": "shopify"
    })

    assert response.status_code == 503
    assert "connection refused" in response.json()["detail"]


def test_sync_aggregate_write_failure(client, master_listings):
    master_listings.fail_with = AggregateWriteFailedError("database is locked")

    response = client.post("/api/stock/sync", json={
        "masterListingId": "P1", "newStock": 5, "sourceMarketplace": "shopify"
    })

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is False
    assert data["status"] == "aggregate_write_failed"
    assert data["aggregateError"] == "database is locked"
    assert data["succeeded"] == 2


def test_batch_sync(client):
    response = client.post("/api/stock/sync/batch", json={"items": [
        {"masterListingId": "P1", "newStock": 5, "sourceMarketplace": "shopify"},
        {"masterListingId": "P2", "newStock": 3, "sourceMarketplace": "trendyol"},
    ]})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is False
    assert len(data["runs"]) == 1
    assert len(data["results"]) == 2
    assert data["failures"] == [{
        "masterListingId": "P2",
        "sourceMarketplace": "trendyol",
        "newStock": 3,
        "errorType": "not_found",
        "error": "Master listing P2 not found",
    }]


def test_batch_invalid_item_does_not_reject_batch(client, master_listings):
    response = client.post("/api/stock/sync/batch", json={"items": [
        {"masterListingId": "P1", "newStock": 42, "sourceMarketplace": "shopify"},
        {"masterListingId": "P2", "newStock": -1, "sourceMarketplace": "trendyol"},
    ]})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is False
    assert len(data["runs"]) == 1
    assert data["runs"][0]["status"] == "success"
    assert data["failures"] == [{
        "masterListingId": "P2",
        "sourceMarketplace": "trendyol",
        "newStock": -1,
        "errorType": "invalid_argument",
        "error": "new_quantity must not be negative, got -1",
    }]
    assert master_listings.listings["P1"].total_stock == 42


def test_batch_rejects_non_integer_stock(client, adapters):
    response = client.post("/api/stock/sync/batch", json={"items": [
        {"masterListingId": "P1", "newStock": "many", "sourceMarketplace": "shopify"},
    ]})

    assert response.status_code == 422
    assert all(not a.update_calls for a in adapters.values())


def test_batch_activity_is_logged_for_run_owner(client, bookkeeping):
    response = client.post("/api/stock/sync/batch", json={"items": [
        {"masterListingId": "P1", "newStock": 5, "sourceMarketplace": "shopify"},
        {"masterListingId": "P1", "newStock": 6, "sourceMarketplace": "shopify", "userId": "operator-9"},
    ]})

    assert response.status_code == 200
    _, activity = bookkeeping
    owners = [call.kwargs["user_id"] for call in activity.return_value.log_stock_sync.await_args_list]
    assert owners == ["user-1", "operator-9"]


def test_batch_requires_items(client):

    response = client.post("/api/stock/sync/batch", json={"items": []})

    assert response.status_code == 400


def test_queue_event(client, manager):
    response = client.post("/api/stock/events", json={
        "masterListingId": "P1", "newStock": 4, "sourceMarketplace": "trendyol"
    })

    assert response.status_code == 202
    assert response.json() == {"status": "queued", "masterListingId": "P1", "queueSize": 1}
    event = manager.update_queue.get_nowait()
    assert (event.master_listing_id, event.new_quantity, event.source_marketplace) == ("P1", 4, "trendyol")


def test_queue_event_when_full(client, registry, connections, products, sync_log, master_listings):
    full = StockManager(registry, connections, products, sync_log, master_listings, queue_maxsize=1)
    client.app.dependency_overrides[get_stock_manager] = lambda: full
    payload = {"masterListingId": "P1", "newStock": 4, "sourceMarketplace": "trendyol"}

    assert client.post("/api/stock/events", json=payload).status_code == 202
    assert client.post("/api/stock/events", json=payload).status_code == 503


def test_sync_logs(client):
    client.post("/api/stock/sync", json={"masterListingId": "P1", "newStock": 5, "sourceMarketplace": "shopify"})

    response = client.get("/api/stock/sync-logs/P1")
    assert response.status_code == 200
    logs = response.json()
    assert len(logs) == 2
    assert {log["targetMarketplace"] for log in logs} == {"trendyol", "hepsiburada"}
    assert all(log["syncStatus"] == "success" for log in logs)

    recent = client.get("/api/stock/sync-logs", params={"user_id": "user-1", "limit": 1})
    assert recent.status_code == 200
    assert len(recent.json()) == 1


def test_connections(client):
    response = client.get("/api/stock/connections", params={"user_id": "user-1"})

    assert response.status_code == 200
    connections = response.json()["connections"]
    assert sorted(c["marketplace"] for c in connections) == ["amazon", "hepsiburada", "shopify", "trendyol"]


def test_status(client):
    client.post("/api/stock/sync", json={"masterListingId": "P1", "newStock": 5, "sourceMarketplace": "shopify"})

    response = client.get("/api/stock/status")

    assert response.status_code == 200
    data = response.json()
    assert "trendyol" in data["marketplaces"]
    assert data["metrics"]["runs"] == {"completed": 1}
    assert data["metrics"]["marketplaces"]["trendyol"]["succeeded"] == 1


def test_low_stock_check(client, bookkeeping, db):
    response = client.post("/api/stock/low-stock-check", params={"user_id": "user-1"})

    assert response.status_code == 200
    assert response.json() == {
        "success": True, "alertsCreated": 2, "alertsUpdated": 1, "message": "2 new alerts, 1 updated"
    }
    _, activity = bookkeeping
    activity.return_value.log_low_stock_check.assert_awaited_once_with("user-1", 2, 1)
    db.commit.assert_awaited()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
