# stocksync/routes/stock_sync.py
"""
HTTP trigger surface of the stock synchronization engine.

POST /api/stock/sync runs one synchronization inline and answers with the
per-marketplace outcomes; /sync/batch runs several one after another;
/events queues a change for the background monitor instead.
"""

import asyncio
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stocksync.core.exceptions import (
    InvalidArgumentError,
    MasterListingNotFoundError,
    ResolutionFailedError,
)
from stocksync.dependencies import get_db, get_stock_manager
from stocksync.integrations.events import StockUpdateEvent
from stocksync.integrations.stock_manager import BatchItem, StockManager, SyncRunResult
from stocksync.schemas.stock_sync import (
    BatchStockSyncRequest,
    BatchStockSyncResponse,
    LowStockCheckResponse,
    QueuedEventResponse,
    StockSyncLogRead,
    StockSyncRequest,
    StockSyncResponse,
)
from stocksync.services.activity_logger import ActivityLogger
from stocksync.services.low_stock_service import LowStockService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/stock", tags=["stock-sync"])


async def _record_run(db: AsyncSession, run: SyncRunResult) -> None:
    """Low stock alert and activity entry for a finished run. Never fails the request."""
    if run.aggregate_updated:
        try:
            await LowStockService(db).check_listing(run.master_listing_id)
        except Exception as e:
            logger.error(f"Low stock check after sync {run.sync_run_id} failed: {e}")
            await db.rollback()

    try:
        await ActivityLogger(db).log_stock_sync(run, user_id=run.user_id)
        await db.commit()
    except Exception as e:
        logger.error(f"Could not record activity for sync {run.sync_run_id}: {e}")
        await db.rollback()


@router.post("/sync", response_model=StockSyncResponse)
async def sync_stock(
    payload: StockSyncRequest,
    manager: StockManager = Depends(get_stock_manager),
    db: AsyncSession = Depends(get_db),
):
    """Propagate a new stock value of a master listing to its other marketplaces."""
    try:
        run = await manager.synchronize_stock(
            payload.master_listing_id,
            payload.new_stock,
            payload.source_marketplace,
            user_id=payload.user_id,
        )
    except InvalidArgumentError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except MasterListingNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ResolutionFailedError as e:
        raise HTTPException(status_code=503, detail=str(e))

    await _record_run(db, run)
    return StockSyncResponse.from_run(run)


@router.post("/sync/batch", response_model=BatchStockSyncResponse)
async def sync_stock_batch(
    payload: BatchStockSyncRequest,
    manager: StockManager = Depends(get_stock_manager),
    db: AsyncSession = Depends(get_db),
):
    """Synchronize several master listings one after another."""
    if not payload.items:
        raise HTTPException(status_code=400, detail="items must not be empty")

    batch = await manager.synchronize_batch([
        BatchItem(
            master_listing_id=item.master_listing_id,
            new_quantity=item.new_stock,
            source_marketplace=item.source_marketplace,
            user_id=item.user_id,
        )
        for item in payload.items
    ])

    for run in batch.runs:
        await _record_run(db, run)

    return BatchStockSyncResponse.from_batch(batch)


@router.post("/events", response_model=QueuedEventResponse, status_code=202)
async def queue_stock_event(
    payload: StockSyncRequest,
    manager: StockManager = Depends(get_stock_manager),
):
    """Queue a stock change for the background sync monitor."""
    event = StockUpdateEvent(
        master_listing_id=payload.master_listing_id,
        source_marketplace=payload.source_marketplace,
        new_quantity=payload.new_stock,
        user_id=payload.user_id,
    )
    try:
        manager.queue_update(event)
    except asyncio.QueueFull:
        raise HTTPException(status_code=503, detail="Stock update queue is full, retry later")

    return QueuedEventResponse(master_listing_id=payload.master_listing_id, queue_size=manager.update_queue.qsize())


@router.get("/sync-logs/{master_listing_id}", response_model=List[StockSyncLogRead])
async def get_listing_sync_logs(
    master_listing_id: str,
    limit: int = Query(50, ge=1, le=500),
    manager: StockManager = Depends(get_stock_manager),
):
    entries = await manager.sync_log.list_for_listing(master_listing_id, limit=limit)
    return [StockSyncLogRead(**entry.to_dict()) for entry in entries]


@router.get("/sync-logs", response_model=List[StockSyncLogRead])
async def get_recent_sync_logs(
    user_id: str,
    limit: int = Query(50, ge=1, le=500),
    manager: StockManager = Depends(get_stock_manager),
):
    entries = await manager.sync_log.list_recent(user_id, limit=limit)
    return [StockSyncLogRead(**entry.to_dict()) for entry in entries]


@router.get("/connections")
async def get_connections(user_id: str, manager: StockManager = Depends(get_stock_manager)):
    return {"connections": await manager.connections.list_connections(user_id)}


@router.get("/status")
async def get_sync_status(manager: StockManager = Depends(get_stock_manager)):
    return {
        "marketplaces": manager.registry.marketplaces,
        "max_concurrent_targets": manager.max_concurrent_targets,
        "metrics": manager.get_metrics(),
    }


@router.post("/low-stock-check", response_model=LowStockCheckResponse)
async def low_stock_check(user_id: str, db: AsyncSession = Depends(get_db)):
    """Create or refresh low stock alerts for every master listing of a user."""
    counts = await LowStockService(db).check_user(user_id)
    await ActivityLogger(db).log_low_stock_check(user_id, counts["created"], counts["updated"])
    await db.commit()
    return LowStockCheckResponse(
        alerts_created=counts["created"],
        alerts_updated=counts["updated"],
        message=f"{counts['created']} new alerts, {counts['updated']} updated",
    )
