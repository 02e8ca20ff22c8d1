from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from stocksync.core.enums import RunState
from stocksync.schemas.base import BaseSchema


class StockSyncRequest(BaseSchema):
    master_listing_id: str = Field(min_length=1)
    new_stock: int = Field(ge=0)
    source_marketplace: str = Field(min_length=1)
    user_id: Optional[str] = None

    @field_validator("source_marketplace")
    @classmethod
    def normalize_source(cls, v: str) -> str:
        return v.strip().lower()


class BatchStockSyncItem(BaseSchema):
    """One batch entry. Values are checked per item so a bad entry cannot reject the whole batch."""
    master_listing_id: str
    new_stock: int
    source_marketplace: str
    user_id: Optional[str] = None


class BatchStockSyncRequest(BaseSchema):
    items: List[BatchStockSyncItem]


class TargetResult(BaseSchema):
    marketplace: str
    success: bool
    previous_stock: int
    new_stock: int
    error: Optional[str] = None

    @classmethod
    def from_outcome(cls, outcome) -> "TargetResult":
        return cls(
            marketplace=outcome.marketplace,
            success=outcome.success,
            previous_stock=outcome.previous_stock,
            new_stock=outcome.new_stock,
            error=outcome.error,
        )


class StockSyncResponse(BaseSchema):
    success: bool
    status: str
    sync_run_id: str
    master_listing_id: str
    message: str
    aggregate_updated: bool
    aggregate_error: Optional[str] = None
    succeeded: int
    failed: int
    results: List[TargetResult]

    @classmethod
    def from_run(cls, run) -> "StockSyncResponse":
        if run.state == RunState.AGGREGATE_WRITE_FAILED:
            status = run.state.value
        else:
            status = run.classification.value
        return cls(
            success=run.success,
            status=status,
            sync_run_id=run.sync_run_id,
            master_listing_id=run.master_listing_id,
            message=run.message,
            aggregate_updated=run.aggregate_updated,
            aggregate_error=run.aggregate_error,
            succeeded=run.succeeded,
            failed=run.failed,
            results=[TargetResult.from_outcome(r) for r in run.results],
        )


class BatchItemFailureRead(BaseSchema):
    master_listing_id: str
    source_marketplace: str
    new_stock: int
    error_type: str
    error: str


class BatchStockSyncResponse(BaseSchema):
    success: bool
    results: List[TargetResult]
    runs: List[StockSyncResponse]
    failures: List[BatchItemFailureRead]

    @classmethod
    def from_batch(cls, batch) -> "BatchStockSyncResponse":
        return cls(
            success=batch.success,
            results=[TargetResult.from_outcome(r) for r in batch.results],
            runs=[StockSyncResponse.from_run(run) for run in batch.runs],
            failures=[
                BatchItemFailureRead(
                    master_listing_id=f.master_listing_id,
                    source_marketplace=f.source_marketplace,
                    new_stock=f.new_quantity,
                    error_type=f.error_type,
                    error=f.error,
                )
                for f in batch.failures
            ],
        )


class StockSyncLogRead(BaseSchema):
    user_id: str
    master_listing_id: Optional[str] = None
    source_marketplace: str
    target_marketplace: str
    previous_stock: int
    new_stock: int
    sync_status: str
    error_message: Optional[str] = None
    created_at: datetime


class QueuedEventResponse(BaseSchema):
    status: str = "queued"
    master_listing_id: str
    queue_size: int


class LowStockCheckResponse(BaseSchema):
    success: bool = True
    alerts_created: int
    alerts_updated: int
    message: str
