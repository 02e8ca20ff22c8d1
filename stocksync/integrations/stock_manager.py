import asyncio
import logging
import uuid
from collections import Counter, defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from stocksync.core.enums import RunState, SyncClassification, SyncOutcome
from stocksync.core.exceptions import (
    InvalidArgumentError,
    MasterListingNotFoundError,
    ResolutionFailedError,
    StockSyncError,
    TargetFailedError,
)
from stocksync.integrations.events import StockUpdateEvent
from stocksync.integrations.registry import AdapterRegistry
from stocksync.services.connection_registry import ConnectionRegistry, SyncTarget, normalize_marketplace
from stocksync.services.marketplace_products import MarketplaceProductStore
from stocksync.services.master_listings import MasterListingStore
from stocksync.services.sync_log import SyncLogEntry, SyncLogStore

logger = logging.getLogger(__name__)


@dataclass
class TargetOutcome:
    marketplace: str
    connection_id: str
    link_id: str
    success: bool
    previous_stock: int
    new_stock: int
    error: Optional[str] = None
    logged: bool = True


@dataclass
class SyncRunResult:
    sync_run_id: str
    master_listing_id: str
    source_marketplace: str
    new_quantity: int
    user_id: Optional[str] = None
    state: RunState = RunState.STARTED
    results: List[TargetOutcome] = field(default_factory=list)
    aggregate_updated: bool = False
    aggregate_error: Optional[str] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def classification(self) -> SyncClassification:
        if not self.results:
            return SyncClassification.NO_TARGETS
        if not self.failed:
            return SyncClassification.SUCCESS
        if not self.succeeded:
            return SyncClassification.FAILED
        return SyncClassification.PARTIAL

    @property
    def success(self) -> bool:
        """True when the run completed. Failed targets are reported in `results`, not here."""
        return self.state == RunState.COMPLETED

    @property
    def message(self) -> str:
        if self.state == RunState.AGGREGATE_WRITE_FAILED:
            return (f"Marketplaces processed ({self.succeeded} succeeded, {self.failed} failed) "
                    f"but total stock was not saved: {self.aggregate_error}")
        classification = self.classification
        if classification == SyncClassification.NO_TARGETS:
            return "No other active marketplaces to synchronize"
        if classification == SyncClassification.SUCCESS:
            return f"Stock synchronized to {self.succeeded} marketplace{'s' if self.succeeded != 1 else ''}"
        if classification == SyncClassification.FAILED:
            return f"Stock synchronization failed on all {self.failed} marketplaces"
        return f"Partially synchronized: {self.succeeded} succeeded, {self.failed} failed"

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()


@dataclass
class BatchItem:
    master_listing_id: str
    new_quantity: int
    source_marketplace: str
    user_id: Optional[str] = None


@dataclass
class BatchItemFailure:
    master_listing_id: str
    source_marketplace: str
    new_quantity: int
    error_type: str
    error: str


@dataclass
class BatchSyncResult:
    runs: List[SyncRunResult] = field(default_factory=list)
    failures: List[BatchItemFailure] = field(default_factory=list)

    @property
    def results(self) -> List[TargetOutcome]:
        """Per-target outcomes of every run, in batch order."""
        return [outcome for run in self.runs for outcome in run.results]

    @property
    def success(self) -> bool:
        """True when every item ran to completion."""
        return not self.failures and all(run.success for run in self.runs)


class StockManager:
    """
    Propagates a stock change of one master listing to every other active
    marketplace listing of that product.

    A run resolves its targets, attempts each target in isolation (a failing
    marketplace never stops or rolls back the others), appends one sync log
    entry per target and finally writes the master listing's total stock once,
    after every attempt has settled. Runs for the same master listing are
    serialized in the order they were started.
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        connections: ConnectionRegistry,
        products: MarketplaceProductStore,
        sync_log: SyncLogStore,
        master_listings: MasterListingStore,
        max_concurrent_targets: int = 5,
        target_timeout: Optional[float] = 60.0,
        queue_maxsize: int = 0,
    ):
        self.registry = registry
        self.connections = connections
        self.products = products
        self.sync_log = sync_log
        self.master_listings = master_listings
        self.max_concurrent_targets = max(1, max_concurrent_targets)
        self.target_timeout = target_timeout
        self.update_queue: asyncio.Queue = asyncio.Queue(maxsize=queue_maxsize)
        self.monitor_task: Optional[asyncio.Task] = None

        self._listing_locks: Dict[str, asyncio.Lock] = {}
        self._lock_holders: Counter = Counter()
        self._marketplace_stats: Dict[str, Counter] = defaultdict(Counter)
        self._run_stats: Counter = Counter()

    # --- Metrics ---

    def get_metrics(self) -> dict:
        """Current counters per marketplace, per run state and for the event queue"""
        return {
            "queue": {"size": self.update_queue.qsize()},
            "runs": dict(self._run_stats),
            "marketplaces": {
                name: {
                    "attempts": stats["attempts"],
                    "succeeded": stats["succeeded"],
                    "failed": stats["failed"],
                }
                for name, stats in sorted(self._marketplace_stats.items())
            },
        }

    # --- Synchronization ---

    @asynccontextmanager
    async def _listing_lock(self, master_listing_id: str):
        # asyncio.Lock wakes waiters in FIFO order, so runs hold it in start order
        lock = self._listing_locks.setdefault(master_listing_id, asyncio.Lock())
        self._lock_holders[master_listing_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_holders[master_listing_id] -= 1
            if self._lock_holders[master_listing_id] <= 0:
                del self._lock_holders[master_listing_id]
                self._listing_locks.pop(master_listing_id, None)

    @staticmethod
    def _validate(master_listing_id: Any, new_quantity: Any, source_marketplace: Any) -> None:
        if not isinstance(master_listing_id, str) or not master_listing_id.strip():
            raise InvalidArgumentError("master_listing_id is required")
        if isinstance(new_quantity, bool) or not isinstance(new_quantity, int):
            raise InvalidArgumentError(f"new_quantity must be an integer, got {new_quantity!r}")
        if new_quantity < 0:
            raise InvalidArgumentError(f"new_quantity must not be negative, got {new_quantity}")
        if not normalize_marketplace(source_marketplace):
            raise InvalidArgumentError("source_marketplace is required")

    async def synchronize_stock(
        self,
        master_listing_id: str,
        new_quantity: int,
        source_marketplace: str,
        user_id: Optional[str] = None,
    ) -> SyncRunResult:
        """
        Run one synchronization of `new_quantity` for a master listing.

        Raises:
            InvalidArgumentError: bad input, nothing was touched
            MasterListingNotFoundError: unknown master listing, nothing was touched
            ResolutionFailedError: targets could not be read, nothing was touched

        Target failures are reported in the returned result. A failed total
        stock write is reported as RunState.AGGREGATE_WRITE_FAILED; re-running
        with the same quantity is safe.
        """
        self._validate(master_listing_id, new_quantity, source_marketplace)
        source = normalize_marketplace(source_marketplace)

        run = SyncRunResult(
            sync_run_id=str(uuid.uuid4()),
            master_listing_id=master_listing_id,
            source_marketplace=source,
            new_quantity=new_quantity,
        )
        logger.info(f"Stock sync {run.sync_run_id} started: {master_listing_id} -> {new_quantity} (source: {source})")

        async with self._listing_lock(master_listing_id):
            targets, owner = await self._resolve(run, user_id)
            run.user_id = owner

            if targets:
                run.state = RunState.PER_TARGET_ATTEMPTS
                try:
                    run.results = await self._attempt_all(run, targets, owner)
                except asyncio.CancelledError:
                    run.state = RunState.CANCELLED
                    run.finished_at = datetime.now(timezone.utc)
                    self._run_stats[run.state.value] += 1
                    logger.warning(f"Stock sync {run.sync_run_id} cancelled before total stock update; "
                                   f"completed targets stay committed")
                    raise

            await self._write_aggregate(run)

        run.finished_at = datetime.now(timezone.utc)
        self._run_stats[run.state.value] += 1
        logger.info(
            f"Stock sync {run.sync_run_id} {run.state.value}: "
            f"{run.succeeded} succeeded, {run.failed} failed ({run.classification.value})"
        )
        return run

    async def _resolve(self, run: SyncRunResult, user_id: Optional[str]):
        run.state = RunState.RESOLVING_TARGETS
        try:
            master = await self.master_listings.get(run.master_listing_id)
        except Exception as e:
            raise self._resolution_error(run, e) from e
        if master is None:
            run.state = RunState.RESOLUTION_FAILED
            raise MasterListingNotFoundError(f"Master listing {run.master_listing_id} not found")

        try:
            resolved = await self.connections.resolve_targets(run.master_listing_id, run.source_marketplace)
        except Exception as e:
            raise self._resolution_error(run, e) from e

        targets: List[SyncTarget] = []
        seen = set()
        for target in resolved:
            # One attempt per link, and never back to the source marketplace
            if target.link_id in seen or normalize_marketplace(target.marketplace) == run.source_marketplace:
                continue
            seen.add(target.link_id)
            targets.append(target)

        run.state = RunState.TARGETS_RESOLVED if targets else RunState.NO_TARGETS
        logger.debug(f"Stock sync {run.sync_run_id}: {len(targets)} targets "
                     f"({', '.join(t.marketplace for t in targets) or 'none'})")
        return targets, user_id or master.user_id

    def _resolution_error(self, run: SyncRunResult, error: Exception) -> ResolutionFailedError:
        run.state = RunState.RESOLUTION_FAILED
        self._run_stats[run.state.value] += 1
        logger.error(f"Stock sync {run.sync_run_id}: could not resolve targets: {error}", exc_info=True)
        return ResolutionFailedError(f"Could not resolve sync targets for {run.master_listing_id}: {error}")

    async def _attempt_all(self, run: SyncRunResult, targets: Sequence[SyncTarget], owner: str) -> List[TargetOutcome]:
        semaphore = asyncio.Semaphore(self.max_concurrent_targets)

        async def _bounded(target: SyncTarget) -> TargetOutcome:
            async with semaphore:
                return await self._attempt_target(run, target, owner)

        # Barrier: every attempt settles before the aggregate is touched
        return list(await asyncio.gather(*(_bounded(t) for t in targets)))

    async def _update_remote(self, target: SyncTarget, quantity: int) -> None:
        adapter = self.registry.get(target.marketplace)
        call = adapter.update_stock(target.connection_id, target.remote_product_id, quantity)
        if self.target_timeout:
            accepted = await asyncio.wait_for(call, timeout=self.target_timeout)
        else:
            accepted = await call
        if not accepted:
            raise TargetFailedError(target.marketplace, f"{target.marketplace} rejected the stock update")

    async def _attempt_target(self, run: SyncRunResult, target: SyncTarget, owner: str) -> TargetOutcome:
        quantity = run.new_quantity
        previous = target.previous_stock
        stats = self._marketplace_stats[target.marketplace]
        stats["attempts"] += 1
        error = None

        try:
            await self._update_remote(target, quantity)
        except asyncio.TimeoutError:
            error = f"Stock update to {target.marketplace} timed out after {self.target_timeout:g}s"
        except Exception as e:
            error = str(e) or e.__class__.__name__

        if error is None:
            try:
                await self.products.mark_synced(
                    target.link_id,
                    {**target.specific_data, "stock": quantity},
                    datetime.now(timezone.utc),
                )
            except Exception as e:
                logger.error(f"Stock sync {run.sync_run_id}: local update of {target.link_id} failed: {e}", exc_info=True)
                error = f"Stock updated on {target.marketplace} but saving the listing failed: {e}"
        else:
            try:
                await self.products.mark_error(target.link_id, error)
            except Exception as e:
                logger.error(f"Stock sync {run.sync_run_id}: could not flag {target.link_id} as errored: {e}")

        outcome = TargetOutcome(
            marketplace=target.marketplace,
            connection_id=target.connection_id,
            link_id=target.link_id,
            success=error is None,
            previous_stock=previous,
            new_stock=quantity,
            error=error,
        )

        if outcome.success:
            stats["succeeded"] += 1
            logger.info(f"Stock sync {run.sync_run_id}: {target.marketplace} {previous} -> {quantity}")
        else:
            stats["failed"] += 1
            logger.error(f"Stock sync {run.sync_run_id}: {target.marketplace} failed: {error}")

        try:
            await self.sync_log.append(SyncLogEntry(
                user_id=owner,
                master_listing_id=run.master_listing_id,
                source_marketplace=run.source_marketplace,
                target_marketplace=target.marketplace,
                previous_stock=previous,
                new_stock=quantity,
                sync_status=SyncOutcome.SUCCESS if outcome.success else SyncOutcome.FAILED,
                error_message=error,
            ))
        except Exception as e:
            outcome.logged = False
            logger.error(f"Stock sync {run.sync_run_id}: could not write sync log for {target.marketplace}: {e}",
                         exc_info=True)

        return outcome

    async def _write_aggregate(self, run: SyncRunResult) -> None:
        run.state = RunState.AGGREGATE_UPDATE
        try:
            run.aggregate_updated = await self.master_listings.update_total_stock(
                run.master_listing_id, run.new_quantity, as_of=run.started_at
            )
        except Exception as e:
            run.state = RunState.AGGREGATE_WRITE_FAILED
            run.aggregate_error = str(e) or e.__class__.__name__
            logger.error(f"Stock sync {run.sync_run_id}: total stock write failed: {run.aggregate_error}")
            return

        if not run.aggregate_updated:
            logger.warning(f"Stock sync {run.sync_run_id}: total stock already written by a newer run")
        run.state = RunState.COMPLETED

    async def synchronize_batch(self, items: Sequence[BatchItem]) -> BatchSyncResult:
        """
        Run `synchronize_stock` for each item, strictly one after another.
        A fatal error on one item is recorded and the batch moves on.
        """
        batch = BatchSyncResult()
        logger.info(f"Batch stock sync started for {len(items)} items")

        for item in items:
            try:
                run = await self.synchronize_stock(
                    item.master_listing_id, item.new_quantity, item.source_marketplace, user_id=item.user_id
                )
            except StockSyncError as e:
                logger.warning(f"Batch item {item.master_listing_id} failed ({e.code}): {e}")
                batch.failures.append(BatchItemFailure(
                    master_listing_id=item.master_listing_id,
                    source_marketplace=item.source_marketplace,
                    new_quantity=item.new_quantity,
                    error_type=e.code,
                    error=str(e),
                ))
                continue

            batch.runs.append(run)
            if run.state == RunState.AGGREGATE_WRITE_FAILED:
                batch.failures.append(BatchItemFailure(
                    master_listing_id=item.master_listing_id,
                    source_marketplace=item.source_marketplace,
                    new_quantity=item.new_quantity,
                    error_type=RunState.AGGREGATE_WRITE_FAILED.value,
                    error=run.aggregate_error or "",
                ))

        logger.info(f"Batch stock sync finished: {len(batch.runs)} runs, {len(batch.failures)} item failures")
        return batch

    # --- Event queue ---

    def queue_update(self, event: StockUpdateEvent) -> None:
        """Queue an event for the sync monitor. Raises asyncio.QueueFull when the queue is at capacity."""
        self.update_queue.put_nowait(event)
        logger.debug(f"Queued stock update for {event.master_listing_id} (queue size {self.update_queue.qsize()})")

    async def start_sync_monitor(self):
        """Monitor and process the update queue"""
        logger.info("Stock sync monitor started")
        try:
            while True:
                event = await self.update_queue.get()
                try:
                    await self.synchronize_stock(
                        event.master_listing_id,
                        event.new_quantity,
                        event.source_marketplace,
                        user_id=event.user_id,
                    )
                except StockSyncError as e:
                    logger.error(f"Queued stock update for {event.master_listing_id} failed ({e.code}): {e}")
                except Exception as e:
                    # Keep the monitor alive for the next event
                    logger.exception(f"Unexpected error processing stock update for {event.master_listing_id}: {e}")
                finally:
                    self.update_queue.task_done()
        except asyncio.CancelledError:
            logger.info("Stock sync monitor stopped")
            raise
