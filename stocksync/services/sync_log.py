"""
Sync Log

Append-only audit trail of stock propagation attempts, one entry per target
per run.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from stocksync.core.enums import SyncOutcome
from stocksync.models import StockSyncLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncLogEntry:
    user_id: str
    master_listing_id: str
    source_marketplace: str
    target_marketplace: str
    previous_stock: int
    new_stock: int
    sync_status: SyncOutcome
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def success(self) -> bool:
        return self.sync_status == SyncOutcome.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["sync_status"] = self.sync_status.value
        data["created_at"] = self.created_at.isoformat()
        return data


class SyncLogStore(ABC):

    @abstractmethod
    async def append(self, entry: SyncLogEntry) -> None:
        """Persist one entry. Entries are never updated or deleted."""

    @abstractmethod
    async def list_for_listing(self, master_listing_id: str, limit: int = 100) -> List[SyncLogEntry]:
        """Newest first."""

    @abstractmethod
    async def list_recent(self, user_id: str, limit: int = 100) -> List[SyncLogEntry]:
        """Newest first."""


def _to_entry(row: StockSyncLog) -> SyncLogEntry:
    return SyncLogEntry(
        user_id=row.user_id,
        master_listing_id=row.master_listing_id,
        source_marketplace=row.source_marketplace,
        target_marketplace=row.target_marketplace,
        previous_stock=row.previous_stock,
        new_stock=row.new_stock,
        sync_status=SyncOutcome(row.sync_status),
        error_message=row.error_message,
        created_at=row.created_at,
    )


class SQLSyncLogStore(SyncLogStore):

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def append(self, entry: SyncLogEntry) -> None:
        async with self.session_factory() as session:
            session.add(StockSyncLog(
                user_id=entry.user_id,
                master_listing_id=entry.master_listing_id,
                source_marketplace=entry.source_marketplace,
                target_marketplace=entry.target_marketplace,
                previous_stock=entry.previous_stock,
                new_stock=entry.new_stock,
                sync_status=entry.sync_status.value,
                error_message=entry.error_message,
                created_at=entry.created_at,
            ))
            await session.commit()

    async def _list(self, stmt, limit: int) -> List[SyncLogEntry]:
        stmt = stmt.order_by(StockSyncLog.created_at.desc()).limit(limit)
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_to_entry(row) for row in rows]

    async def list_for_listing(self, master_listing_id: str, limit: int = 100) -> List[SyncLogEntry]:
        return await self._list(select(StockSyncLog).where(StockSyncLog.master_listing_id == master_listing_id), limit)

    async def list_recent(self, user_id: str, limit: int = 100) -> List[SyncLogEntry]:
        return await self._list(select(StockSyncLog).where(StockSyncLog.user_id == user_id), limit)
