"""
Master Aggregate

Reads master listings and writes their aggregate `total_stock`.

Writes are monotonic by run start: `update_total_stock` only applies when
`as_of` is not older than the `stock_synced_at` already stored, so a slow run
can never overwrite the aggregate written by a run that started after it.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from stocksync.core.exceptions import AggregateWriteFailedError
from stocksync.models import MasterListing

logger = logging.getLogger(__name__)


@dataclass
class MasterListingRecord:
    id: str
    user_id: str
    title: str
    total_stock: int = 0
    low_stock_threshold: int = 10
    stock_synced_at: Optional[datetime] = None


class MasterListingStore(ABC):

    @abstractmethod
    async def get(self, master_listing_id: str) -> Optional[MasterListingRecord]:
        pass

    @abstractmethod
    async def list_for_user(self, user_id: str) -> List[MasterListingRecord]:
        pass

    @abstractmethod
    async def update_total_stock(self, master_listing_id: str, quantity: int, as_of: datetime) -> bool:
        """
        Set the aggregate stock. Returns False when a run that started later has
        already written it. Raises AggregateWriteFailedError when the write fails.
        """


def _to_record(row: MasterListing) -> MasterListingRecord:
    return MasterListingRecord(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        total_stock=row.total_stock or 0,
        low_stock_threshold=row.low_stock_threshold if row.low_stock_threshold is not None else 10,
        stock_synced_at=row.stock_synced_at,
    )


class SQLMasterListingStore(MasterListingStore):

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def get(self, master_listing_id: str) -> Optional[MasterListingRecord]:
        async with self.session_factory() as session:
            row = await session.get(MasterListing, master_listing_id)
            return _to_record(row) if row else None

    async def list_for_user(self, user_id: str) -> List[MasterListingRecord]:
        stmt = select(MasterListing).where(MasterListing.user_id == user_id).order_by(MasterListing.title)
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_to_record(row) for row in rows]

    async def update_total_stock(self, master_listing_id: str, quantity: int, as_of: datetime) -> bool:
        stmt = (
            update(MasterListing)
            .where(
                MasterListing.id == master_listing_id,
                or_(MasterListing.stock_synced_at.is_(None), MasterListing.stock_synced_at <= as_of),
            )
            .values(total_stock=quantity, stock_synced_at=as_of)
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
                if result.rowcount:
                    return True
                exists = await session.get(MasterListing, master_listing_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to write total stock for {master_listing_id}: {e}", exc_info=True)
            raise AggregateWriteFailedError(f"Failed to write total stock: {e}") from e

        if exists is None:
            raise AggregateWriteFailedError(f"Master listing {master_listing_id} no longer exists")

        logger.warning(f"Skipped stale total stock write for {master_listing_id} (run started {as_of.isoformat()})")
        return False
