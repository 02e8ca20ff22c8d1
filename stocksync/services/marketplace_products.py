import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import update
from sqlalchemy.ext.asyncio import async_sessionmaker

from stocksync.core.enums import SyncStatus
from stocksync.models import MarketplaceProduct

logger = logging.getLogger(__name__)


class MarketplaceProductStore(ABC):
    """Writes the sync fields of marketplace product links. Links are never deleted here."""

    @abstractmethod
    async def mark_synced(self, link_id: str, specific_data: Dict[str, Any], synced_at: datetime) -> None:
        pass

    @abstractmethod
    async def mark_error(self, link_id: str, error: str) -> None:
        """Only the status fields change; the stored marketplace data stays as it was."""


class SQLMarketplaceProductStore(MarketplaceProductStore):

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def _update(self, link_id: str, **values) -> None:
        async with self.session_factory() as session:
            await session.execute(
                update(MarketplaceProduct).where(MarketplaceProduct.id == link_id).values(**values)
            )
            await session.commit()

    async def mark_synced(self, link_id: str, specific_data: Dict[str, Any], synced_at: datetime) -> None:
        await self._update(
            link_id,
            marketplace_specific_data=specific_data,
            sync_status=SyncStatus.SYNCED.value,
            sync_error=None,
            last_synced_at=synced_at,
        )

    async def mark_error(self, link_id: str, error: str) -> None:
        await self._update(link_id, sync_status=SyncStatus.ERROR.value, sync_error=error)
