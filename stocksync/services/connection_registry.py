"""
Connection Registry

Resolves which marketplace product records a stock change for a master
listing has to be propagated to.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import async_sessionmaker

from stocksync.models import MarketplaceConnection, MarketplaceProduct

logger = logging.getLogger(__name__)


def normalize_marketplace(marketplace: Optional[str]) -> str:
    return str(getattr(marketplace, "value", marketplace) or "").strip().lower()


def stored_stock(specific_data: Optional[Dict[str, Any]]) -> int:
    """Stock held in a marketplace_specific_data blob, 0 when absent or unreadable."""
    if not specific_data:
        return 0
    try:
        return int(specific_data.get("stock") or 0)
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class SyncTarget:
    """A marketplace product link joined with its (active) connection."""
    link_id: str
    master_listing_id: str
    connection_id: str
    marketplace: str
    remote_product_id: Optional[str] = None
    specific_data: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)
    user_id: Optional[str] = None

    @property
    def previous_stock(self) -> int:
        return stored_stock(self.specific_data)


class ConnectionRegistry(ABC):

    @abstractmethod
    async def resolve_targets(self, master_listing_id: str, exclude_marketplace: Optional[str]) -> List[SyncTarget]:
        """
        Return the links of a master listing whose connection is active and whose
        marketplace differs from `exclude_marketplace`. Returns an empty list when
        nothing is eligible; raises only when the records cannot be read.
        """

    @abstractmethod
    async def list_connections(self, user_id: str) -> List[Dict[str, Any]]:
        """All connections of a user, active or not."""


class SQLConnectionRegistry(ConnectionRegistry):
    """Reads links and connections with a fresh session per call, so every run sees current state."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def resolve_targets(self, master_listing_id: str, exclude_marketplace: Optional[str]) -> List[SyncTarget]:
        excluded = normalize_marketplace(exclude_marketplace)

        stmt = (
            select(MarketplaceProduct, MarketplaceConnection)
            .join(MarketplaceConnection, MarketplaceProduct.marketplace_connection_id == MarketplaceConnection.id)
            .where(
                MarketplaceProduct.master_listing_id == master_listing_id,
                MarketplaceConnection.is_active.is_(True),
            )
            .order_by(MarketplaceConnection.marketplace, MarketplaceProduct.id)
        )
        if excluded:
            stmt = stmt.where(func.lower(MarketplaceConnection.marketplace) != excluded)

        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).all()

        targets: List[SyncTarget] = []
        seen = set()
        for link, connection in rows:
            if link.id in seen:
                continue
            seen.add(link.id)
            targets.append(SyncTarget(
                link_id=link.id,
                master_listing_id=link.master_listing_id,
                connection_id=connection.id,
                marketplace=normalize_marketplace(connection.marketplace),
                remote_product_id=link.remote_product_id,
                specific_data=dict(link.marketplace_specific_data or {}),
                user_id=link.user_id,
            ))

        logger.debug(f"Resolved {len(targets)} sync targets for {master_listing_id} (excluding '{excluded}')")
        return targets

    async def list_connections(self, user_id: str) -> List[Dict[str, Any]]:
        stmt = (
            select(MarketplaceConnection)
            .where(MarketplaceConnection.user_id == user_id)
            .order_by(MarketplaceConnection.marketplace)
        )
        async with self.session_factory() as session:
            connections = (await session.execute(stmt)).scalars().all()

        return [
            {
                "id": c.id,
                "marketplace": c.marketplace,
                "store_name": c.store_name,
                "is_active": c.is_active,
                "last_sync_at": c.last_sync_at.isoformat() if c.last_sync_at else None,
            }
            for c in connections
        ]
