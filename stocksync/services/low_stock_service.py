"""
Low Stock Alerts

Keeps one unread alert per master listing while its total stock is at or
below the listing's threshold. Re-checking a listing that already has an
unread alert refreshes that alert instead of creating another.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stocksync.core.config import get_settings
from stocksync.models import LowStockAlert, MasterListing

logger = logging.getLogger(__name__)


class LowStockService:

    def __init__(self, db: AsyncSession, default_threshold: Optional[int] = None):
        self.db = db
        self.default_threshold = (
            default_threshold if default_threshold is not None else get_settings().LOW_STOCK_DEFAULT_THRESHOLD
        )

    def _threshold(self, listing: MasterListing) -> int:
        return listing.low_stock_threshold or self.default_threshold

    async def _check(self, listing: MasterListing) -> Optional[str]:
        threshold = self._threshold(listing)
        stock = listing.total_stock or 0
        if stock > threshold:
            return None

        existing = await self.db.scalar(
            select(LowStockAlert).where(
                LowStockAlert.master_listing_id == listing.id,
                LowStockAlert.variant_id.is_(None),
                LowStockAlert.is_read.is_(False),
            ).limit(1)
        )
        if existing is not None:
            existing.current_stock = stock
            existing.threshold = threshold
            existing.created_at = datetime.now(timezone.utc)
            return "updated"

        self.db.add(LowStockAlert(
            user_id=listing.user_id,
            master_listing_id=listing.id,
            product_title=listing.title,
            current_stock=stock,
            threshold=threshold,
            is_read=False,
            created_at=datetime.now(timezone.utc),
        ))
        return "created"

    async def check_listing(self, master_listing_id: str) -> Optional[str]:
        """
        Check one listing. Returns "created", "updated" or None (stock above threshold
        or unknown listing).
        """
        listing = await self.db.get(MasterListing, master_listing_id)
        if listing is None:
            return None

        action = await self._check(listing)
        if action:
            await self.db.commit()
            logger.info(f"Low stock alert {action} for {listing.id}: {listing.total_stock} <= {self._threshold(listing)}")
        return action

    async def check_user(self, user_id: str) -> Dict[str, int]:
        """Check every master listing of a user."""
        listings = (await self.db.execute(
            select(MasterListing).where(MasterListing.user_id == user_id)
        )).scalars().all()

        counts = {"created": 0, "updated": 0}
        for listing in listings:
            action = await self._check(listing)
            if action:
                counts[action] += 1

        await self.db.commit()
        logger.info(f"Low stock check for {user_id}: {counts['created']} created, {counts['updated']} updated")
        return counts
