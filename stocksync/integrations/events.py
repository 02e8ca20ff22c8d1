"""
StockUpdateEvent: a notification that a master listing's stock changed on one
marketplace (or in the master catalog) and must be propagated to the others.
Events are consumed by StockManager.start_sync_monitor.
"""

from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field

class StockUpdateEvent(BaseModel):
    master_listing_id: str
    source_marketplace: str
    new_quantity: int = Field(ge=0)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: Optional[str] = None
    external_order_id: Optional[str] = None
