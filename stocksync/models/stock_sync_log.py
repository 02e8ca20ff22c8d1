# stocksync/models/stock_sync_log.py
import uuid

from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.sql import func

from stocksync.database import Base


class StockSyncLog(Base):
    """
    One row per propagation attempt of a stock change to a target marketplace.
    This table is append-only: the sync engine never updates or deletes rows.
    """
    __tablename__ = "stock_sync_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    master_listing_id = Column(String(36), nullable=True, index=True)

    source_marketplace = Column(String(50), nullable=False)
    target_marketplace = Column(String(50), nullable=False, index=True)

    previous_stock = Column(Integer, nullable=False, default=0)
    new_stock = Column(Integer, nullable=False)

    sync_status = Column(String(20), nullable=False, index=True)  # success, failed
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return (f"<StockSyncLog(id={self.id}, listing={self.master_listing_id}, "
                f"{self.source_marketplace}->{self.target_marketplace}, status='{self.sync_status}')>")
