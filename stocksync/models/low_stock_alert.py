import uuid

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func

from stocksync.database import Base


class LowStockAlert(Base):
    """An unread alert is kept per listing (or variant) while its stock sits at or below the threshold."""
    __tablename__ = "low_stock_alerts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    master_listing_id = Column(String(36), nullable=True, index=True)
    variant_id = Column(String(36), nullable=True, index=True)
    product_title = Column(String, nullable=False)
    variant_name = Column(String, nullable=True)
    current_stock = Column(Integer, nullable=False)
    threshold = Column(Integer, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<LowStockAlert(listing={self.master_listing_id}, stock={self.current_stock}/{self.threshold})>"
