"""
Master listing model.

The master listing is the marketplace-independent representation of a
product. Its `total_stock` column is the aggregate stock value the sync engine
writes once per run.
"""

import uuid

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from stocksync.database import Base


class MasterListing(Base):
    __tablename__ = "master_listings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    title = Column(String, nullable=False)
    internal_sku = Column(String, nullable=True, index=True)

    # Aggregate stock
    total_stock = Column(Integer, nullable=False, default=0)
    low_stock_threshold = Column(Integer, nullable=False, default=10)
    # Start time of the sync run that last wrote total_stock
    stock_synced_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    marketplace_products = relationship("MarketplaceProduct", back_populates="master_listing")

    def __repr__(self):
        return f"<MasterListing(id={self.id}, title='{self.title}', total_stock={self.total_stock})>"
