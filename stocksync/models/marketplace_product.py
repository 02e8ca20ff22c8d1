# marketplace_product.py
import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from stocksync.core.enums import SyncStatus
from stocksync.database import Base, json_column_type


class MarketplaceProduct(Base):
    """Link between a master listing and its listing on one marketplace connection."""
    __tablename__ = "marketplace_products"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    master_listing_id = Column(String(36), ForeignKey("master_listings.id"), nullable=False, index=True)
    marketplace_connection_id = Column(String(36), ForeignKey("marketplace_connections.id"), nullable=False, index=True)
    remote_product_id = Column(String, nullable=True)

    # Free-form marketplace data. Holds at least {"stock": <int>}
    marketplace_specific_data = Column(json_column_type(), nullable=True, default=dict)

    sync_status = Column(String(20), nullable=False, default=SyncStatus.PENDING.value, index=True)
    sync_error = Column(Text, nullable=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    master_listing = relationship("MasterListing", back_populates="marketplace_products")
    connection = relationship("MarketplaceConnection", back_populates="products")

    __table_args__ = (
        UniqueConstraint("master_listing_id", "marketplace_connection_id", name="uq_marketplace_products_listing_connection"),
    )

    def __repr__(self):
        return (f"<MarketplaceProduct(id={self.id}, master_listing_id={self.master_listing_id}, "
                f"connection_id={self.marketplace_connection_id}, sync_status='{self.sync_status}')>")
