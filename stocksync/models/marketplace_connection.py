# stocksync/models/marketplace_connection.py
import uuid

from sqlalchemy import Column, String, Boolean, DateTime, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from stocksync.database import Base, json_column_type


class MarketplaceConnection(Base):
    """
    One marketplace integration for a user.

    Created and deactivated by the connection management flows. The stock
    sync engine only reads it: inactive connections are never sync targets.
    """
    __tablename__ = "marketplace_connections"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    marketplace = Column(String(50), nullable=False, index=True)
    store_name = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    credentials = Column(json_column_type(), nullable=True)
    last_sync_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    products = relationship("MarketplaceProduct", back_populates="connection")

    __table_args__ = (
        Index("ix_marketplace_connections_user_marketplace", "user_id", "marketplace"),
    )

    def __repr__(self):
        return f"<MarketplaceConnection(id={self.id}, marketplace='{self.marketplace}', active={self.is_active})>"
