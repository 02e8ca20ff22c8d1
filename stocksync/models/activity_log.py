# stocksync/models/activity_log.py
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from stocksync.database import Base, json_column_type

class ActivityLog(Base):
    """
    Records significant activities in the system for auditing and monitoring.

    This includes:
    - Stock synchronization runs (one entry per run, with the outcome summary)
    - Low stock checks
    """
    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True)
    action = Column(String(50), nullable=False, index=True)  # 'stock_sync', 'low_stock_check'
    entity_type = Column(String(50), nullable=False, index=True)  # 'master_listing', 'user'
    entity_id = Column(String(100), nullable=False, index=True)
    platform = Column(String(50), nullable=True, index=True)  # Source marketplace if applicable

    details = Column(json_column_type(), nullable=True)

    user_id = Column(String(36), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<ActivityLog {self.action} {self.entity_type} {self.entity_id}>"
