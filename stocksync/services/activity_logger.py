# stocksync/services/activity_logger.py
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from stocksync.models.activity_log import ActivityLog

logger = logging.getLogger(__name__)

class ActivityLogger:
    """
    Service for logging activities throughout the application.

    This provides a consistent way to record stock sync runs and other
    system activities for auditing, monitoring, and reporting purposes.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log_activity(
        self,
        action: str,
        entity_type: str,
        entity_id: str,
        platform: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None
    ) -> Optional[ActivityLog]:
        """
        Log an activity in the system.

        Args:
            action: The action performed (stock_sync, low_stock_check)
            entity_type: The type of entity affected (master_listing, user)
            entity_id: The ID of the affected entity
            platform: Optional marketplace name
            details: Optional additional details as a dictionary
            user_id: Optional ID of the user who owns the entity

        Returns:
            The created ActivityLog instance, or None when it could not be written
        """
        try:
            log_entry = ActivityLog(
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id),
                platform=platform,
                details=details,
                user_id=user_id,
                created_at=datetime.now(timezone.utc)
            )

            self.db.add(log_entry)
            await self.db.flush()

            logger.debug(
                f"Activity logged: {action} {entity_type} {entity_id} "
                f"(platform: {platform or 'N/A'})"
            )

            return log_entry

        except Exception as e:
            # Activity logging must not interrupt the main flow
            logger.error(f"Error logging activity: {str(e)}")
            return None

    async def log_stock_sync(self, run, user_id: Optional[str] = None) -> Optional[ActivityLog]:
        """
        Log a finished stock sync run (a SyncRunResult).
        """
        return await self.log_activity(
            action="stock_sync",
            entity_type="master_listing",
            entity_id=run.master_listing_id,
            platform=run.source_marketplace,
            user_id=user_id,
            details={
                "sync_run_id": run.sync_run_id,
                "state": run.state.value,
                "classification": run.classification.value,
                "new_stock": run.new_quantity,
                "succeeded": run.succeeded,
                "failed": run.failed,
                "failed_marketplaces": [r.marketplace for r in run.results if not r.success],
                "aggregate_updated": run.aggregate_updated,
                "aggregate_error": run.aggregate_error,
                "duration_seconds": run.duration_seconds,
                "timestamp": datetime.now(timezone.utc).isoformat()
            }
        )

    async def log_low_stock_check(self, user_id: str, created: int, updated: int) -> Optional[ActivityLog]:
        return await self.log_activity(
            action="low_stock_check",
            entity_type="user",
            entity_id=user_id,
            user_id=user_id,
            details={"alerts_created": created, "alerts_updated": updated}
        )
