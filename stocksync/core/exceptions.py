class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    pass

class StockSyncError(BaseServiceError):
    """Base exception for stock synchronization errors."""
    code = "stock_sync_error"

class InvalidArgumentError(StockSyncError):
    """Raised when a sync request is rejected before any side effect."""
    code = "invalid_argument"

class MasterListingNotFoundError(StockSyncError):
    """Raised when the master listing does not exist."""
    code = "not_found"

class ResolutionFailedError(StockSyncError):
    """Raised when the sync targets for a master listing cannot be read."""
    code = "resolution_failed"

class TargetFailedError(StockSyncError):
    """Raised inside a single target attempt. Always handled by the orchestrator."""
    code = "target_failed"

    def __init__(self, marketplace: str, message: str):
        super().__init__(message)
        self.marketplace = marketplace

class AggregateWriteFailedError(StockSyncError):
    """Raised by a master listing store when the total stock write fails."""
    code = "aggregate_write_failed"

class PlatformServiceError(BaseServiceError):
    """Base exception for platform service errors."""
    pass

class MarketplaceAdapterError(PlatformServiceError):
    """Raised when a marketplace rejects or fails a stock update."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code

class AdapterNotRegisteredError(PlatformServiceError):
    """Raised when no adapter is registered for a marketplace."""
    pass

