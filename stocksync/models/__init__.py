from .activity_log import ActivityLog
from .master_listing import MasterListing
from .marketplace_connection import MarketplaceConnection
from .marketplace_product import MarketplaceProduct
from .stock_sync_log import StockSyncLog
from .low_stock_alert import LowStockAlert

# This ensures all models are registered with SQLAlchemy
__all__ = [
    'ActivityLog',
    'MasterListing',
    'MarketplaceConnection',
    'MarketplaceProduct',
    'StockSyncLog',
    'LowStockAlert',
]
