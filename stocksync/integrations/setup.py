"""
Wiring of the StockManager: builds the marketplace adapter registry from
settings, creates the SQL-backed stores and optionally starts the background
event monitor. Called from the FastAPI lifespan and from the CLI.
"""


import asyncio
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from stocksync.core.config import Settings, get_settings
from stocksync.core.enums import MarketplaceName
from stocksync.integrations.platforms.functions import MarketplaceFunctionAdapter
from stocksync.integrations.registry import AdapterRegistry
from stocksync.integrations.stock_manager import StockManager
from stocksync.services.connection_registry import SQLConnectionRegistry
from stocksync.services.marketplace_products import SQLMarketplaceProductStore
from stocksync.services.master_listings import SQLMasterListingStore
from stocksync.services.sync_log import SQLSyncLogStore

logger = logging.getLogger(__name__)


def build_adapter_registry(settings: Optional[Settings] = None) -> AdapterRegistry:
    """
    Register one MarketplaceFunctionAdapter per supported marketplace.
    Without a functions URL the registry stays empty and every target fails
    with "No adapter registered".
    """
    settings = settings or get_settings()
    registry = AdapterRegistry()

    if not settings.MARKETPLACE_FUNCTIONS_URL:
        logger.warning("MARKETPLACE_FUNCTIONS_URL not set, no marketplace adapters registered")
        return registry

    for marketplace in MarketplaceName:
        try:
            registry.register(marketplace.value, MarketplaceFunctionAdapter(
                marketplace.value,
                base_url=settings.MARKETPLACE_FUNCTIONS_URL,
                api_key=settings.MARKETPLACE_FUNCTIONS_KEY,
                timeout=settings.MARKETPLACE_REQUEST_TIMEOUT,
            ))
        except Exception as e:
            logger.error(f"Failed to initialize/register {marketplace.value} adapter: {e}")

    logger.info(f"Registered marketplace adapters: {', '.join(registry.marketplaces)}")
    return registry


def setup_stock_manager(
    session_factory: Optional[async_sessionmaker] = None,
    settings: Optional[Settings] = None,
    registry: Optional[AdapterRegistry] = None,
    start_monitor: bool = False,
) -> StockManager:
    """
    Initialize the stock manager with SQL stores and the marketplace adapters
    """
    settings = settings or get_settings()
    if session_factory is None:
        from stocksync.database import async_session
        session_factory = async_session

    manager = StockManager(
        registry=registry if registry is not None else build_adapter_registry(settings),
        connections=SQLConnectionRegistry(session_factory),
        products=SQLMarketplaceProductStore(session_factory),
        sync_log=SQLSyncLogStore(session_factory),
        master_listings=SQLMasterListingStore(session_factory),
        max_concurrent_targets=settings.SYNC_MAX_CONCURRENT_TARGETS,
        target_timeout=settings.SYNC_TARGET_TIMEOUT,
        queue_maxsize=settings.SYNC_QUEUE_MAXSIZE,
    )

    if start_monitor:
        logger.info("Starting StockManager sync monitor task...")
        manager.monitor_task = asyncio.create_task(manager.start_sync_monitor())

    return manager
