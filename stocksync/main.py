# stocksync/main.py

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from stocksync import models  # noqa: F401  (registers all tables)
from stocksync.core.config import get_settings
from stocksync.core.logging_config import configure_logging
from stocksync.integrations.setup import setup_stock_manager
from stocksync.routes import health
from stocksync.routes.stock_sync import router as stock_sync_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    logger.info(f"Starting stock sync engine ({settings.ENVIRONMENT})")

    # Startup: initialise the stock manager and its event monitor
    app.state.stock_manager = setup_stock_manager(settings=settings, start_monitor=True)
    try:
        yield  # This is where the app runs
    finally:
        task = getattr(app.state.stock_manager, "monitor_task", None)
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

app = FastAPI(
    title="Stock Sync Engine",
    debug=get_settings().DEBUG,
    lifespan=lifespan
)

app.include_router(stock_sync_router)
app.include_router(health.router)
