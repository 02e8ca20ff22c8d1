from typing import AsyncGenerator
from fastapi import HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from stocksync.database import async_session
from stocksync.integrations.stock_manager import StockManager

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()

def get_stock_manager(request: Request) -> StockManager:
    """The StockManager created in the application lifespan."""
    manager = getattr(request.app.state, "stock_manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Stock manager is not initialised")
    return manager
