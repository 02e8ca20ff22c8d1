from fastapi import APIRouter
from sqlalchemy import text

router = APIRouter(tags=["health"])

@router.get("/health")
async def health_check():
    """Basic health check"""
    return {"status": "healthy", "service": "Stock Sync Engine"}

@router.get("/health/db")
async def database_health():
    """Check database connectivity"""
    try:
        from stocksync.database import async_session

        async with async_session() as session:
            await session.execute(text("SELECT 1"))

        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        return {
            "status": "unhealthy",
            "database": "error",
            "error": str(e)
        }
