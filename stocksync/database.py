# stocksync/database.py

# type: ignore[misc]
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base
from stocksync.core.config import get_settings
import os

settings = get_settings()

# Use environment variable directly if settings is empty
database_url = settings.DATABASE_URL or os.environ.get('DATABASE_URL', '')
if not database_url:
    raise ValueError("DATABASE_URL is not set in environment variables")

# Convert postgresql:// to postgresql+asyncpg:// for async support
if database_url.startswith('postgresql://'):
    database_url = database_url.replace('postgresql://', 'postgresql+asyncpg://', 1)

engine_options = {}
if database_url.startswith('postgresql'):
    engine_options = dict(
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,
        pool_recycle=1800,
    )

engine = create_async_engine(
    database_url,
    echo=settings.DEBUG,
    future=True,
    **engine_options
)


async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)

Base = declarative_base()


def json_column_type():
    """JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)."""
    from sqlalchemy import JSON
    from sqlalchemy.dialects.postgresql import JSONB
    return JSON().with_variant(JSONB(), "postgresql")
