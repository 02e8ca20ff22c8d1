# stocksync/core/config.py

import os
from functools import lru_cache
from typing import Optional
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings.
    Loads values from environment variables (.env file)
    """
    # Database settings
    DATABASE_URL: str = ""

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Hosted marketplace functions (one "<marketplace>-sync" function per marketplace)
    MARKETPLACE_FUNCTIONS_URL: str = ""
    MARKETPLACE_FUNCTIONS_KEY: str = ""
    MARKETPLACE_REQUEST_TIMEOUT: float = 30.0

    # Stock synchronization
    SYNC_MAX_CONCURRENT_TARGETS: int = 5   # 1 = attempt targets one at a time
    SYNC_TARGET_TIMEOUT: float = 60.0      # seconds per target attempt
    SYNC_QUEUE_MAXSIZE: int = 1000

    # Low stock alerts
    LOW_STOCK_DEFAULT_THRESHOLD: int = 10

    # Optional default owner for CLI-triggered runs
    DEFAULT_USER_ID: Optional[str] = None

    model_config = ConfigDict(
        env_file=os.environ.get('ENV_FILE', '.env') if os.path.exists('.env') else None,
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings():
    """Cached settings to avoid loading .env file for every request"""
    return Settings()

