"""
Shared enums and constants used across the application.
"""

from enum import Enum


class MarketplaceName(str, Enum):
    TRENDYOL = "trendyol"
    HEPSIBURADA = "hepsiburada"
    IKAS = "ikas"
    CICEKSEPETI = "ciceksepeti"
    TICIMAX = "ticimax"
    AMAZON = "amazon"
    ETSY = "etsy"
    N11 = "n11"
    SHOPIFY = "shopify"

    @property
    def function_name(self) -> str:
        # Etsy and Shopify share the generic marketplace function
        if self in (MarketplaceName.ETSY, MarketplaceName.SHOPIFY):
            return "marketplace-sync"
        return f"{self.value}-sync"


class SyncStatus(str, Enum):
    """Sync state of a single marketplace product record."""
    PENDING = "pending"
    SYNCING = "syncing"
    SYNCED = "synced"
    ERROR = "error"


class SyncOutcome(str, Enum):
    """Outcome stored on a stock sync log entry."""
    SUCCESS = "success"
    FAILED = "failed"


class RunState(str, Enum):
    """States of a single stock synchronization run."""
    STARTED = "started"
    RESOLVING_TARGETS = "resolving_targets"
    NO_TARGETS = "no_targets"
    TARGETS_RESOLVED = "targets_resolved"
    PER_TARGET_ATTEMPTS = "per_target_attempts"
    AGGREGATE_UPDATE = "aggregate_update"
    COMPLETED = "completed"                        # terminal
    RESOLUTION_FAILED = "resolution_failed"        # terminal, no side effects
    AGGREGATE_WRITE_FAILED = "aggregate_write_failed"  # terminal, targets committed
    CANCELLED = "cancelled"                        # terminal, aggregate stale

    @property
    def is_terminal(self) -> bool:
        return self in (
            RunState.COMPLETED,
            RunState.RESOLUTION_FAILED,
            RunState.AGGREGATE_WRITE_FAILED,
            RunState.CANCELLED,
        )


class SyncClassification(str, Enum):
    """Operator-facing summary of a run's per-target outcomes."""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    NO_TARGETS = "no_targets"
