import logging
from typing import Dict, List

from stocksync.core.exceptions import AdapterNotRegisteredError
from stocksync.integrations.base import MarketplaceAdapter

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Lookup table of marketplace adapters keyed by marketplace name."""

    def __init__(self):
        self._adapters: Dict[str, MarketplaceAdapter] = {}

    @staticmethod
    def _key(marketplace: str) -> str:
        return str(getattr(marketplace, "value", marketplace)).strip().lower()

    def register(self, marketplace: str, adapter: MarketplaceAdapter) -> None:
        key = self._key(marketplace)
        if key in self._adapters:
            logger.warning(f"Replacing registered adapter for {key}")
        self._adapters[key] = adapter

    def unregister(self, marketplace: str) -> None:
        self._adapters.pop(self._key(marketplace), None)

    def get(self, marketplace: str) -> MarketplaceAdapter:
        try:
            return self._adapters[self._key(marketplace)]
        except KeyError:
            raise AdapterNotRegisteredError(f"No adapter registered for marketplace '{marketplace}'")

    @property
    def marketplaces(self) -> List[str]:
        return sorted(self._adapters)

    def __contains__(self, marketplace: str) -> bool:
        return self._key(marketplace) in self._adapters

    def __len__(self) -> int:
        return len(self._adapters)
