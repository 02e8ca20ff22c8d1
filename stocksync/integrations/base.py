from abc import ABC, abstractmethod
from typing import Optional, Dict
from datetime import datetime


class MarketplaceAdapter(ABC):
    """
    Uniform stock update capability for one marketplace.

    The stock manager only knows this interface; which HTTP API, SDK or hosted
    function sits behind it is up to the concrete adapter.
    """

    marketplace: str = "base"

    def __init__(self, api_credentials: Optional[Dict[str, str]] = None):
        self.api_credentials = api_credentials or {}
        self._last_update: Optional[datetime] = None

    @property
    def last_update(self) -> Optional[datetime]:
        return self._last_update

    @abstractmethod
    async def update_stock(self, connection_id: str, remote_product_id: Optional[str], quantity: int) -> bool:
        """
        Set the stock of one remote product.

        Returns True on success. Returning False or raising (typically
        MarketplaceAdapterError) marks the target as failed.
        """
        pass
