import json
import logging
from datetime import datetime, timezone
from typing import Dict, Optional, Any

import httpx

from stocksync.core.enums import MarketplaceName
from stocksync.core.exceptions import MarketplaceAdapterError
from stocksync.integrations.base import MarketplaceAdapter

logger = logging.getLogger(__name__)


class MarketplaceFunctionAdapter(MarketplaceAdapter):
    """
    Stock updates through the hosted marketplace functions.

    Every marketplace integration is deployed as a function named
    "<marketplace>-sync" (Etsy and Shopify share "marketplace-sync"). The
    function accepts an `update_product` action and talks to the marketplace
    API itself, so this adapter only has to shape the request and turn any
    non-success answer into a MarketplaceAdapterError.

    Request body:
        {"action": "update_product", "connectionId": ..., "productId": ...,
         "updates": {"stock": <quantity>}}
    """

    def __init__(
        self,
        marketplace: str,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        function_name: Optional[str] = None,
    ):
        super().__init__({"api_key": api_key})
        self.marketplace = str(getattr(marketplace, "value", marketplace)).lower()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.function_name = function_name or self._default_function_name(self.marketplace)

    @staticmethod
    def _default_function_name(marketplace: str) -> str:
        try:
            return MarketplaceName(marketplace).function_name
        except ValueError:
            return f"{marketplace}-sync"

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.function_name}"

    def _get_headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        api_key = self.api_credentials.get("api_key")
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(body, dict):
            return str(body.get("error") or body.get("message") or body)
        return str(body)

    async def _invoke(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        logger.debug(f"Invoking {self.url}: {json.dumps(payload)[:500]}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.url, headers=self._get_headers(), json=payload)
        except httpx.TimeoutException as e:
            logger.error(f"{self.marketplace} function timed out: {e}")
            raise MarketplaceAdapterError(f"Request timed out: {e}")
        except httpx.RequestError as e:
            logger.error(f"{self.marketplace} function network error: {e}")
            raise MarketplaceAdapterError(f"Network error: {e}")

        if response.status_code not in (200, 201, 202, 204):
            message = self._error_message(response)
            logger.error(f"{self.marketplace} function error ({response.status_code}): {message}")
            raise MarketplaceAdapterError(message, status_code=response.status_code)

        if response.status_code == 204 or not response.content:
            return {}

        try:
            data = response.json()
        except ValueError:
            raise MarketplaceAdapterError(f"Invalid response from {self.function_name}: {response.text[:200]}")

        if isinstance(data, dict) and data.get("success") is False:
            raise MarketplaceAdapterError(str(data.get("error") or data.get("message") or "Update rejected"),
                                          status_code=response.status_code)
        return data if isinstance(data, dict) else {"data": data}

    async def update_stock(self, connection_id: str, remote_product_id: Optional[str], quantity: int) -> bool:
        if not remote_product_id:
            raise MarketplaceAdapterError(f"Listing has no {self.marketplace} product id")

        await self._invoke({
            "action": "update_product",
            "connectionId": connection_id,
            "productId": remote_product_id,
            "updates": {"stock": quantity},
        })
        self._last_update = datetime.now(timezone.utc)
        return True
