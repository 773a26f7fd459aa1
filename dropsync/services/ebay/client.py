# dropsync/services/ebay/client.py

import logging
from datetime import datetime
from typing import List, Optional

from dropsync.core.config import Settings, get_settings
from dropsync.core.exceptions import ChannelAPIError
from dropsync.schemas.channel import ChannelListing, ChannelMessage
from dropsync.services.ebay.trading import EbayTradingAPI
from dropsync.services.http import BearerAPIClient

logger = logging.getLogger(__name__)


class EbayClient(BearerAPIClient):
    """
    eBay seller side: Inventory API for listings, Trading API for messages.
    Listings are addressed by SKU, which is the AutoDS store product id.
    """

    error_class = ChannelAPIError

    def __init__(self, token_manager, settings: Optional[Settings] = None, trading: Optional[EbayTradingAPI] = None):
        super().__init__(token_manager)
        self.settings = settings or get_settings()
        self.INVENTORY_API = f"{self.settings.EBAY_API_BASE.rstrip('/')}/sell/inventory/v1"
        self.trading = trading or EbayTradingAPI(token_manager, self.settings)

    async def list_active_listings(self, page_size: int = 100) -> List[ChannelListing]:
        """
        All inventory items on the account, following pagination.

        Returns:
            ChannelListing per inventory item
        """
        listings: List[ChannelListing] = []
        offset = 0
        while True:
            data = await self._request(
                "GET",
                f"{self.INVENTORY_API}/inventory_item",
                params={"limit": page_size, "offset": offset},
            )
            items = data.get("inventoryItems") or []
            listings.extend(ChannelListing.from_inventory_item(item) for item in items)

            total = int(data.get("total") or 0)
            offset += len(items)
            if not items or offset >= total:
                break

        logger.debug(f"Fetched {len(listings)} eBay inventory items")
        return listings

    async def end_listing(self, sku: str) -> bool:
        """Remove the inventory item (and its live listing) for ``sku``."""
        await self._request("DELETE", f"{self.INVENTORY_API}/inventory_item/{sku}")
        logger.info(f"Ended eBay listing {sku}")
        return True

    async def get_messages(self, since: datetime) -> List[ChannelMessage]:
        return await self.trading.get_messages(since)

    async def reply_to_message(self, item_id: str, text: str, recipient: Optional[str] = None) -> bool:
        return await self.trading.reply_to_message(item_id, text, recipient=recipient)
