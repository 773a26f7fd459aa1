"""
eBay-side shapes used by dedupe, removal and the message responder.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ChannelListing(BaseModel):
    model_config = ConfigDict(extra="ignore")

    sku: Optional[str] = None
    listing_id: Optional[str] = None
    title: Optional[str] = None
    quantity: Optional[int] = None

    @classmethod
    def from_inventory_item(cls, item: dict) -> "ChannelListing":
        product = item.get("product") or {}
        availability = (item.get("availability") or {}).get("shipToLocationAvailability") or {}
        return cls(
            sku=item.get("sku"),
            listing_id=item.get("sku"),
            title=product.get("title"),
            quantity=availability.get("quantity"),
        )


class ChannelMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message_id: str
    sender: Optional[str] = None
    subject: Optional[str] = None
    body: Optional[str] = None
    item_id: Optional[str] = None
    received_at: Optional[datetime] = None
