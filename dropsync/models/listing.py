from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from dropsync.database import Base
from dropsync.models.api_token import utc_now


class Listing(Base):
    """
    A supplier product mirrored as a channel listing.

    sku carries the supplier product id and is the join key between the two
    systems. Setting active=False is terminal.
    """

    __tablename__ = "listings"

    id = Column(Integer, primary_key=True)
    supplier_product_id = Column(String(64), nullable=False, index=True)
    marketplace_product_id = Column(String(64), nullable=True)
    item_id_on_site = Column(String(64), nullable=True, index=True)
    channel_listing_id = Column(String(64), nullable=False, unique=True)
    sku = Column(String(64), nullable=False, index=True)
    title = Column(Text, nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    cost = Column(Numeric(10, 2), nullable=False, default=0)
    stock = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True, index=True)
    listed_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    end_reason = Column(String(32), nullable=True)

    def __repr__(self) -> str:
        return f"<Listing(id={self.id}, sku={self.sku}, active={self.active})>"
