# tests/mocks/fakes.py
"""In-memory stand-ins for the token store, auth strategies, AutoDS and eBay."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from dropsync.core.exceptions import ChannelAPIError, PersistenceError, SupplierAPIError
from dropsync.schemas.channel import ChannelListing
from dropsync.schemas.supplier import SupplierDraft, SupplierProduct
from dropsync.schemas.tokens import TokenGrant, TokenRecord
from dropsync.services.auth.strategy import AuthStrategy


def token_record(access_token: str, minutes_left: float, refresh_token: Optional[str] = None,
                 service: str = "SUPPLIER") -> TokenRecord:
    return TokenRecord(
        service=service,
        access_token=access_token,
        expires_at=datetime.now(timezone.utc) + timedelta(minutes=minutes_left),
        refresh_token=refresh_token,
    )


class FakeTokenStore:
    def __init__(self, records: Optional[List[TokenRecord]] = None):
        self.records: List[TokenRecord] = list(records or [])
        self.activations: List[TokenRecord] = []
        self.fail_reads = False
        self.fail_writes = False

    async def find_latest_active(self, service: str) -> Optional[TokenRecord]:
        if self.fail_reads:
            raise PersistenceError("database unavailable")
        for record in reversed(self.records):
            if record.service == service:
                return record
        return None

    async def activate(self, record: TokenRecord) -> None:
        self.activations.append(record)
        if self.fail_writes:
            raise PersistenceError("database unavailable")
        self.records = [r for r in self.records if r.service != record.service] + [record]


class FakeStrategy(AuthStrategy):
    """Hands out token-1, token-2... one per authorize call."""

    def __init__(self, delay: float = 0, flow_timeout: float = 5, supports_refresh: bool = False,
                 error: Optional[Exception] = None, refresh_error: Optional[Exception] = None,
                 exchange_error: Optional[Exception] = None, expires_in: int = 7200):
        self.delay = delay
        self.flow_timeout = flow_timeout
        self.supports_refresh = supports_refresh
        self.error = error
        self.refresh_error = refresh_error
        self.exchange_error = exchange_error
        self.expires_in = expires_in
        self.authorize_calls = 0
        self.refresh_calls: List[str] = []
        self.exchanged: List[str] = []

    async def authorize(self, manager, state: str) -> TokenGrant:
        self.authorize_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return TokenGrant(
            access_token=f"token-{self.authorize_calls}",
            expires_in=self.expires_in,
            refresh_token="refresh-1",
        )

    async def refresh(self, refresh_token: str) -> TokenGrant:
        self.refresh_calls.append(refresh_token)
        if self.refresh_error:
            raise self.refresh_error
        return TokenGrant(access_token="refreshed-token", expires_in=self.expires_in)

    async def exchange_code(self, code: str) -> TokenGrant:
        self.exchanged.append(code)
        if self.exchange_error:
            raise self.exchange_error
        return TokenGrant(access_token=f"code-token-{len(self.exchanged)}", expires_in=self.expires_in)


class ExternalCompletionStrategy(FakeStrategy):
    """Waits for someone to exchange a code, the way the eBay consent flow does."""

    async def authorize(self, manager, state: str) -> None:
        self.authorize_calls += 1
        self.state = state
        await manager.wait_for_authorization()


def marketplace_product(product_id: str, title: str, in_stock: Optional[int] = 5,
                        site_name: str = "amazon") -> SupplierProduct:
    stats = None if in_stock is None else {"in_stock": {"total": in_stock}}
    return SupplierProduct(
        id=product_id,
        title=title,
        site_name=site_name,
        id_on_site=f"ASIN-{product_id}",
        variation_statistics=stats,
    )


class FakeSupplier:
    """
    AutoDS double. Staging creates a draft, promoting turns it into a store
    product ``s-<marketplace id>``. Ids in ``lose_draft_once`` and
    ``lose_promotion_once`` silently vanish the first time round.
    """

    def __init__(self, products: List[SupplierProduct], lose_draft_once=(), lose_promotion_once=(),
                 fail_stage=(), store_products: Optional[List[SupplierProduct]] = None):
        self.products = list(products)
        self.lose_draft_once = set(lose_draft_once)
        self.lose_promotion_once = set(lose_promotion_once)
        self.fail_stage = set(fail_stage)
        self.fail_delete = False
        self.drafts: List[SupplierDraft] = []
        self.store_products: List[SupplierProduct] = list(store_products or [])
        self.staged_ids: List[str] = []
        self.promoted_ids: List[str] = []
        self.deleted: List[List[str]] = []
        self._draft_sources: Dict[str, SupplierProduct] = {}
        self._draft_seq = 0

    def supplier_filters(self):
        return []

    async def list_products(self, filters=None, limit=100, offset=0) -> List[SupplierProduct]:
        return list(self.products[offset:offset + limit])

    async def stage_draft(self, product: SupplierProduct) -> None:
        self.staged_ids.append(product.id)
        if product.id in self.fail_stage:
            raise SupplierAPIError(f"cannot stage {product.id}", 400)
        if product.id in self.lose_draft_once:
            self.lose_draft_once.discard(product.id)
            return

        self._draft_seq += 1
        draft = SupplierDraft(id=f"d-{self._draft_seq}", title=product.title)
        self.drafts.append(draft)
        self._draft_sources[draft.id] = product

    async def list_drafts(self, limit=100) -> List[SupplierDraft]:
        return list(self.drafts)

    async def promote_draft(self, draft_id: str) -> None:
        self.promoted_ids.append(draft_id)
        self.drafts = [draft for draft in self.drafts if draft.id != draft_id]
        product = self._draft_sources.pop(draft_id)
        if product.id in self.lose_promotion_once:
            self.lose_promotion_once.discard(product.id)
            return

        self.store_products.append(SupplierProduct(
            id=f"s-{product.id}",
            title=product.title,
            item_id_on_site=product.id_on_site,
            variation_statistics=product.variation_statistics,
        ))

    async def list_store_products(self, page_size=100) -> List[SupplierProduct]:
        return list(self.store_products)

    async def bulk_delete(self, ids, remove_from_marketplace=True) -> None:
        ids = list(ids)
        self.deleted.append(ids)
        if self.fail_delete:
            raise SupplierAPIError("bulk delete rejected", 400)
        self.store_products = [product for product in self.store_products if product.id not in ids]


class FakeChannel:
    def __init__(self, listings: Optional[List[ChannelListing]] = None, messages=None, fail_end=()):
        self.listings = list(listings or [])
        self.messages = list(messages or [])
        self.fail_end = set(fail_end)
        self.fail_reply = False
        self.ended: List[str] = []
        self.replies: List[dict] = []

    async def list_active_listings(self, page_size=100) -> List[ChannelListing]:
        return list(self.listings)

    async def end_listing(self, sku: str) -> bool:
        if sku in self.fail_end:
            raise ChannelAPIError(f"cannot end {sku}", 400)
        self.ended.append(sku)
        self.listings = [listing for listing in self.listings if listing.sku != sku]
        return True

    async def get_messages(self, since):
        return list(self.messages)

    async def reply_to_message(self, item_id, text, recipient=None) -> bool:
        if self.fail_reply:
            raise ChannelAPIError("reply rejected", 400)
        self.replies.append({"item_id": item_id, "text": text, "recipient": recipient})
        return True
