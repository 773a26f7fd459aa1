# dropsync/services/autods/client.py

import logging
from typing import Iterable, List, Optional

from dropsync.core.config import Settings, get_settings
from dropsync.core.enums import SupplierFilter
from dropsync.core.exceptions import SupplierAPIError
from dropsync.schemas.supplier import (
    DraftRequest,
    IdSelection,
    MarketplaceQuery,
    ProductFilter,
    StoreProductQuery,
    SupplierDraft,
    SupplierProduct,
)
from dropsync.services.http import BearerAPIClient

logger = logging.getLogger(__name__)

DRAFT_STATUS = 1
LIVE_STATUS = 2
PRIVATE_SUPPLIER_SITE_ID = 27
DEFAULT_SITE_ID = 1


class AutoDSClient(BearerAPIClient):
    """
    AutoDS marketplace and store endpoints.

    Products move marketplace -> draft (product_status 1) -> store product
    (product_status 2), getting a new id at each step.
    """

    error_class = SupplierAPIError

    def __init__(self, token_manager, settings: Optional[Settings] = None):
        super().__init__(token_manager)
        self.settings = settings or get_settings()
        self.store_id = self.settings.AUTODS_STORE_ID.split(",")[0].strip()
        self.api_base = self.settings.AUTODS_API_BASE.rstrip("/")
        self.marketplace_api = self.settings.AUTODS_MARKETPLACE_API.rstrip("/")

    def supplier_filters(self) -> List[ProductFilter]:
        site = self.settings.SUPPLIER_FILTER
        if not site:
            return []
        return [ProductFilter(name="site_name", value=SupplierFilter(site).value)]

    async def list_products(self, filters: Optional[List[ProductFilter]] = None, limit: int = 100,
                            offset: int = 0) -> List[SupplierProduct]:
        """
        Search the AutoDS marketplace.

        Args:
            filters: marketplace filters, e.g. site_name in [amazon]
            limit: page size
            offset: page offset

        Returns:
            Marketplace products, best sellers first
        """
        query = MarketplaceQuery(filters=filters or [], limit=limit, offset=offset)
        data = await self._request(
            "POST",
            f"{self.marketplace_api}/products/",
            json=query.model_dump(exclude_none=True),
        )
        return [SupplierProduct.model_validate(item) for item in data.get("results") or []]

    async def stage_draft(self, product: SupplierProduct) -> None:
        """Ask AutoDS to import a marketplace product into the store as a draft."""
        if product.is_private_supplier:
            asin, site_id = product.id, PRIVATE_SUPPLIER_SITE_ID
        else:
            asin, site_id = product.id_on_site or product.id, DEFAULT_SITE_ID

        body = DraftRequest(buy_site_id=site_id, new_products=[{"asin": asin}])
        await self._request(
            "POST",
            f"{self.api_base}/products/single_draft_product/{self.store_id}/",
            json=body.model_dump(),
        )

    async def _list_store(self, product_status: int, limit: int, offset: int) -> list:
        query = StoreProductQuery(product_status=product_status, limit=limit, offset=offset)
        data = await self._request(
            "POST",
            f"{self.api_base}/products/{self.store_id}/list/",
            json=query.model_dump(exclude_none=True),
        )
        return data.get("results") or []

    async def list_drafts(self, limit: int = 100) -> List[SupplierDraft]:
        """Newest drafts in the store."""
        return [SupplierDraft.model_validate(item) for item in await self._list_store(DRAFT_STATUS, limit, 0)]

    async def list_store_products(self, page_size: int = 100) -> List[SupplierProduct]:
        """Every live product in the store, following pagination to the end."""
        products: List[SupplierProduct] = []
        offset = 0
        while True:
            page = await self._list_store(LIVE_STATUS, page_size, offset)
            products.extend(SupplierProduct.model_validate(item) for item in page)
            if len(page) < page_size:
                break
            offset += page_size
        logger.debug(f"Fetched {len(products)} AutoDS store products")
        return products

    async def promote_draft(self, draft_id: str) -> None:
        """Move a draft into the live products tab."""
        body = IdSelection.for_ids([draft_id], product_status=DRAFT_STATUS)
        await self._request(
            "POST",
            f"{self.api_base}/products/{self.store_id}/import_to_marketplace",
            json=body.model_dump(exclude_none=True),
        )

    async def bulk_delete(self, ids: Iterable[str], remove_from_marketplace: bool = True) -> None:
        """Delete store products, optionally ending their marketplace listings too."""
        body = IdSelection.for_ids(
            list(ids),
            product_status=LIVE_STATUS,
            remove_from_marketplace=remove_from_marketplace,
        )
        await self._request(
            "DELETE",
            f"{self.api_base}/products/{self.store_id}/bulk",
            json=body.model_dump(exclude_none=True),
        )
