"""
Request and response bodies for the AutoDS endpoints used by the pipeline.
"""

from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ProductFilter(BaseModel):
    name: str
    value: Any = None
    value_list: Optional[List[Any]] = None
    op: str = "in"
    value_type: str = "list"


class OrderBy(BaseModel):
    name: str
    direction: str = "desc"


class MarketplaceQuery(BaseModel):
    """POST body of the marketplace product search."""
    projection: Dict[str, Dict] = Field(default_factory=lambda: {
        key: {} for key in (
            "title", "images", "supplier_name", "site_name", "id_on_site", "product_details",
            "region", "private_supplier", "variation_statistics", "categories",
        )
    })
    order_by: OrderBy = Field(default_factory=lambda: OrderBy(name="spv_param"))
    condition: str = "and"
    limit: int = 100
    offset: int = 0
    filters: List[ProductFilter] = Field(default_factory=list)


class StoreProductQuery(BaseModel):
    """POST body for listing drafts (product_status=1) or live products (product_status=2)."""
    limit: int = 100
    offset: int = 0
    condition: str = "and"
    filters: List[ProductFilter] = Field(default_factory=list)
    order_by: OrderBy = Field(default_factory=lambda: OrderBy(name="id"))
    product_status: int = 1
    projection: List[str] = Field(default_factory=lambda: [
        "id", "title", "site_id", "item_id_on_site", "status", "variation_statistics", "error_list",
    ])


class DraftRequest(BaseModel):
    """POST body asking AutoDS to stage one marketplace product as a draft."""
    urls: List[str] = Field(default_factory=list)
    region: int = 1
    status: int = 1
    buy_site_id: int = 1
    upload_as_draft: bool = False
    is_sample_loading: bool = False
    upload_type: str = "marketplace"
    action_source: int = 4
    new_products: List[Dict[str, str]]


class IdSelection(BaseModel):
    """Body selecting store products by id, used by promote and bulk delete."""
    condition: str = "and"
    filters: List[ProductFilter]
    product_status: int = 1
    remove_from_marketplace: Optional[bool] = None

    @classmethod
    def for_ids(cls, ids: List[str], **kwargs) -> "IdSelection":
        return cls(filters=[ProductFilter(name="id", value_list=list(ids))], **kwargs)


class SupplierProduct(BaseModel):
    """
    A product as AutoDS reports it, either in the marketplace search (keyed by
    ``_id``) or in a store's product list (keyed by ``id``).
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    title: str = ""
    site_name: Optional[str] = None
    id_on_site: Optional[str] = None
    item_id_on_site: Optional[str] = None
    supplier_name: Optional[str] = None
    variation_statistics: Optional[Dict[str, Any]] = None
    error_list: Optional[List[Any]] = None

    @field_validator("id", "id_on_site", "item_id_on_site", mode="before")
    @classmethod
    def coerce_identifier(cls, v):
        if v is None:
            return None
        return str(v)

    @property
    def is_private_supplier(self) -> bool:
        return self.site_name == "private_suppliers"

    @property
    def identifiers(self) -> List[str]:
        return [value for value in (self.id, self.id_on_site, self.item_id_on_site) if value]

    def in_stock_units(self) -> Optional[int]:
        """Aggregated in-stock count from variation statistics, None when unreported."""
        stats = self.variation_statistics or {}
        in_stock = stats.get("in_stock")
        if in_stock is None:
            return None
        if isinstance(in_stock, dict):
            in_stock = in_stock.get("total", 0)
        try:
            return int(in_stock or 0)
        except (TypeError, ValueError):
            return 0


class SupplierDraft(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    title: str = ""
    status: Optional[int] = None
    error_list: Optional[List[Any]] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v)


class StagedProduct(BaseModel):
    """A candidate the supplier accepted for staging."""
    product_id: str
    id_on_site: Optional[str] = None
    site_name: Optional[str] = None
    title: str


class PromotedDraft(BaseModel):
    draft_id: str
    product_id: str
    id_on_site: Optional[str] = None
    title: str


class VerifiedProduct(BaseModel):
    supplier_product_id: str
    marketplace_product_id: str
    title: str
    item_id_on_site: Optional[str] = None
