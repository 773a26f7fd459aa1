"""Title heuristics for correlating products across AutoDS and eBay.

AutoDS assigns new identifiers at each stage (marketplace product, draft,
store product) and eBay knows only the SKU of the final store product, so the
only thing that survives every hop is the title.

``titles_match`` is deliberately permissive: two titles match when either one,
lower-cased, contains the other. That catches the suffixes suppliers add
("Wireless Mouse" vs "Wireless Mouse - Black") at the cost of false positives
between similarly named products ("USB Cable" matches "USB Cable Organizer").
Dedupe, promotion and verification all rely on this recall; making it stricter
changes how many products each run imports and how many it re-imports.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Set, TypeVar

from dropsync.schemas.supplier import (
    PromotedDraft,
    StagedProduct,
    SupplierDraft,
    SupplierProduct,
    VerifiedProduct,
)

T = TypeVar("T")


def _normalize(title: Optional[str]) -> str:
    return (title or "").strip().lower()


def titles_match(left: Optional[str], right: Optional[str]) -> bool:
    """Case-insensitive containment in either direction. Blank titles never match."""
    a = _normalize(left)
    b = _normalize(right)
    if not a or not b:
        return False
    return a in b or b in a


def first_title_match(title: str, candidates: Iterable[T], key=lambda item: item.title) -> Optional[T]:
    for candidate in candidates:
        if titles_match(title, key(candidate)):
            return candidate
    return None


def match_drafts_to_staged(drafts: Sequence[SupplierDraft], staged: Sequence[StagedProduct]) -> List[PromotedDraft]:
    """
    Pair each draft with the first staged product whose title matches.

    Drafts that match nothing are ignored (the store may hold older drafts).
    A staged product is paired with at most one draft.
    """
    pairs: List[PromotedDraft] = []
    claimed: Set[str] = set()

    for draft in drafts:
        remaining = [product for product in staged if product.product_id not in claimed]
        product = first_title_match(draft.title, remaining)
        if product is None:
            continue
        claimed.add(product.product_id)
        pairs.append(PromotedDraft(
            draft_id=draft.id,
            product_id=product.product_id,
            id_on_site=product.id_on_site,
            title=draft.title,
        ))
    return pairs


def verify_promoted(catalog: Sequence[SupplierProduct], promoted: Sequence[PromotedDraft]) -> List[VerifiedProduct]:
    """
    Confirm each promoted draft now exists as a store product.

    The first catalog entry with a matching title wins; each catalog entry
    verifies at most one promoted draft.
    """
    verified: List[VerifiedProduct] = []
    used: Set[str] = set()

    for item in promoted:
        remaining = [product for product in catalog if product.id not in used]
        product = first_title_match(item.title, remaining)
        if product is None:
            continue
        used.add(product.id)
        verified.append(VerifiedProduct(
            supplier_product_id=product.id,
            marketplace_product_id=item.product_id,
            title=product.title,
            item_id_on_site=product.item_id_on_site or item.id_on_site,
        ))
    return verified
