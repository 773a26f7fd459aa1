# dropsync/services/listing_pipeline.py
"""
Imports AutoDS marketplace products into the store and onto eBay.

One pass runs SELECT, DEDUPE, STAGE, PROMOTE, VERIFY and PERSIST strictly in
order; the settle sleeps between STAGE/PROMOTE and PROMOTE/VERIFY wait for
AutoDS to finish work it does asynchronously. Staging and promotion lose
items now and then, so a short pass is followed by top-up passes for the
shortfall.
"""

import asyncio
import logging
import random
import time
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Set

from dropsync.core.config import Settings, get_settings
from dropsync.core.enums import JobStatus, JobType
from dropsync.core.exceptions import AuthError, PersistenceError
from dropsync.models import Listing
from dropsync.schemas.channel import ChannelListing
from dropsync.schemas.supplier import PromotedDraft, StagedProduct, SupplierProduct, VerifiedProduct
from dropsync.services.matching import match_drafts_to_staged, titles_match, verify_promoted

logger = logging.getLogger(__name__)


def is_stock_eligible(product: SupplierProduct, threshold: int) -> bool:
    """
    Products reporting zero in-stock units are never eligible. Products that
    report no variation statistics at all are let through.
    """
    units = product.in_stock_units()
    if units is None:
        return True
    return units > 0 and units >= threshold


def listed_on_channel(product: SupplierProduct, channel_listings: Sequence[ChannelListing]) -> bool:
    identifiers = set(product.identifiers)
    for listing in channel_listings:
        if listing.sku and listing.sku in identifiers:
            return True
        if titles_match(listing.title, product.title):
            return True
    return False


class ListingSyncPipeline:

    def __init__(self, supplier, channel, listing_store, job_store=None,
                 settings: Optional[Settings] = None, rng: Optional[random.Random] = None):
        self.supplier = supplier
        self.channel = channel
        self.listing_store = listing_store
        self.job_store = job_store
        self.settings = settings or get_settings()
        self.rng = rng or random.Random()
        self.last_run: Optional[datetime] = None

    async def run_listing(self) -> bool:
        """
        Import up to LISTING_TARGET_COUNT new products.

        Returns False when the first pass had nothing to do (no candidates, no
        staged drafts...), True once a pass reached verification. Errors that
        are not per-item propagate after the run is recorded.
        """
        target = self.settings.LISTING_TARGET_COUNT
        logger.info(f"Starting listing run, target {target} products")

        try:
            created = await self._listing_pass(target)
            if created is None:
                await self._record(JobStatus.SKIPPED, "Nothing to import")
                return False

            listed = len(created)
            attempt = 0
            while listed < target and attempt < self.settings.LISTING_MAX_TOP_UP_ATTEMPTS:
                attempt += 1
                shortfall = target - listed
                logger.info(
                    f"Listed {listed} of {target}, topping up {shortfall} "
                    f"(attempt {attempt} of {self.settings.LISTING_MAX_TOP_UP_ATTEMPTS})"
                )
                extra = await self._listing_pass(shortfall)
                if extra is None:
                    logger.info("Top-up found nothing further to import")
                    break
                listed += len(extra)

        except Exception as e:
            await self._record(JobStatus.FAILED, str(e))
            raise

        logger.info(f"Listing run complete: {listed} of {target} products listed")
        await self._record(JobStatus.SUCCESS, f"Listed {listed} of {target}")
        return True

    # -- stages -----------------------------------------------------------

    async def _listing_pass(self, count: int) -> Optional[List[Listing]]:
        """One SELECT..PERSIST pass. None means the pass short-circuited."""
        candidates = await self.select_candidates()
        if not candidates:
            logger.warning("No eligible products in the marketplace, ending pass")
            return None

        available = await self.dedupe(candidates)
        if not available:
            logger.warning("No new products available to import after dedupe, ending pass")
            return None

        selected = self.pick(available, count)
        logger.info(f"Selected {len(selected)} of {len(available)} available products")

        staged = await self.stage(selected)
        if not staged:
            logger.warning("No products were staged as drafts, ending pass")
            return None

        await self._settle(self.settings.STAGE_SETTLE_SECONDS, "drafts")

        drafts = await self.supplier.list_drafts()
        if not drafts:
            logger.warning("No drafts found in store, ending pass")
            return None

        promoted = await self.promote(drafts, staged)
        if not promoted:
            logger.warning("No drafts matched or promoted, nothing to verify")
            return []

        await self._settle(self.settings.PROMOTE_SETTLE_SECONDS, "products")

        verified = await self.verify(promoted)
        return await self.persist(verified)

    async def select_candidates(self) -> List[SupplierProduct]:
        products = await self.supplier.list_products(
            filters=self.supplier.supplier_filters(),
            limit=self.settings.CANDIDATE_PAGE_SIZE,
            offset=0,
        )
        threshold = self.settings.LISTING_STOCK_THRESHOLD
        eligible = [product for product in products if is_stock_eligible(product, threshold)]
        logger.info(f"Retrieved {len(products)} marketplace products, {len(eligible)} in stock")
        return eligible

    async def dedupe(self, candidates: Sequence[SupplierProduct]) -> List[SupplierProduct]:
        known_ids = await self.listing_store.active_supplier_ids()
        channel_listings = await self.channel.list_active_listings()
        logger.info(f"Deduping against {len(known_ids)} listed ids and {len(channel_listings)} eBay listings")

        return [
            product for product in candidates
            if not known_ids.intersection(product.identifiers)
            and not listed_on_channel(product, channel_listings)
        ]

    def pick(self, available: Sequence[SupplierProduct], count: int) -> List[SupplierProduct]:
        shuffled = list(available)
        self.rng.shuffle(shuffled)
        return shuffled[:count]

    async def stage(self, products: Sequence[SupplierProduct]) -> List[StagedProduct]:
        staged: List[StagedProduct] = []
        for product in products:
            try:
                await self.supplier.stage_draft(product)
            except AuthError:
                raise
            except Exception as e:
                logger.error(f"Error staging product {product.id} ({product.title}): {e}")
            else:
                logger.info(f"Staged product {product.id} - {product.title} as draft")
                staged.append(StagedProduct(
                    product_id=product.id,
                    id_on_site=product.id_on_site,
                    site_name=product.site_name,
                    title=product.title,
                ))
            await asyncio.sleep(self.settings.STAGE_ITEM_DELAY_SECONDS)
        return staged

    async def promote(self, drafts, staged: Sequence[StagedProduct]) -> List[PromotedDraft]:
        pairs = match_drafts_to_staged(drafts, staged)
        logger.info(f"Matched {len(pairs)} of {len(drafts)} drafts to {len(staged)} staged products")

        promoted: List[PromotedDraft] = []
        for pair in pairs:
            try:
                await self.supplier.promote_draft(pair.draft_id)
            except AuthError:
                raise
            except Exception as e:
                logger.error(f"Error promoting draft {pair.draft_id} ({pair.title}): {e}")
            else:
                logger.info(f"Promoted draft {pair.draft_id} - {pair.title}")
                promoted.append(pair)
            await asyncio.sleep(self.settings.STAGE_ITEM_DELAY_SECONDS)
        return promoted

    async def verify(self, promoted: Sequence[PromotedDraft]) -> List[VerifiedProduct]:
        catalog = await self.supplier.list_store_products()
        # Products we already track cannot be the new ones
        known_ids: Set[str] = await self.listing_store.active_supplier_ids()
        fresh = [product for product in catalog if product.id not in known_ids]

        verified = verify_promoted(fresh, promoted)
        logger.info(f"Verified {len(verified)} of {len(promoted)} promoted products in store")
        return verified

    async def persist(self, verified: Sequence[VerifiedProduct]) -> List[Listing]:
        created: List[Listing] = []
        for product in verified:
            if not product.supplier_product_id:
                logger.warning(f"Verified product without id, skipping: {product.title}")
                continue
            try:
                if await self.listing_store.find_active_by_supplier_id(product.supplier_product_id):
                    logger.info(f"Product {product.supplier_product_id} already listed, skipping")
                    continue

                listing = await self.listing_store.create(
                    supplier_product_id=product.supplier_product_id,
                    marketplace_product_id=product.marketplace_product_id,
                    item_id_on_site=product.item_id_on_site,
                    # Real eBay id is filled in once the listing goes live
                    channel_listing_id=f"pending_{int(time.time() * 1000)}_{product.supplier_product_id}",
                    sku=product.supplier_product_id,
                    title=product.title or "Unknown Product",
                    price=0,
                    cost=0,
                    stock=0,
                    active=True,
                )
            except PersistenceError as e:
                logger.error(f"Error saving product {product.supplier_product_id}: {e}")
                continue

            logger.info(f"Saved listing for {product.supplier_product_id} ({product.title})")
            created.append(listing)
        return created

    # -- helpers ----------------------------------------------------------

    async def _settle(self, seconds: float, what: str) -> None:
        if seconds > 0:
            logger.info(f"Waiting {seconds}s for AutoDS to process {what}...")
        await asyncio.sleep(seconds)

    async def _record(self, status: JobStatus, message: str) -> None:
        self.last_run = datetime.now(timezone.utc)
        if self.job_store is None:
            return
        try:
            await self.job_store.record_run(JobType.LISTING, status, message)
        except PersistenceError as e:
            logger.error(f"Could not record listing run: {e}")
