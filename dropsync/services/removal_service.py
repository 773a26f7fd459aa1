# dropsync/services/removal_service.py
"""
Ends eBay listings that should no longer be live.

``run_removal`` walks every eBay listing and ends the ones whose AutoDS store
product is out of stock. ``run_scheduled_removal`` targets the most recently
imported listings directly and bulk-deletes their AutoDS products, which also
removes them from eBay.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from dropsync.core.config import Settings, get_settings
from dropsync.core.enums import EndReason, JobStatus, JobType
from dropsync.core.exceptions import AuthError, PersistenceError
from dropsync.models import Listing
from dropsync.schemas.channel import ChannelListing

logger = logging.getLogger(__name__)


def chunked(items: Sequence, size: int) -> List[Sequence]:
    size = max(size, 1)
    return [items[start:start + size] for start in range(0, len(items), size)]


class RemovalService:

    def __init__(self, supplier, channel, listing_store, job_store=None, settings: Optional[Settings] = None):
        self.supplier = supplier
        self.channel = channel
        self.listing_store = listing_store
        self.job_store = job_store
        self.settings = settings or get_settings()
        self.last_run: Optional[datetime] = None

    async def run_removal(self) -> Dict[str, int]:
        """
        End eBay listings whose AutoDS product has no stock left.

        Listings are processed in batches with a pause between batches and
        between items. A failing item is logged and skipped.

        Returns:
            Counts of checked, ended, orphaned and failed listings
        """
        summary = {"checked": 0, "ended": 0, "orphaned": 0, "failed": 0}
        logger.info("Starting stock-based removal run")

        try:
            channel_listings = await self.channel.list_active_listings()
            catalog = await self.supplier.list_store_products()
            stock = {product.id: product.in_stock_units() for product in catalog}
            logger.info(f"Checking {len(channel_listings)} eBay listings against {len(stock)} AutoDS products")

            batches = chunked(channel_listings, self.settings.REMOVAL_BATCH_SIZE)
            for index, batch in enumerate(batches):
                if index:
                    await asyncio.sleep(self.settings.REMOVAL_BATCH_DELAY_SECONDS)
                logger.info(f"Processing removal batch {index + 1} of {len(batches)} ({len(batch)} listings)")

                for listing in batch:
                    summary["checked"] += 1
                    try:
                        outcome = await self._reconcile(listing, stock)
                    except AuthError:
                        raise
                    except Exception as e:
                        summary["failed"] += 1
                        logger.error(f"Error processing listing {listing.sku} ({listing.title}): {e}")
                    else:
                        if outcome in summary:
                            summary[outcome] += 1
                    await asyncio.sleep(self.settings.REMOVAL_ITEM_DELAY_SECONDS)
        except Exception as e:
            await self._record(JobType.REMOVAL, JobStatus.FAILED, str(e))
            raise

        logger.info(f"Removal run complete: {summary}")
        await self._record(JobType.REMOVAL, JobStatus.SUCCESS, str(summary))
        return summary

    async def _reconcile(self, listing: ChannelListing, stock: Dict[str, Optional[int]]) -> Optional[str]:
        sku = listing.sku
        if not sku:
            logger.warning(f"eBay listing without SKU, skipping: {listing.title}")
            return None

        if sku not in stock:
            if self.settings.REMOVAL_END_NOT_FOUND:
                await self._end(listing, EndReason.NOT_FOUND)
            else:
                logger.info(f"Listing {sku} has no AutoDS product, leaving it live")
            return "orphaned"

        units = stock[sku]
        if units is None or units > 0:
            return None

        await self._end(listing, EndReason.OUT_OF_STOCK)
        return "ended"

    async def _end(self, listing: ChannelListing, reason: EndReason) -> None:
        await self.channel.end_listing(listing.sku)

        row = await self.listing_store.find_by_sku(listing.sku)
        if row is None:
            logger.warning(f"Ended eBay listing {listing.sku} has no listing record")
            return
        await self.listing_store.end_listing(row.id, reason)
        logger.info(f"Ended listing {listing.sku} ({listing.title}): {reason.value}")

    async def run_scheduled_removal(self, count: Optional[int] = None) -> Dict[str, int]:
        """
        Remove the ``count`` most recently listed products.

        Each listing is matched to its AutoDS store product by id or by
        item_id_on_site; matched products are deleted in bulk (which ends the
        eBay listing too) and their rows marked scheduled_removal.
        """
        count = count if count is not None else self.settings.REMOVAL_COUNT
        summary = {"targeted": 0, "matched": 0, "ended": 0, "failed": 0}
        logger.info(f"Starting scheduled removal of the last {count} listings")

        try:
            recent = await self.listing_store.find(active=True, limit=count, newest_first=True)
            summary["targeted"] = len(recent)
            if not recent:
                logger.info("No listings found to remove")
                await self._record(JobType.SCHEDULED_REMOVAL, JobStatus.SKIPPED, "No listings to remove")
                return summary

            catalog = await self.supplier.list_store_products()
            matched = self.match_listings(recent, catalog)
            summary["matched"] = len(matched)

            batches = chunked(matched, self.settings.REMOVAL_BATCH_SIZE)
            for index, batch in enumerate(batches):
                if index:
                    await asyncio.sleep(self.settings.REMOVAL_BATCH_DELAY_SECONDS)
                product_ids = list(dict.fromkeys(product_id for _, product_id in batch))
                logger.info(f"Removing {len(product_ids)} products from AutoDS and eBay: {', '.join(product_ids)}")
                try:
                    await self.supplier.bulk_delete(product_ids, remove_from_marketplace=True)
                except AuthError:
                    raise
                except Exception as e:
                    summary["failed"] += len(batch)
                    logger.error(f"Bulk removal of {product_ids} failed: {e}")
                    continue

                try:
                    summary["ended"] += await self.listing_store.end_many(
                        [listing.id for listing, _ in batch], EndReason.SCHEDULED_REMOVAL
                    )
                except PersistenceError as e:
                    logger.error(f"Products {product_ids} removed but listing rows not updated: {e}")
        except Exception as e:
            await self._record(JobType.SCHEDULED_REMOVAL, JobStatus.FAILED, str(e))
            raise

        logger.info(f"Scheduled removal complete: {summary}")
        await self._record(JobType.SCHEDULED_REMOVAL, JobStatus.SUCCESS, str(summary))
        return summary

    @staticmethod
    def match_listings(listings: Sequence[Listing], catalog) -> List[Tuple[Listing, str]]:
        by_id = {product.id: product for product in catalog}
        by_item_id = {product.item_id_on_site: product for product in catalog if product.item_id_on_site}

        matched: List[Tuple[Listing, str]] = []
        for listing in listings:
            product = by_id.get(listing.supplier_product_id)
            if product is None and listing.item_id_on_site:
                product = by_item_id.get(listing.item_id_on_site)
            if product is None:
                logger.info(f"No AutoDS product found for listing {listing.sku} ({listing.title})")
                continue
            matched.append((listing, product.id))
        return matched

    async def _record(self, job_type: JobType, status: JobStatus, message: str) -> None:
        self.last_run = datetime.now(timezone.utc)
        if self.job_store is None:
            return
        try:
            await self.job_store.record_run(job_type, status, message)
        except PersistenceError as e:
            logger.error(f"Could not record {job_type.value} run: {e}")
