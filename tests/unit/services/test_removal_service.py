# tests/unit/services/test_removal_service.py
import pytest

from dropsync.core.exceptions import AuthError
from dropsync.schemas.channel import ChannelListing
from dropsync.schemas.supplier import SupplierProduct
from dropsync.services.removal_service import RemovalService, chunked
from tests.mocks.fakes import FakeChannel, FakeSupplier


def store_product(product_id, in_stock=None, item_id_on_site=None):
    stats = None if in_stock is None else {"in_stock": {"total": in_stock}}
    return SupplierProduct(
        id=product_id,
        title=f"Product {product_id}",
        item_id_on_site=item_id_on_site,
        variation_statistics=stats,
    )


async def seed(listing_store, sku, item_id_on_site=None):
    return await listing_store.create(
        supplier_product_id=sku,
        marketplace_product_id=f"m-{sku}",
        item_id_on_site=item_id_on_site,
        channel_listing_id=f"pending_{sku}",
        sku=sku,
        title=f"Product {sku}",
    )


def test_chunked():
    assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert chunked([], 3) == []
    assert chunked([1, 2], 0) == [[1], [2]]


"""
1. Stock-based removal
"""

@pytest.mark.asyncio
async def test_only_out_of_stock_listings_are_ended(settings, listing_store, job_store):
    # Arrange
    for sku in ("s-1", "s-2", "s-3"):
        await seed(listing_store, sku)
    supplier = FakeSupplier([], store_products=[
        store_product("s-1", in_stock=0),
        store_product("s-2", in_stock=5),
        store_product("s-3"),
    ])
    channel = FakeChannel([ChannelListing(sku=sku, title=f"Product {sku}") for sku in ("s-1", "s-2", "s-3")])
    service = RemovalService(supplier, channel, listing_store, job_store, settings)

    # Act
    summary = await service.run_removal()

    # Assert
    assert summary == {"checked": 3, "ended": 1, "orphaned": 0, "failed": 0}
    assert channel.ended == ["s-1"]
    ended = await listing_store.find_by_sku("s-1", active_only=False)
    assert ended.active is False
    assert ended.end_reason == "out_of_stock"
    assert (await listing_store.find_by_sku("s-2")).active is True
    assert (await job_store.last_runs())["removal"]["status"] == "SUCCESS"


@pytest.mark.asyncio
async def test_listing_without_supplier_product_is_left_live_by_default(settings, listing_store):
    channel = FakeChannel([ChannelListing(sku="s-9", title="Gone")])
    service = RemovalService(FakeSupplier([]), channel, listing_store, settings=settings)

    summary = await service.run_removal()

    assert summary["orphaned"] == 1
    assert channel.ended == []


@pytest.mark.asyncio
async def test_listing_without_supplier_product_can_be_ended(settings, listing_store):
    settings.REMOVAL_END_NOT_FOUND = True
    await seed(listing_store, "s-9")
    channel = FakeChannel([ChannelListing(sku="s-9", title="Gone")])
    service = RemovalService(FakeSupplier([]), channel, listing_store, settings=settings)

    await service.run_removal()

    assert channel.ended == ["s-9"]
    assert (await listing_store.find_by_sku("s-9", active_only=False)).end_reason == "not_found"


@pytest.mark.asyncio
async def test_one_failing_listing_does_not_stop_the_batch(settings, listing_store):
    settings.REMOVAL_BATCH_SIZE = 2
    skus = [f"s-{index}" for index in range(1, 6)]
    for sku in skus:
        await seed(listing_store, sku)
    supplier = FakeSupplier([], store_products=[store_product(sku, in_stock=0) for sku in skus])
    channel = FakeChannel([ChannelListing(sku=sku) for sku in skus], fail_end={"s-3"})
    service = RemovalService(supplier, channel, listing_store, settings=settings)

    summary = await service.run_removal()

    assert summary == {"checked": 5, "ended": 4, "orphaned": 0, "failed": 1}
    assert channel.ended == ["s-1", "s-2", "s-4", "s-5"]
    assert (await listing_store.find_by_sku("s-3")).active is True


@pytest.mark.asyncio
async def test_auth_error_aborts_removal(settings, listing_store, job_store):
    class RejectingChannel(FakeChannel):
        async def end_listing(self, sku):
            raise AuthError("eBay authorization timed out")

    supplier = FakeSupplier([], store_products=[store_product("s-1", in_stock=0)])
    service = RemovalService(supplier, RejectingChannel([ChannelListing(sku="s-1")]), listing_store, job_store, settings)

    with pytest.raises(AuthError):
        await service.run_removal()

    assert (await job_store.last_runs())["removal"]["status"] == "FAILED"


"""
2. Scheduled removal
"""

@pytest.mark.asyncio
async def test_scheduled_removal_targets_newest_listings(settings, listing_store, job_store):
    # Arrange
    for index in range(1, 6):
        await seed(listing_store, f"s-{index}", item_id_on_site=f"ASIN-{index}")
    supplier = FakeSupplier([], store_products=[
        store_product("s-5"),
        # Re-imported under a new id; found through item_id_on_site
        store_product("s-4b", item_id_on_site="ASIN-4"),
        store_product("s-1"),
    ])
    service = RemovalService(supplier, FakeChannel(), listing_store, job_store, settings)

    # Act
    summary = await service.run_scheduled_removal(count=3)

    # Assert
    assert summary == {"targeted": 3, "matched": 2, "ended": 2, "failed": 0}
    assert supplier.deleted == [["s-5", "s-4b"]]
    assert (await listing_store.find_by_sku("s-5", active_only=False)).end_reason == "scheduled_removal"
    assert (await listing_store.find_by_sku("s-3")).active is True
    assert (await listing_store.find_by_sku("s-1")).active is True
    assert (await job_store.last_runs())["scheduled_removal"]["status"] == "SUCCESS"


@pytest.mark.asyncio
async def test_failed_bulk_delete_keeps_rows_active(settings, listing_store):
    await seed(listing_store, "s-1")
    supplier = FakeSupplier([], store_products=[store_product("s-1")])
    supplier.fail_delete = True
    service = RemovalService(supplier, FakeChannel(), listing_store, settings=settings)

    summary = await service.run_scheduled_removal(count=5)

    assert summary["failed"] == 1
    assert summary["ended"] == 0
    assert (await listing_store.find_by_sku("s-1")).active is True


@pytest.mark.asyncio
async def test_scheduled_removal_with_nothing_listed(settings, listing_store, job_store):
    supplier = FakeSupplier([])
    service = RemovalService(supplier, FakeChannel(), listing_store, job_store, settings)

    summary = await service.run_scheduled_removal()

    assert summary["targeted"] == 0
    assert supplier.deleted == []
    assert (await job_store.last_runs())["scheduled_removal"]["status"] == "SKIPPED"
