# tests/unit/services/autods/test_autods_client.py
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from dropsync.core.exceptions import (
    NotFoundError,
    SupplierAPIError,
    TransientAPIError,
    UnauthorizedError,
)
from dropsync.services.autods.client import AutoDSClient


def make_response(status_code=200, payload=None, text=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {}
    response.text = text if text is not None else ("{}" if payload is None else "payload")
    return response


@pytest.fixture
def http_client(mocker):
    """Patch httpx.AsyncClient; returns the client the code under test talks to"""
    client = MagicMock()
    client.request = AsyncMock()
    client_cm = MagicMock()
    client_cm.__aenter__ = AsyncMock(return_value=client)
    client_cm.__aexit__ = AsyncMock(return_value=False)
    mocker.patch('dropsync.services.http.httpx.AsyncClient', return_value=client_cm)
    return client


@pytest.fixture
def token_manager():
    manager = MagicMock()
    manager.get_valid_token = AsyncMock(side_effect=["token-1", "token-2", "token-3"])
    manager.invalidate = MagicMock()
    return manager


"""
1. Token handling
"""

@pytest.mark.asyncio
async def test_401_retries_once_with_fresh_token(http_client, token_manager, settings):
    # Arrange
    http_client.request.side_effect = [
        make_response(401, text="expired"),
        make_response(200, payload={"results": []}),
    ]
    client = AutoDSClient(token_manager, settings)

    # Act
    products = await client.list_products()

    # Assert
    assert products == []
    token_manager.invalidate.assert_called_once_with("token-1")
    assert http_client.request.call_count == 2
    retry_headers = http_client.request.call_args_list[1].kwargs["headers"]
    assert retry_headers["Authorization"] == "Bearer token-2"


@pytest.mark.asyncio
async def test_second_401_raises_unauthorized(http_client, token_manager, settings):
    http_client.request.side_effect = [make_response(401, text="no"), make_response(401, text="still no")]
    client = AutoDSClient(token_manager, settings)

    with pytest.raises(UnauthorizedError):
        await client.list_drafts()

    assert http_client.request.call_count == 2
    token_manager.invalidate.assert_called_once_with("token-1")


"""
2. Error mapping
"""

@pytest.mark.asyncio
@pytest.mark.parametrize("status_code, error", [
    (404, NotFoundError),
    (400, SupplierAPIError),
    (502, TransientAPIError),
])
async def test_status_codes_map_to_errors(http_client, token_manager, settings, status_code, error):
    http_client.request.return_value = make_response(status_code, text="failure")
    client = AutoDSClient(token_manager, settings)

    with pytest.raises(error):
        await client.promote_draft("d-1")


@pytest.mark.asyncio
async def test_network_error_is_transient(http_client, token_manager, settings):
    http_client.request.side_effect = httpx.ConnectError("connection refused")
    client = AutoDSClient(token_manager, settings)

    with pytest.raises(TransientAPIError):
        await client.list_store_products()


"""
3. Endpoints
"""

@pytest.mark.asyncio
async def test_list_products_parses_marketplace_results(http_client, token_manager, settings):
    settings.SUPPLIER_FILTER = "amazon"
    http_client.request.return_value = make_response(payload={"results": [
        {"_id": 101, "title": "Desk Lamp", "site_name": "amazon", "id_on_site": "B0001",
         "variation_statistics": {"in_stock": {"total": 3}}},
    ]})
    client = AutoDSClient(token_manager, settings)

    products = await client.list_products(filters=client.supplier_filters(), limit=50)

    assert products[0].id == "101"
    assert products[0].in_stock_units() == 3
    method, url = http_client.request.call_args.args
    body = http_client.request.call_args.kwargs["json"]
    assert method == "POST"
    assert url == "https://gw.autods.com/marketplace/api/products/"
    assert body["limit"] == 50
    assert body["filters"][0]["name"] == "site_name"
    assert body["filters"][0]["value"] == "amazon"


@pytest.mark.asyncio
async def test_list_store_products_follows_pages(http_client, token_manager, settings):
    first_page = [{"id": i, "title": f"Product {i}"} for i in range(2)]
    second_page = [{"id": 2, "title": "Product 2"}]
    http_client.request.side_effect = [
        make_response(payload={"results": first_page}),
        make_response(payload={"results": second_page}),
    ]
    token_manager.get_valid_token = AsyncMock(return_value="token-1")
    client = AutoDSClient(token_manager, settings)

    products = await client.list_store_products(page_size=2)

    assert [product.id for product in products] == ["0", "1", "2"]
    offsets = [call.kwargs["json"]["offset"] for call in http_client.request.call_args_list]
    assert offsets == [0, 2]
    assert http_client.request.call_args.kwargs["json"]["product_status"] == 2


@pytest.mark.asyncio
async def test_stage_private_supplier_product(http_client, token_manager, settings):
    from dropsync.schemas.supplier import SupplierProduct

    http_client.request.return_value = make_response(text="")
    client = AutoDSClient(token_manager, settings)
    product = SupplierProduct(id="abc", title="Mug", site_name="private_suppliers", id_on_site="X1")

    await client.stage_draft(product)

    method, url = http_client.request.call_args.args
    body = http_client.request.call_args.kwargs["json"]
    assert url.endswith("/products/single_draft_product/store-1/")
    assert body["buy_site_id"] == 27
    assert body["new_products"] == [{"asin": "abc"}]


@pytest.mark.asyncio
async def test_bulk_delete_removes_from_marketplace(http_client, token_manager, settings):
    http_client.request.return_value = make_response(text="")
    client = AutoDSClient(token_manager, settings)

    await client.bulk_delete(["s-1", "s-2"])

    method, url = http_client.request.call_args.args
    body = http_client.request.call_args.kwargs["json"]
    assert method == "DELETE"
    assert url.endswith("/products/store-1/bulk")
    assert body["remove_from_marketplace"] is True
    assert body["filters"][0]["value_list"] == ["s-1", "s-2"]
