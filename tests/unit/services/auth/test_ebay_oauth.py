# tests/unit/services/auth/test_ebay_oauth.py
import asyncio
import json
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from dropsync.core.exceptions import AuthError, ChannelAPIError, TransientAPIError
from dropsync.schemas.tokens import TokenGrant
from dropsync.services.auth.oauth import EbayOAuthStrategy
from dropsync.services.auth.token_manager import TokenManager
from tests.mocks.fakes import FakeTokenStore, token_record


def mock_token_endpoint(mocker, status_code=200, payload=None, text="", json_error=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    if json_error is not None:
        response.json.side_effect = json_error
    response.text = text

    client = MagicMock()
    client.post = AsyncMock(return_value=response)
    client_cm = MagicMock()
    client_cm.__aenter__ = AsyncMock(return_value=client)
    client_cm.__aexit__ = AsyncMock(return_value=False)
    mocker.patch('dropsync.services.auth.oauth.httpx.AsyncClient', return_value=client_cm)
    return client


"""
1. Consent URL and token endpoint
"""

def test_authorization_url_carries_state(settings, pending_store):
    strategy = EbayOAuthStrategy(pending_store, settings)

    url = strategy.authorization_url("state-123")
    params = parse_qs(urlparse(url).query)

    assert url.startswith("https://auth.ebay.com/oauth2/authorize")
    assert params["client_id"] == ["test-client-id"]
    assert params["redirect_uri"] == ["test-ru-name"]
    assert params["response_type"] == ["code"]
    assert params["state"] == ["state-123"]
    assert "sell.inventory" in params["scope"][0]


def test_authorization_url_requires_credentials(settings, pending_store):
    settings.EBAY_CLIENT_ID = ""
    strategy = EbayOAuthStrategy(pending_store, settings)

    with pytest.raises(AuthError):
        strategy.authorization_url("state-123")


@pytest.mark.asyncio
async def test_exchange_code_posts_authorization_code_grant(mocker, settings, pending_store):
    client = mock_token_endpoint(mocker, payload={
        "access_token": "ebay-access",
        "expires_in": 7200,
        "refresh_token": "ebay-refresh",
        "token_type": "User Access Token",
    })
    strategy = EbayOAuthStrategy(pending_store, settings)

    grant = await strategy.exchange_code("auth-code")

    assert grant.access_token == "ebay-access"
    assert grant.refresh_token == "ebay-refresh"
    data = client.post.call_args.kwargs["data"]
    assert data["grant_type"] == "authorization_code"
    assert data["code"] == "auth-code"
    assert data["redirect_uri"] == "test-ru-name"
    assert isinstance(client.post.call_args.kwargs["auth"], httpx.BasicAuth)


@pytest.mark.asyncio
async def test_refresh_rejection_raises_channel_error(mocker, settings, pending_store):
    mock_token_endpoint(mocker, status_code=400, text='{"error": "invalid_grant"}')
    strategy = EbayOAuthStrategy(pending_store, settings)

    with pytest.raises(ChannelAPIError) as exc_info:
        await strategy.refresh("stale-refresh")

    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_token_endpoint_outage_is_transient(mocker, settings, pending_store):
    mock_token_endpoint(mocker, status_code=503, text="unavailable")
    strategy = EbayOAuthStrategy(pending_store, settings)

    with pytest.raises(TransientAPIError):
        await strategy.refresh("refresh")


@pytest.mark.asyncio
async def test_non_json_token_response_raises_channel_error(mocker, settings, pending_store):
    mock_token_endpoint(mocker, text="<html>maintenance</html>",
                        json_error=json.JSONDecodeError("Expecting value", "<html>", 0))
    strategy = EbayOAuthStrategy(pending_store, settings)

    with pytest.raises(ChannelAPIError) as exc_info:
        await strategy.exchange_code("auth-code")

    assert exc_info.value.status_code == 200


@pytest.mark.asyncio
async def test_token_response_without_access_token_raises_channel_error(mocker, settings, pending_store):
    mock_token_endpoint(mocker, payload={"error": "temporarily_unavailable"})
    strategy = EbayOAuthStrategy(pending_store, settings)

    with pytest.raises(ChannelAPIError):
        await strategy.refresh("refresh")


@pytest.mark.asyncio
async def test_unreadable_refresh_response_falls_back_to_authorization(mocker, settings, pending_store):
    # Arrange
    mock_token_endpoint(mocker, payload={"error": "temporarily_unavailable"})
    strategy = EbayOAuthStrategy(pending_store, settings)
    mocker.patch.object(strategy, "authorize", AsyncMock(
        return_value=TokenGrant(access_token="reauthorized", expires_in=7200, refresh_token="fresh-refresh")
    ))
    store = FakeTokenStore([token_record("stale", minutes_left=-1, refresh_token="r", service="CHANNEL")])
    manager = TokenManager("CHANNEL", strategy, store, settings)

    # Act
    token = await manager.get_valid_token()

    # Assert
    assert token == "reauthorized"
    assert manager.flows_started == 1
    assert store.records[-1].access_token == "reauthorized"


@pytest.mark.asyncio
async def test_unreadable_code_exchange_rejects_waiters(mocker, settings, pending_store):
    mock_token_endpoint(mocker, payload={"token_type": "User Access Token"})
    strategy = EbayOAuthStrategy(pending_store, settings)

    async def wait_for_code(manager, state):
        await manager.wait_for_authorization()

    mocker.patch.object(strategy, "authorize", new=wait_for_code)
    manager = TokenManager("CHANNEL", strategy, FakeTokenStore(), settings)

    waiter = asyncio.create_task(manager.get_valid_token())
    for _ in range(100):
        if manager.authorizing:
            break
        await asyncio.sleep(0.01)

    with pytest.raises(ChannelAPIError):
        await manager.exchange_authorization_code("auth-code")

    with pytest.raises(AuthError):
        await asyncio.wait_for(waiter, timeout=1)
    assert manager.status()["has_token"] is False


"""
2. Polling the pending authorization table
"""

@pytest.mark.asyncio
async def test_poll_pending_claims_code_for_its_state(settings, pending_store):
    # Arrange
    await pending_store.add("CHANNEL", "other-code", "other-state")
    await pending_store.add("CHANNEL", "our-code", "our-state")
    strategy = EbayOAuthStrategy(pending_store, settings)
    manager = MagicMock()
    manager.exchange_authorization_code = AsyncMock(return_value="ebay-access")

    # Act
    await asyncio.wait_for(strategy.poll_pending(manager, "our-state"), timeout=1)

    # Assert
    manager.exchange_authorization_code.assert_awaited_once_with("our-code")
    assert await pending_store.claim_next("CHANNEL", "our-state") is None
    assert (await pending_store.claim_next("CHANNEL", "other-state")).authorization_code == "other-code"


@pytest.mark.asyncio
async def test_full_flow_completes_from_stored_code(mocker, settings, pending_store):
    """The redirect handler stores a code; the waiting flow claims and exchanges it"""
    strategy = EbayOAuthStrategy(pending_store, settings)
    mocker.patch.object(strategy, "exchange_code", AsyncMock(
        return_value=TokenGrant(access_token="ebay-access", expires_in=7200, refresh_token="ebay-refresh")
    ))
    url_spy = mocker.spy(strategy, "authorization_url")
    manager = TokenManager("CHANNEL", strategy, FakeTokenStore(), settings)

    waiter = asyncio.create_task(manager.get_valid_token())
    for _ in range(100):
        if url_spy.call_count:
            break
        await asyncio.sleep(0.01)
    state = url_spy.call_args.args[0]

    await pending_store.add("CHANNEL", "redirect-code", state)
    token = await asyncio.wait_for(waiter, timeout=2)

    assert token == "ebay-access"
    strategy.exchange_code.assert_awaited_once_with("redirect-code")
    assert manager.flows_started == 1


@pytest.mark.asyncio
async def test_failed_browser_consent_falls_back_to_manual_url(mocker, settings, pending_store, caplog):
    settings.EBAY_USERNAME = "seller"
    settings.EBAY_PASSWORD = "password"
    strategy = EbayOAuthStrategy(pending_store, settings)
    mocker.patch.object(strategy, "complete_consent_in_browser", side_effect=AuthError("no sign-in button"))
    manager = MagicMock()
    manager.wait_for_authorization = AsyncMock(return_value=None)

    await strategy.authorize(manager, "state-xyz")

    assert "Open this URL to grant access" in caplog.text
    assert "state=state-xyz" in caplog.text
    manager.wait_for_authorization.assert_awaited_once()
