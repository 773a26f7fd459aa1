# dropsync/services/auth/oauth.py
"""
eBay OAuth (authorization code grant).

eBay redirects the consent result to the RuName's accept URL, which points at
the public ``/ebay/callback/store`` route. That route may run in a different
process than the one waiting for the token, so it only records the code; the
waiting process polls the pending authorization table for a code carrying its
``state`` and exchanges it.
"""

import asyncio
import logging
from typing import List, Optional
from urllib.parse import urlencode

import httpx
from selenium.common.exceptions import WebDriverException

from dropsync.core.config import Settings, get_settings
from dropsync.core.exceptions import AuthError, ChannelAPIError, PersistenceError, TransientAPIError
from dropsync.schemas.tokens import TokenGrant
from dropsync.services.auth import browser
from dropsync.services.auth.strategy import AuthStrategy

logger = logging.getLogger(__name__)


class EbayOAuthStrategy(AuthStrategy):

    supports_refresh = True

    def __init__(self, pending_store, settings: Optional[Settings] = None, driver_factory=None,
                 service: str = "CHANNEL"):
        self.settings = settings or get_settings()
        self.pending_store = pending_store
        self.driver_factory = driver_factory or browser.create_driver
        self.service = service

        self.client_id = self.settings.EBAY_CLIENT_ID
        self.client_secret = self.settings.EBAY_CLIENT_SECRET
        self.ru_name = self.settings.EBAY_RU_NAME
        self.auth_url = self.settings.EBAY_AUTH_URL
        self.token_url = self.settings.EBAY_TOKEN_URL
        self.scopes: List[str] = self.settings.ebay_scopes

        self.flow_timeout = self.settings.AUTH_FLOW_TIMEOUT_SECONDS
        self.poll_interval = self.settings.AUTH_POLL_INTERVAL_SECONDS

    def _require_credentials(self):
        if not self.client_id or not self.client_secret or not self.ru_name:
            raise AuthError("EBAY_CLIENT_ID, EBAY_CLIENT_SECRET and EBAY_RU_NAME must be set")

    def authorization_url(self, state: str) -> str:
        """Generate the consent URL for user authorization"""
        self._require_credentials()
        auth_params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": self.ru_name,
            "scope": " ".join(self.scopes),
            "state": state,
        }
        return f"{self.auth_url}?{urlencode(auth_params)}"

    # -- token endpoint ---------------------------------------------------

    async def _post_token(self, data: dict) -> TokenGrant:
        self._require_credentials()
        auth = httpx.BasicAuth(self.client_id, self.client_secret)
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.token_url,
                    data=data,
                    auth=auth,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
        except httpx.RequestError as e:
            logger.error(f"Network error calling eBay token endpoint: {str(e)}")
            raise TransientAPIError(f"Network error calling eBay token endpoint: {str(e)}")

        if response.status_code == 200:
            try:
                return TokenGrant(**response.json())
            except (ValueError, TypeError) as e:
                logger.error(f"Unreadable eBay token response ({data.get('grant_type')}): {response.text}")
                raise ChannelAPIError(f"Unreadable eBay token response: {e}", response.status_code) from e

        error_text = response.text
        logger.error(f"eBay token request ({data.get('grant_type')}) failed: {response.status_code} {error_text}")
        if response.status_code >= 500:
            raise TransientAPIError(f"eBay token endpoint error: {error_text}", response.status_code)
        raise ChannelAPIError(f"eBay token request failed: {error_text}", response.status_code)

    async def refresh(self, refresh_token: str) -> TokenGrant:
        return await self._post_token({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "scope": " ".join(self.scopes),
        })

    async def exchange_code(self, code: str) -> TokenGrant:
        return await self._post_token({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.ru_name,
        })

    # -- consent flow -----------------------------------------------------

    async def authorize(self, manager, state: str) -> None:
        url = self.authorization_url(state)
        try:
            purged = await self.pending_store.purge_expired()
        except PersistenceError as e:
            logger.error(f"Could not purge expired eBay authorization codes: {e}")
        else:
            if purged:
                logger.info(f"Purged {purged} expired eBay authorization codes")

        poller = asyncio.create_task(self.poll_pending(manager, state))
        try:
            if self.settings.EBAY_USERNAME and self.settings.EBAY_PASSWORD:
                loop = asyncio.get_running_loop()
                try:
                    await loop.run_in_executor(None, self.complete_consent_in_browser, url)
                except (AuthError, WebDriverException) as e:
                    logger.error(f"Automated eBay consent failed: {e}")
                    self._surface_manual_url(url)
            else:
                self._surface_manual_url(url)

            await manager.wait_for_authorization()
        finally:
            poller.cancel()

    def _surface_manual_url(self, url: str) -> None:
        logger.warning(f"eBay authorization required. Open this URL to grant access: {url}")

    async def poll_pending(self, manager, state: str) -> None:
        """Claim and exchange the first stored code for this flow's state."""
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                pending = await self.pending_store.claim_next(self.service, state)
            except PersistenceError as e:
                logger.error(f"Polling for eBay authorization code failed: {e}")
                continue

            if pending is None:
                logger.debug("No eBay authorization code yet")
                continue

            logger.info(f"Claimed eBay authorization code {pending.id}, exchanging")
            try:
                await manager.exchange_authorization_code(pending.authorization_code)
            except (AuthError, ChannelAPIError, TransientAPIError) as e:
                # The manager has already rejected the waiters
                logger.error(f"Exchanging claimed eBay authorization code failed: {e}")
            return

    def complete_consent_in_browser(self, url: str) -> None:
        """
        Sign in on eBay's consent page and accept. The redirect that follows
        delivers the code to the callback route; nothing is read back here.
        """
        settings = self.settings
        driver = None
        try:
            driver = self.driver_factory(headless=settings.HEADLESS_BROWSER)
            logger.info("Opening eBay consent page in browser")
            driver.get(url)

            user_field = browser.wait_for(driver, "input#userid", timeout=30)
            user_field.send_keys(settings.EBAY_USERNAME)
            if not browser.click_first(driver, ["button#signin-continue-btn"]):
                raise AuthError("eBay 'continue' button not found")

            password_field = browser.wait_for(driver, "input#pass", timeout=30)
            password_field.send_keys(settings.EBAY_PASSWORD)
            if not browser.click_first(driver, ["button#sgnBt", "button[type='submit']"]):
                raise AuthError("eBay sign-in button not found")

            if browser.click_first(driver, ["button[name='agree']"], timeout=5):
                logger.info("Accepted eBay consent screen")
            else:
                logger.info("No agree button found, consent already granted")
        finally:
            browser.close_quietly(driver)
