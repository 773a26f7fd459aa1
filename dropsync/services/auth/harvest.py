# dropsync/services/auth/harvest.py
"""
AutoDS has no public token endpoint; the API bearer is only visible on the
requests its own web app makes after login. This strategy logs in with
Selenium and reads that header out of the Chrome performance log.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Optional

from jose import JWTError, jwt
from selenium.common.exceptions import TimeoutException, WebDriverException

from dropsync.core.config import Settings, get_settings
from dropsync.core.exceptions import AuthError
from dropsync.schemas.tokens import TokenGrant
from dropsync.services.auth import browser
from dropsync.services.auth.strategy import AuthStrategy

logger = logging.getLogger(__name__)

EMAIL_SELECTORS = ("input[name='email']", "input[type='email']", "input#email")
PASSWORD_SELECTORS = ("input[name='password']", "input[type='password']")
SUBMIT_SELECTORS = ("button[type='submit']", "button[data-testid='login-button']")


def jwt_expiry(token: str) -> Optional[datetime]:
    """``exp`` claim of a JWT, without verifying it. None when unreadable."""
    try:
        claims = jwt.get_unverified_claims(token)
        return datetime.fromtimestamp(int(claims['exp']), tz=timezone.utc)
    except (JWTError, KeyError, TypeError, ValueError, OverflowError, OSError):
        return None


class CredentialHarvestStrategy(AuthStrategy):

    supports_refresh = False

    def __init__(self, settings: Optional[Settings] = None, driver_factory=None):
        self.settings = settings or get_settings()
        self.driver_factory = driver_factory or browser.create_driver
        self.flow_timeout = self.settings.BROWSER_CAPTURE_TIMEOUT_SECONDS

    async def authorize(self, manager, state: str) -> TokenGrant:
        if not self.settings.AUTODS_USERNAME or not self.settings.AUTODS_PASSWORD:
            raise AuthError("AUTODS_USERNAME and AUTODS_PASSWORD must be set to log in to AutoDS")

        loop = asyncio.get_running_loop()
        token = await loop.run_in_executor(None, self.capture_bearer)
        return self.grant_for(token)

    def grant_for(self, token: str) -> TokenGrant:
        expires_at = jwt_expiry(token)
        if expires_at is not None:
            expires_in = int((expires_at - datetime.now(timezone.utc)).total_seconds())
        else:
            expires_in = self.settings.AUTODS_TOKEN_TTL_SECONDS
        return TokenGrant(access_token=token, expires_in=expires_in, token_type="Bearer")

    def capture_bearer(self) -> str:
        """
        Log in and wait for the first bearer-authenticated API request.

        Runs in a worker thread. Gives up shortly before the flow timeout so the
        browser is always closed by this thread.
        """
        deadline = time.monotonic() + max(self.flow_timeout - 5, 5)
        driver = None
        try:
            driver = self.driver_factory(headless=self.settings.HEADLESS_BROWSER, capture_network=True)
            logger.info("Logging in to AutoDS to capture API token")
            driver.get(self.settings.AUTODS_LOGIN_URL)

            self._fill_first(driver, EMAIL_SELECTORS, self.settings.AUTODS_USERNAME)
            self._fill_first(driver, PASSWORD_SELECTORS, self.settings.AUTODS_PASSWORD)
            if not browser.click_first(driver, SUBMIT_SELECTORS):
                raise AuthError("AutoDS login button not found")

            while time.monotonic() < deadline:
                token = browser.extract_bearer(driver.get_log('performance'), self.settings.AUTODS_API_HOST)
                if token:
                    logger.info("Captured AutoDS bearer token")
                    return token
                time.sleep(1)

            raise AuthError(f"No bearer token sent to {self.settings.AUTODS_API_HOST} after login")
        except WebDriverException as e:
            raise AuthError(f"Browser automation failed during AutoDS login: {e}") from e
        finally:
            browser.close_quietly(driver)

    @staticmethod
    def _fill_first(driver, selectors, value: str) -> None:
        for selector in selectors:
            try:
                field = browser.wait_for(driver, selector, timeout=10)
            except TimeoutException:
                continue
            field.clear()
            field.send_keys(value)
            return
        raise AuthError(f"Login field not found (tried {', '.join(selectors)})")
