# dropsync/services/auth/browser.py
"""
Selenium helpers shared by the browser-driven auth strategies.

Everything here is blocking; callers run it in an executor.
"""

import json
import logging
from typing import Iterable, Optional
from urllib.parse import urlparse

from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait
from webdriver_manager.chrome import ChromeDriverManager

logger = logging.getLogger(__name__)


def create_driver(headless: bool = True, capture_network: bool = False):
    """
    Start Chrome. With ``capture_network`` the performance log is switched on
    and the CDP Network domain enabled before any page is loaded, so the very
    first requests of the session are visible.
    """
    options = webdriver.ChromeOptions()
    options.add_experimental_option('useAutomationExtension', False)
    options.add_experimental_option("excludeSwitches", ["enable-automation"])
    options.add_argument("--disable-blink-features=AutomationControlled")
    options.add_argument("--no-sandbox")
    options.add_argument("--disable-dev-shm-usage")
    options.add_argument("--window-size=1920,1080")
    if headless:
        options.add_argument("--headless=new")

    if capture_network:
        options.add_experimental_option('perfLoggingPrefs', {
            'enableNetwork': True,
            'enablePage': False
        })
        options.set_capability('goog:loggingPrefs', {'performance': 'ALL'})

    driver = webdriver.Chrome(
        service=Service(ChromeDriverManager().install()),
        options=options
    )

    if capture_network:
        driver.execute_cdp_cmd('Network.enable', {})
    return driver


def close_quietly(driver) -> None:
    """Quit the browser; a failure to quit is logged, never raised."""
    if driver is None:
        return
    try:
        logger.info("Closing Selenium browser...")
        driver.quit()
    except Exception as e:
        logger.error(f"Error closing Selenium browser: {e}")


def wait_for(driver, css_selector: str, timeout: float = 15, clickable: bool = False):
    condition = EC.element_to_be_clickable if clickable else EC.presence_of_element_located
    return WebDriverWait(driver, timeout).until(condition((By.CSS_SELECTOR, css_selector)))


def click_first(driver, selectors: Iterable[str], timeout: float = 10) -> bool:
    """Click the first selector that becomes clickable. Returns False if none did."""
    for selector in selectors:
        try:
            wait_for(driver, selector, timeout=timeout, clickable=True).click()
            return True
        except (TimeoutException, WebDriverException):
            continue
    return False


def extract_bearer(log_entries: Iterable[dict], api_host: str) -> Optional[str]:
    """
    First ``Authorization: Bearer`` header sent to ``api_host`` in a batch of
    Chrome performance log entries.
    """
    for entry in log_entries:
        try:
            message = json.loads(entry['message'])['message']
        except (KeyError, TypeError, json.JSONDecodeError):
            continue

        if message.get('method') != 'Network.requestWillBeSent':
            continue

        request = message.get('params', {}).get('request', {})
        if urlparse(request.get('url', '')).hostname != api_host:
            continue

        for name, value in (request.get('headers') or {}).items():
            if name.lower() == 'authorization' and isinstance(value, str) and value.startswith('Bearer '):
                token = value[len('Bearer '):].strip()
                if token:
                    return token
    return None
