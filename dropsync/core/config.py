# dropsync/core/config.py

from functools import lru_cache
from typing import List

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


def _split_csv(value: str) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """
    Application settings.
    Loads values from environment variables (.env file)
    """
    ENVIRONMENT: str = "production"

    # Security
    BASIC_AUTH_USERNAME: str = "admin"
    BASIC_AUTH_PASSWORD: str = ""

    # Database settings
    DATABASE_URL: str = ""

    # AutoDS (supplier)
    AUTODS_USERNAME: str = ""
    AUTODS_PASSWORD: str = ""
    AUTODS_STORE_ID: str = ""
    AUTODS_LOGIN_URL: str = "https://platform.autods.com/login"
    AUTODS_API_HOST: str = "v2-api.autods.com"
    AUTODS_API_BASE: str = "https://v2-api.autods.com"
    AUTODS_MARKETPLACE_API: str = "https://gw.autods.com/marketplace/api"
    AUTODS_TOKEN_TTL_SECONDS: int = 3600

    # eBay (channel)
    EBAY_CLIENT_ID: str = ""
    EBAY_CLIENT_SECRET: str = ""
    EBAY_RU_NAME: str = ""
    EBAY_USERNAME: str = ""
    EBAY_PASSWORD: str = ""
    EBAY_AUTH_URL: str = "https://auth.ebay.com/oauth2/authorize"
    EBAY_TOKEN_URL: str = "https://api.ebay.com/identity/v1/oauth2/token"
    EBAY_API_BASE: str = "https://api.ebay.com"
    EBAY_TRADING_URL: str = "https://api.ebay.com/ws/api.dll"
    EBAY_SITE_ID: str = "0"
    EBAY_SCOPES: str = (
        "https://api.ebay.com/oauth/api_scope,"
        "https://api.ebay.com/oauth/api_scope/sell.inventory,"
        "https://api.ebay.com/oauth/api_scope/sell.inventory.readonly,"
        "https://api.ebay.com/oauth/api_scope/sell.account,"
        "https://api.ebay.com/oauth/api_scope/sell.account.readonly,"
        "https://api.ebay.com/oauth/api_scope/sell.fulfillment,"
        "https://api.ebay.com/oauth/api_scope/sell.fulfillment.readonly,"
        "https://api.ebay.com/oauth/api_scope/sell.marketing,"
        "https://api.ebay.com/oauth/api_scope/sell.marketing.readonly"
    )

    # Token lifecycle
    TOKEN_EXPIRY_MARGIN_SECONDS: int = 300
    AUTH_FLOW_TIMEOUT_SECONDS: float = 300
    BROWSER_CAPTURE_TIMEOUT_SECONDS: float = 60
    AUTH_POLL_INTERVAL_SECONDS: float = 15
    PENDING_AUTH_TTL_SECONDS: int = 3600
    HEADLESS_BROWSER: bool = True

    # Listing pipeline
    LISTING_TARGET_COUNT: int = 10
    LISTING_STOCK_THRESHOLD: int = 1
    LISTING_MAX_TOP_UP_ATTEMPTS: int = 3
    STAGE_SETTLE_SECONDS: float = 30
    PROMOTE_SETTLE_SECONDS: float = 60
    STAGE_ITEM_DELAY_SECONDS: float = 1
    SUPPLIER_FILTER: str = ""  # "amazon", "private_suppliers" or empty
    CANDIDATE_PAGE_SIZE: int = 100

    # Removal
    REMOVAL_MODE: str = "stock"  # "stock" or "scheduled"
    REMOVAL_BATCH_SIZE: int = 50
    REMOVAL_BATCH_DELAY_SECONDS: float = 2
    REMOVAL_ITEM_DELAY_SECONDS: float = 0.5
    REMOVAL_END_NOT_FOUND: bool = False
    REMOVAL_COUNT: int = 5

    # Customer messages
    ESCALATION_KEYWORDS: str = "refund,broken,damaged,complaint,return"
    MESSAGE_LOOKBACK_HOURS: int = 24
    MESSAGE_ITEM_DELAY_SECONDS: float = 0.5

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    LISTING_CRON: str = "0 9 * * *"
    REMOVAL_CRON: str = "0 18 * * *"
    MESSAGES_CRON: str = "0 * * * *"

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def ebay_scopes(self) -> List[str]:
        return _split_csv(self.EBAY_SCOPES)

    @property
    def escalation_keywords(self) -> List[str]:
        return [keyword.lower() for keyword in _split_csv(self.ESCALATION_KEYWORDS)]

    @property
    def async_database_url(self) -> str:
        url = self.DATABASE_URL
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


def clear_settings_cache():
    """Clear the settings cache to force reload"""
    get_settings.cache_clear()
