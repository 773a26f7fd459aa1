# dropsync/dependencies.py
"""
Builds the object graph: one TokenManager per external service, shared by
every client that talks to that service.
"""

import logging
from functools import lru_cache
from typing import Any, Optional

from dropsync.core.config import Settings, get_settings
from dropsync.core.enums import JobType, TokenService
from dropsync.database import get_session_factory
from dropsync.services.auth.harvest import CredentialHarvestStrategy
from dropsync.services.auth.oauth import EbayOAuthStrategy
from dropsync.services.auth.token_manager import TokenManager
from dropsync.services.autods.client import AutoDSClient
from dropsync.services.customer_messages import CustomerMessageHandler
from dropsync.services.ebay.client import EbayClient
from dropsync.services.listing_pipeline import ListingSyncPipeline
from dropsync.services.removal_service import RemovalService
from dropsync.services.stores import (
    JobRunStore,
    ListingStore,
    MessageStore,
    PendingAuthorizationStore,
    TokenStore,
)

logger = logging.getLogger(__name__)


class ServiceContainer:

    def __init__(self, settings: Optional[Settings] = None, session_factory=None):
        self.settings = settings or get_settings()
        session_factory = session_factory or get_session_factory()

        self.token_store = TokenStore(session_factory)
        self.pending_store = PendingAuthorizationStore(session_factory, self.settings.PENDING_AUTH_TTL_SECONDS)
        self.listing_store = ListingStore(session_factory)
        self.job_store = JobRunStore(session_factory)
        self.message_store = MessageStore(session_factory)

        self.channel_tokens = TokenManager(
            TokenService.CHANNEL.value,
            EbayOAuthStrategy(self.pending_store, self.settings, service=TokenService.CHANNEL.value),
            self.token_store,
            self.settings,
            default_scopes=self.settings.ebay_scopes,
        )
        self.supplier_tokens = TokenManager(
            TokenService.SUPPLIER.value,
            CredentialHarvestStrategy(self.settings),
            self.token_store,
            self.settings,
        )

        self.supplier = AutoDSClient(self.supplier_tokens, self.settings)
        self.channel = EbayClient(self.channel_tokens, self.settings)

        self.listing_pipeline = ListingSyncPipeline(
            self.supplier, self.channel, self.listing_store, self.job_store, self.settings
        )
        self.removal_service = RemovalService(
            self.supplier, self.channel, self.listing_store, self.job_store, self.settings
        )
        self.message_handler = CustomerMessageHandler(
            self.channel, self.message_store, self.job_store, self.settings
        )

    def token_manager(self, service: TokenService) -> TokenManager:
        if service == TokenService.CHANNEL:
            return self.channel_tokens
        return self.supplier_tokens

    async def run_job(self, job_type: JobType) -> Any:
        logger.info(f"Running job: {job_type.value}")
        if job_type == JobType.LISTING:
            return await self.listing_pipeline.run_listing()
        if job_type == JobType.REMOVAL:
            return await self.removal_service.run_removal()
        if job_type == JobType.SCHEDULED_REMOVAL:
            return await self.removal_service.run_scheduled_removal()
        if job_type == JobType.MESSAGES:
            return await self.message_handler.process_messages()
        raise ValueError(f"Unknown job type: {job_type}")


@lru_cache()
def get_container() -> ServiceContainer:
    """Process-wide container, also used as a FastAPI dependency."""
    return ServiceContainer()
