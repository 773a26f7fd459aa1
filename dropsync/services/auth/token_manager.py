# dropsync/services/auth/token_manager.py
"""
Token lifecycle for one external service.

One ``TokenManager`` exists per service and is handed to every client that
talks to that service. It caches the current token in memory, falls back to
the token store, then to a refresh, then to a full authorization flow, and
makes sure concurrent callers share a single acquisition and a single flow.
"""

import asyncio
import logging
import secrets
from typing import Any, Dict, List, Optional, Set

from dropsync.core.config import Settings, get_settings
from dropsync.core.exceptions import APIError, AuthError, AuthTimeout, PersistenceError
from dropsync.schemas.tokens import TokenGrant, TokenRecord
from dropsync.services.auth.strategy import AuthStrategy

logger = logging.getLogger(__name__)


class TokenManager:

    def __init__(self, service: str, strategy: AuthStrategy, token_store,
                 settings: Optional[Settings] = None, default_scopes: Optional[List[str]] = None):
        self.service = service
        self.strategy = strategy
        self.token_store = token_store
        self.settings = settings or get_settings()
        self.default_scopes = list(default_scopes or [])
        self.margin_seconds = self.settings.TOKEN_EXPIRY_MARGIN_SECONDS

        self._token: Optional[TokenRecord] = None
        self._rejected_access_token: Optional[str] = None
        self._lock = asyncio.Lock()
        self._acquisition: Optional[asyncio.Task] = None
        self._flow: Optional[asyncio.Future] = None
        self._flow_runner: Optional[asyncio.Task] = None
        self._used_codes: Set[str] = set()
        self.flows_started = 0

    # -- validity ---------------------------------------------------------

    def is_valid(self, record: Optional[TokenRecord]) -> bool:
        """Valid means present, not rejected by the API and not inside the expiry margin."""
        if record is None or not record.access_token:
            return False
        if record.access_token == self._rejected_access_token:
            return False
        return record.seconds_left() > self.margin_seconds

    @property
    def authorizing(self) -> bool:
        return self._flow is not None and not self._flow.done()

    # -- public API -------------------------------------------------------

    async def get_valid_token(self) -> str:
        """
        Return a bearer token that is good for at least the expiry margin.

        Concurrent callers share one acquisition task, so at most one store
        lookup, refresh or authorization flow runs per service at a time.

        Raises:
            AuthError: credentials missing or the flow failed
            AuthTimeout: the authorization flow did not finish in time
        """
        if self.is_valid(self._token):
            return self._token.access_token

        async with self._lock:
            if self.is_valid(self._token):
                return self._token.access_token
            if self._acquisition is None or self._acquisition.done():
                self._acquisition = asyncio.ensure_future(self._acquire())
            acquisition = self._acquisition

        record = await asyncio.shield(acquisition)
        return record.access_token

    def invalidate(self, access_token: Optional[str] = None) -> None:
        """Forget the cached token after the API rejected it."""
        rejected = access_token or (self._token.access_token if self._token else None)
        if rejected is None:
            return
        logger.warning(f"Invalidating {self.service} access token")
        self._rejected_access_token = rejected

    async def trigger_authorization_flow(self) -> str:
        """
        Run the authorization flow, or join the one already running.

        Every caller waiting on a flow gets the same token, or the same error.
        """
        record = await self._authorize()
        return record.access_token

    async def wait_for_authorization(self) -> TokenRecord:
        flow = self._flow
        if flow is None:
            if self._token is not None:
                return self._token
            raise AuthError(f"No authorization flow in progress for {self.service}")
        return await asyncio.shield(flow)

    async def exchange_authorization_code(self, code: str) -> str:
        """
        Exchange a one-time authorization code and complete the pending flow.

        A code is only ever sent to the provider once. Any failure rejects the
        waiters; the current token is never replaced by a failed exchange.
        """
        if code in self._used_codes:
            raise AuthError(f"Authorization code for {self.service} was already used")
        self._used_codes.add(code)

        try:
            grant = await self.strategy.exchange_code(code)
        except (APIError, AuthError) as e:
            logger.error(f"Authorization code exchange failed for {self.service}: {e}")
            self.complete_authorization(e)
            raise

        record = await self.accept_grant(grant)
        self.complete_authorization(None)
        return record.access_token

    def complete_authorization(self, error: Optional[BaseException] = None) -> None:
        """Resolve (or reject, when ``error`` is given) everyone waiting on the current flow."""
        self._finish_flow(self._flow, error)

    async def accept_grant(self, grant: TokenGrant) -> TokenRecord:
        """Make ``grant`` the current token and persist it. Store failures are logged only."""
        previous_refresh = self._token.refresh_token if self._token else None
        record = TokenRecord.from_grant(self.service, grant, previous_refresh, self.default_scopes)
        self._token = record
        self._rejected_access_token = None

        try:
            await self.token_store.activate(record)
        except PersistenceError as e:
            logger.error(f"Could not persist {self.service} token, keeping it in memory: {e}")
        return record

    def status(self) -> Dict[str, Any]:
        token = self._token
        return {
            "service": self.service,
            "has_token": token is not None,
            "valid": self.is_valid(token),
            "expires_at": token.expires_at.isoformat() if token else None,
            "has_refresh_token": bool(token and token.refresh_token),
            "authorizing": self.authorizing,
            "flows_started": self.flows_started,
        }

    # -- acquisition ------------------------------------------------------

    async def _acquire(self) -> TokenRecord:
        stored = None
        try:
            stored = await self.token_store.find_latest_active(self.service)
        except PersistenceError as e:
            logger.error(f"Could not load stored {self.service} token: {e}")

        if self.is_valid(stored):
            logger.info(f"Using stored {self.service} token")
            self._token = stored
            return stored

        refresh_token = (stored.refresh_token if stored else None) or (
            self._token.refresh_token if self._token else None
        )
        if refresh_token and self.strategy.supports_refresh:
            try:
                grant = await self.strategy.refresh(refresh_token)
            except APIError as e:
                logger.warning(f"Refreshing {self.service} token failed, re-authorizing: {e}")
            else:
                logger.info(f"Refreshed {self.service} access token")
                if not grant.refresh_token:
                    grant = grant.model_copy(update={"refresh_token": refresh_token})
                return await self.accept_grant(grant)

        return await self._authorize()

    async def _authorize(self) -> TokenRecord:
        async with self._lock:
            if self._flow is None:
                self._flow = asyncio.get_running_loop().create_future()
                self._flow_runner = asyncio.create_task(self._run_flow(self._flow))
                self.flows_started += 1
            flow = self._flow
        return await asyncio.shield(flow)

    async def _run_flow(self, flow: asyncio.Future) -> None:
        state = secrets.token_hex(16)
        timeout = self.strategy.flow_timeout
        logger.info(f"Starting {self.service} authorization flow (timeout {timeout}s)")

        try:
            grant = await asyncio.wait_for(self.strategy.authorize(self, state), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(f"{self.service} authorization timed out after {timeout}s")
            self._finish_flow(flow, AuthTimeout(f"{self.service} authorization timed out after {timeout}s"))
        except asyncio.CancelledError:
            self._finish_flow(flow, AuthError(f"{self.service} authorization was cancelled"))
            raise
        except Exception as e:
            logger.exception(f"{self.service} authorization failed: {e}")
            self._finish_flow(flow, e)
        else:
            if grant is not None:
                await self.accept_grant(grant)
            self._finish_flow(flow, None)

    def _finish_flow(self, flow: Optional[asyncio.Future], error: Optional[BaseException]) -> None:
        if flow is None:
            return
        if flow is self._flow:
            self._flow = None
        if flow.done():
            return

        if error is None and self._token is None:
            error = AuthError(f"{self.service} authorization produced no token")
        if error is None:
            flow.set_result(self._token)
            return

        if not isinstance(error, AuthError):
            wrapped = AuthError(f"{self.service} authorization failed: {error}")
            wrapped.__cause__ = error
            error = wrapped
        flow.set_exception(error)
        # Mark retrieved so an unobserved failure does not warn at shutdown
        flow.exception()
