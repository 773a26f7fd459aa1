# dropsync/services/auth/strategy.py

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

from dropsync.core.exceptions import AuthError
from dropsync.schemas.tokens import TokenGrant

if TYPE_CHECKING:
    from dropsync.services.auth.token_manager import TokenManager


class AuthStrategy(ABC):
    """
    How one provider hands out tokens.

    ``authorize`` runs a full acquisition flow. It either returns the grant
    itself or returns None after the manager was completed from elsewhere
    (a code exchanged by the poller or the redirect handler).
    """

    supports_refresh: bool = False
    flow_timeout: float = 60

    @abstractmethod
    async def authorize(self, manager: "TokenManager", state: str) -> Optional[TokenGrant]:
        pass

    async def refresh(self, refresh_token: str) -> TokenGrant:
        raise AuthError(f"{type(self).__name__} cannot refresh tokens")

    async def exchange_code(self, code: str) -> TokenGrant:
        raise AuthError(f"{type(self).__name__} does not use authorization codes")
