"""
Token payloads exchanged with the providers and the record shape shared by
the token manager and the token store.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class TokenGrant(BaseModel):
    """Response body of an OAuth token endpoint, or a harvested bearer."""
    model_config = ConfigDict(extra="ignore")

    access_token: str
    expires_in: int = 7200
    refresh_token: Optional[str] = None
    refresh_token_expires_in: Optional[int] = None
    token_type: Optional[str] = None
    scope: Optional[str] = None


@dataclass
class TokenRecord:
    service: str
    access_token: str
    expires_at: datetime
    refresh_token: Optional[str] = None
    scopes: List[str] = field(default_factory=list)

    @classmethod
    def from_grant(cls, service: str, grant: TokenGrant, previous_refresh_token: Optional[str] = None,
                   default_scopes: Optional[List[str]] = None) -> "TokenRecord":
        # Refresh responses usually omit the refresh token; keep the one we had.
        scopes = grant.scope.split() if grant.scope else list(default_scopes or [])
        return cls(
            service=service,
            access_token=grant.access_token,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=grant.expires_in),
            refresh_token=grant.refresh_token or previous_refresh_token,
            scopes=scopes,
        )

    def seconds_left(self, now: Optional[datetime] = None) -> float:
        now = now or datetime.now(timezone.utc)
        return (self.expires_at - now).total_seconds()
