from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String, Text
from sqlalchemy.sql import func

from dropsync.database import Base


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ApiToken(Base):
    """
    One credential set for one external service.

    At most one row per service should be active; readers pick the most recently
    created active row when a crash left more than one behind.
    """

    __tablename__ = "api_tokens"

    id = Column(Integer, primary_key=True)
    service = Column(String(32), nullable=False, index=True)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    scopes = Column(JSON, nullable=False, default=list)
    active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        onupdate=utc_now,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ApiToken(id={self.id}, service={self.service}, active={self.active}, expires_at={self.expires_at})>"
