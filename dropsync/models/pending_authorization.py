from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from dropsync.database import Base
from dropsync.models.api_token import utc_now


class PendingAuthorization(Base):
    """
    Authorization code captured by a redirect handler running somewhere other than
    the process waiting for it. Consumers claim a row (processed=True) before
    exchanging its code.
    """

    __tablename__ = "pending_authorizations"

    id = Column(Integer, primary_key=True)
    service = Column(String(32), nullable=False, index=True)
    authorization_code = Column(Text, nullable=False)
    state = Column(String(128), nullable=True, index=True)
    processed = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False)

    def __repr__(self) -> str:
        return f"<PendingAuthorization(id={self.id}, service={self.service}, processed={self.processed})>"
