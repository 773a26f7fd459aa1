from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from dropsync.database import Base
from dropsync.models.api_token import utc_now


class BuyerMessage(Base):
    """A buyer message pulled from the channel, with how we handled it."""

    __tablename__ = "buyer_messages"

    id = Column(Integer, primary_key=True)
    message_id = Column(String(64), nullable=False, unique=True)
    buyer_username = Column(String(128), nullable=True)
    subject = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    received_at = Column(DateTime(timezone=True), nullable=True)
    responded = Column(Boolean, nullable=False, default=False)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    response = Column(Text, nullable=True)
    escalated = Column(Boolean, nullable=False, default=False)
    escalated_at = Column(DateTime(timezone=True), nullable=True)
    escalation_reason = Column(Text, nullable=True)
    resolved = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    def __repr__(self) -> str:
        return f"<BuyerMessage(message_id={self.message_id}, responded={self.responded}, escalated={self.escalated})>"
