"""Call record model for logged telephony calls."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.persistence.database import Base

DIRECTION_INBOUND = "inbound"
DIRECTION_OUTBOUND = "outbound"

STATUS_INITIATED = "initiated"
STATUS_RINGING = "ringing"
STATUS_COMPLETED = "completed"
STATUS_MISSED = "missed"
STATUS_BUSY = "busy"
STATUS_REJECTED = "rejected"
STATUS_UNKNOWN = "unknown"

TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_MISSED, STATUS_BUSY, STATUS_REJECTED})
NON_TERMINAL_STATUSES = frozenset({STATUS_INITIATED, STATUS_RINGING, STATUS_UNKNOWN})


class CallRecord(Base):
    """A single call, correlated with the provider by ``provider_call_id``."""

    __tablename__ = "call_records"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    direction = Column(String(20), nullable=False)
    status = Column(String(50), nullable=False, default=STATUS_UNKNOWN)
    from_number = Column(String(50), nullable=True)
    to_number = Column(String(50), nullable=True)
    duration_seconds = Column(Integer, nullable=True)
    recording_url = Column(Text, nullable=True)
    provider_call_id = Column(String(255), unique=True, nullable=True, index=True)
    matched_contact_id = Column(
        Integer, ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True, index=True
    )
    matched_deal_id = Column(
        Integer, ForeignKey("deals.id", ondelete="SET NULL"), nullable=True, index=True
    )
    started_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    matched_contact = relationship("Contact")
    matched_deal = relationship("Deal")

    def __repr__(self) -> str:
        return (
            f"<CallRecord(id={self.id}, provider_call_id={self.provider_call_id}, "
            f"direction={self.direction}, status={self.status})>"
        )
