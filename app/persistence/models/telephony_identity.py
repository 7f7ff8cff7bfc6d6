"""Telephony identity model: a user's connected provider credentials."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.persistence.database import Base
from app.persistence.types import EncryptedText


class TelephonyIdentity(Base):
    """OAuth credentials for one user's telephony account.

    Absence of a row means the user is not connected.
    """

    __tablename__ = "telephony_identities"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    provider_account_id = Column(String(255), nullable=True)
    access_token = Column(EncryptedText(), nullable=False)
    refresh_token = Column(EncryptedText(), nullable=False)
    token_expires_at = Column(DateTime, nullable=False)
    refresh_token_expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="telephony_identity")

    def is_expired(self, now) -> bool:
        return self.token_expires_at is None or now >= self.token_expires_at

    def __repr__(self) -> str:
        return (
            f"<TelephonyIdentity(id={self.id}, user_id={self.user_id}, "
            f"token_expires_at={self.token_expires_at})>"
        )
