"""Database models."""

from app.persistence.models.call_record import CallRecord
from app.persistence.models.contact import Contact
from app.persistence.models.deal import Deal, DealStage
from app.persistence.models.telephony_identity import TelephonyIdentity
from app.persistence.models.user import User

__all__ = [
    "CallRecord",
    "Contact",
    "Deal",
    "DealStage",
    "TelephonyIdentity",
    "User",
]
