"""Repository layer."""

from app.persistence.repositories.call_record_repository import CallRecordRepository
from app.persistence.repositories.contact_repository import ContactRepository
from app.persistence.repositories.deal_repository import DealRepository
from app.persistence.repositories.telephony_identity_repository import (
    TelephonyIdentityRepository,
)
from app.persistence.repositories.user_repository import UserRepository

__all__ = [
    "CallRecordRepository",
    "ContactRepository",
    "DealRepository",
    "TelephonyIdentityRepository",
    "UserRepository",
]
