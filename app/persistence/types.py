"""Custom SQLAlchemy types for the application."""

from typing import Optional

from sqlalchemy import Text, TypeDecorator

from app.core.encryption import decrypt_field, encrypt_field


class EncryptedText(TypeDecorator):
    """Text column that is transparently encrypted at rest.

    Usage:
        access_token = Column(EncryptedText(), nullable=False)
    """

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Optional[str], dialect) -> Optional[str]:
        """Encrypt value before storing in database."""
        return encrypt_field(value)

    def process_result_value(self, value: Optional[str], dialect) -> Optional[str]:
        """Decrypt value when reading from database."""
        return decrypt_field(value)
