"""Field-level encryption for stored OAuth tokens.

Uses Fernet symmetric encryption (AES-128-CBC + HMAC-SHA256). Encrypted
values carry an ``enc:`` prefix so rows written before a key was configured
remain readable.
"""

import logging
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken

from app.settings import settings

logger = logging.getLogger(__name__)

ENCRYPTED_PREFIX = "enc:"


class EncryptionError(Exception):
    """Raised when encryption/decryption fails."""


class TokenCipher:
    """Encrypts and decrypts secret strings with a Fernet key."""

    def __init__(self, key: str | None, require_key: bool = False) -> None:
        self._fernet: Fernet | None = None
        self._require_key = require_key
        if key:
            try:
                self._fernet = Fernet(key.encode())
            except (ValueError, TypeError) as e:
                raise EncryptionError(f"Invalid FIELD_ENCRYPTION_KEY format: {e}") from e

    @property
    def is_enabled(self) -> bool:
        return self._fernet is not None

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a plaintext string.

        Raises:
            EncryptionError: If no key is configured and one is required
        """
        if not plaintext:
            return plaintext
        if self._fernet is None:
            if self._require_key:
                raise EncryptionError("FIELD_ENCRYPTION_KEY must be configured to store tokens")
            logger.warning("Encryption not enabled - storing plaintext")
            return plaintext
        return ENCRYPTED_PREFIX + self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a value written by :meth:`encrypt`.

        Values without the ``enc:`` prefix are returned unchanged.

        Raises:
            EncryptionError: If the value is encrypted and cannot be decrypted
        """
        if not ciphertext or not ciphertext.startswith(ENCRYPTED_PREFIX):
            return ciphertext
        if self._fernet is None:
            raise EncryptionError("Cannot decrypt: encryption key not configured")
        try:
            return self._fernet.decrypt(ciphertext[len(ENCRYPTED_PREFIX):].encode()).decode()
        except InvalidToken as e:
            raise EncryptionError("Failed to decrypt: invalid token or wrong key") from e


@lru_cache(maxsize=1)
def get_token_cipher() -> TokenCipher:
    """Get the process-wide cipher built from settings."""
    cipher = TokenCipher(settings.field_encryption_key, require_key=settings.is_production)
    if cipher.is_enabled:
        logger.info("Encryption service initialized")
    else:
        logger.warning("No encryption key configured - encryption disabled")
    return cipher


def encrypt_field(value: str | None) -> str | None:
    """Encrypt a field value."""
    if value is None:
        return None
    return get_token_cipher().encrypt(value)


def decrypt_field(value: str | None) -> str | None:
    """Decrypt a field value."""
    if value is None:
        return None
    return get_token_cipher().decrypt(value)


def generate_encryption_key() -> str:
    """Generate a new Fernet key suitable for FIELD_ENCRYPTION_KEY."""
    return Fernet.generate_key().decode()
