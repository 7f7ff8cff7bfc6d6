"""Tests for token field encryption."""

import pytest

from app.core.encryption import (
    ENCRYPTED_PREFIX,
    EncryptionError,
    TokenCipher,
    generate_encryption_key,
)


class TestTokenCipher:
    """Test cases for TokenCipher."""

    def test_encrypted_value_is_prefixed_and_opaque(self):
        cipher = TokenCipher(generate_encryption_key())

        encrypted = cipher.encrypt("secret-access-token")

        assert encrypted.startswith(ENCRYPTED_PREFIX)
        assert "secret-access-token" not in encrypted
        assert cipher.decrypt(encrypted) == "secret-access-token"

    def test_plaintext_rows_remain_readable(self):
        cipher = TokenCipher(generate_encryption_key())

        assert cipher.decrypt("legacy-plaintext") == "legacy-plaintext"

    def test_wrong_key_raises(self):
        encrypted = TokenCipher(generate_encryption_key()).encrypt("token")

        with pytest.raises(EncryptionError):
            TokenCipher(generate_encryption_key()).decrypt(encrypted)

    def test_without_key_stores_plaintext(self):
        cipher = TokenCipher(None)

        assert not cipher.is_enabled
        assert cipher.encrypt("token") == "token"

    def test_required_key_missing_raises(self):
        with pytest.raises(EncryptionError):
            TokenCipher(None, require_key=True).encrypt("token")

    def test_invalid_key_rejected(self):
        with pytest.raises(EncryptionError):
            TokenCipher("not-a-fernet-key")
