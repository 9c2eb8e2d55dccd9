"""Tests for the at-rest token cipher."""

import base64

import pytest

from songscout.domain.exceptions import VaultError
from songscout.infrastructure.encryption import TokenCipher

SECRET = "k" * 32


class TestTokenCipher:
    """Tests for TokenCipher."""

    def test_round_trip_with_random_salt(self) -> None:
        """Same plaintext encrypts differently but decrypts back."""
        cipher = TokenCipher(SECRET)
        first = cipher.encrypt("access-token")
        second = cipher.encrypt("access-token")
        assert first != second
        assert cipher.decrypt(first) == "access-token"
        assert cipher.decrypt(second) == "access-token"

    def test_wrong_key_fails_authentication(self) -> None:
        """A blob sealed with another key is rejected."""
        blob = TokenCipher(SECRET).encrypt("access-token")
        with pytest.raises(VaultError):
            TokenCipher("z" * 32).decrypt(blob)

    def test_tampered_blob_fails(self) -> None:
        """Flipping a ciphertext byte breaks the tag."""
        cipher = TokenCipher(SECRET)
        raw = bytearray(base64.b64decode(cipher.encrypt("access-token")))
        raw[-1] ^= 0x01
        with pytest.raises(VaultError):
            cipher.decrypt(base64.b64encode(bytes(raw)).decode("ascii"))

    def test_garbage_and_truncated_blobs(self) -> None:
        """Non-base64 and too-short input raise VaultError."""
        cipher = TokenCipher(SECRET)
        with pytest.raises(VaultError):
            cipher.decrypt("not base64!!")
        with pytest.raises(VaultError):
            cipher.decrypt("AAAA")

    def test_missing_secret(self) -> None:
        """No key material, no cipher."""
        with pytest.raises(VaultError):
            TokenCipher("")
