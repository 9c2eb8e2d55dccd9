"""Authenticated encryption for credentials at rest.

Blob layout (base64 encoded): salt(64) | iv(16) | tag(16) | ciphertext.
The AES-256 key is derived per blob with PBKDF2-SHA256 (100 000 iterations) from the
configured secret and the blob's own salt, so the same token encrypts differently every time.
"""

import base64
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from songscout.domain.exceptions import VaultError

logger = logging.getLogger(__name__)

SALT_LENGTH = 64
IV_LENGTH = 16
AUTH_TAG_LENGTH = 16
KEY_LENGTH = 32
PBKDF2_ITERATIONS = 100_000
MIN_SECRET_LENGTH = 32


class TokenCipher:
    """AES-256-GCM cipher keyed from an operator-provided secret."""

    def __init__(self, secret: str) -> None:
        """Initialize cipher.

        Args:
            secret: Key material (ENCRYPTION_KEY, falling back to SESSION_SECRET)

        Raises:
            VaultError: If no secret is configured
        """
        if not secret:
            raise VaultError("ENCRYPTION_KEY or SESSION_SECRET must be set to store credentials")
        if len(secret) < MIN_SECRET_LENGTH:
            logger.warning(
                f"Encryption key is only {len(secret)} characters; "
                f"use at least {MIN_SECRET_LENGTH} for strong security"
            )
        self._secret = secret.encode("utf-8")

    def _derive_key(self, salt: bytes) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_LENGTH,
            salt=salt,
            iterations=PBKDF2_ITERATIONS,
        )
        return kdf.derive(self._secret)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt text into a base64 blob."""
        salt = os.urandom(SALT_LENGTH)
        iv = os.urandom(IV_LENGTH)
        # AESGCM appends the tag to the ciphertext; we store it in front
        sealed = AESGCM(self._derive_key(salt)).encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:]
        return base64.b64encode(salt + iv + tag + ciphertext).decode("ascii")

    def decrypt(self, blob: str) -> str:
        """Decrypt a base64 blob produced by encrypt().

        Raises:
            VaultError: If the blob is truncated, corrupt, or was sealed with another key
        """
        try:
            raw = base64.b64decode(blob, validate=True)
        except ValueError as e:
            raise VaultError("Encrypted credential is not valid base64") from e

        header = SALT_LENGTH + IV_LENGTH + AUTH_TAG_LENGTH
        if len(raw) < header:
            raise VaultError("Encrypted credential is truncated")

        salt = raw[:SALT_LENGTH]
        iv = raw[SALT_LENGTH : SALT_LENGTH + IV_LENGTH]
        tag = raw[SALT_LENGTH + IV_LENGTH : header]
        ciphertext = raw[header:]

        try:
            plaintext = AESGCM(self._derive_key(salt)).decrypt(iv, ciphertext + tag, None)
        except InvalidTag as e:
            raise VaultError("Encrypted credential failed authentication") from e
        return plaintext.decode("utf-8")
