"""Authenticated encryption for the secure strategy.

Sealed layout: ``[12-byte nonce][ciphertext][16-byte GCM tag]``. The key is
derived from a caller-supplied secret with PBKDF2-HMAC-SHA256; a fresh
random nonce is drawn for every seal.
"""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .errors import ConfigurationError, TamperError

logger = logging.getLogger(__name__)

NONCE_SIZE = 12
TAG_SIZE = 16
KEY_SIZE = 32
KDF_ITERATIONS = 100_000
KDF_SALT = b"persistkit/secure/v1"

Secret = Union[str, bytes]


def _secret_bytes(secret: Optional[Secret]) -> bytes:
    if secret is None or len(secret) == 0:
        raise ConfigurationError("A secret key is required for the secure strategy")
    if isinstance(secret, str):
        return secret.encode("utf-8")
    return bytes(secret)


@lru_cache(maxsize=8)
def _derive(secret: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=KDF_SALT,
        iterations=KDF_ITERATIONS,
    )
    return kdf.derive(secret)


def derive_key(secret: Optional[Secret]) -> bytes:
    """Derive the 256-bit AES key for ``secret``."""
    return _derive(_secret_bytes(secret))


def seal(key: bytes, plaintext: bytes, associated_data: Optional[bytes] = None) -> bytes:
    try:
        aead = AESGCM(key)
    except ValueError as e:
        raise ConfigurationError(f"Invalid encryption key: {e}") from e
    nonce = os.urandom(NONCE_SIZE)
    return nonce + aead.encrypt(nonce, plaintext, associated_data)


def open_sealed(key: bytes, blob: bytes, associated_data: Optional[bytes] = None) -> bytes:
    """Authenticate and decrypt ``blob``.

    Raises:
        TamperError if the data was truncated, corrupted, forged, or sealed
        with a different key.
    """
    if len(blob) < NONCE_SIZE + TAG_SIZE:
        raise TamperError("Sealed data is truncated")
    try:
        aead = AESGCM(key)
    except ValueError as e:
        raise ConfigurationError(f"Invalid encryption key: {e}") from e
    nonce, body = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
    try:
        return aead.decrypt(nonce, body, associated_data)
    except InvalidTag:
        logger.warning("Authentication failed while opening sealed data (%d bytes)", len(blob))
        raise TamperError("Sealed data failed authentication") from None


class EncryptionContext:
    """Request-scoped holder for a derived key.

    ``associated_data`` (typically the record name) is authenticated but not
    encrypted, so a sealed file cannot be swapped in for another record.
    """

    def __init__(self, secret: Optional[Secret], associated_data: Optional[bytes] = None) -> None:
        self._key = derive_key(secret)
        self.associated_data = associated_data

    def seal(self, plaintext: bytes) -> bytes:
        return seal(self._key, plaintext, self.associated_data)

    def open(self, blob: bytes) -> bytes:
        return open_sealed(self._key, blob, self.associated_data)
