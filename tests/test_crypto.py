from __future__ import annotations

import pytest

from persistkit.crypto import (
    NONCE_SIZE,
    TAG_SIZE,
    EncryptionContext,
    derive_key,
    open_sealed,
    seal,
)
from persistkit.errors import ConfigurationError, TamperError


def test_seal_and_open_round_trip() -> None:
    key = derive_key("correct horse battery staple")
    blob = seal(key, b'{"Save": {"level": 1}}')
    assert len(blob) == NONCE_SIZE + len(b'{"Save": {"level": 1}}') + TAG_SIZE
    assert b"level" not in blob
    assert open_sealed(key, blob) == b'{"Save": {"level": 1}}'


def test_fresh_nonce_per_seal() -> None:
    key = derive_key("k")
    a = seal(key, b"same plaintext")
    b = seal(key, b"same plaintext")
    assert a[:NONCE_SIZE] != b[:NONCE_SIZE]
    assert a != b


def test_wrong_key_is_tamper_error() -> None:
    blob = seal(derive_key("right"), b"payload")
    with pytest.raises(TamperError):
        open_sealed(derive_key("wrong"), blob)


@pytest.mark.parametrize("index", [0, NONCE_SIZE, -1])
def test_flipped_byte_is_tamper_error(index: int) -> None:
    key = derive_key("k")
    blob = bytearray(seal(key, b"payload"))
    blob[index] ^= 0x01
    with pytest.raises(TamperError):
        open_sealed(key, bytes(blob))


def test_truncated_blob_is_tamper_error() -> None:
    key = derive_key("k")
    with pytest.raises(TamperError):
        open_sealed(key, seal(key, b"payload")[: NONCE_SIZE + 4])


def test_associated_data_binds_record() -> None:
    sealed = EncryptionContext("k", associated_data=b"SaveA").seal(b"payload")
    assert EncryptionContext("k", associated_data=b"SaveA").open(sealed) == b"payload"
    with pytest.raises(TamperError):
        EncryptionContext("k", associated_data=b"SaveB").open(sealed)


def test_key_derivation_is_deterministic() -> None:
    assert derive_key("secret") == derive_key(b"secret")
    assert len(derive_key("secret")) == 32
    assert derive_key("secret") != derive_key("other")


@pytest.mark.parametrize("secret", [None, "", b""])
def test_missing_secret_is_configuration_error(secret) -> None:
    with pytest.raises(ConfigurationError):
        EncryptionContext(secret)
