import hashlib

import pytest

from certregistry.crypto_utils import (
    ALGORITHM,
    decrypt_metadata,
    derive_key,
    encrypt_metadata,
    fingerprint,
    hash_to_hex,
    hex_to_hash,
)
from certregistry.errors import InvalidHash


def test_fingerprint_is_32_byte_sha256():
    doc = b"certificate body"
    assert fingerprint(doc) == hashlib.sha256(doc).digest()
    assert len(fingerprint(doc)) == 32


def test_single_bit_flip_changes_fingerprint():
    doc = bytearray(b"certificate body")
    original = fingerprint(bytes(doc))
    doc[0] ^= 0x01
    assert fingerprint(bytes(doc)) != original


def test_hex_parsing_accepts_optional_prefix():
    doc_hash = fingerprint(b"x")
    assert hex_to_hash(hash_to_hex(doc_hash)) == doc_hash
    assert hex_to_hash(doc_hash.hex()) == doc_hash
    assert hash_to_hex(doc_hash).startswith("0x")


@pytest.mark.parametrize("value", ["", "0x", "zz" * 32, "ab" * 31])
def test_hex_parsing_rejects_bad_values(value):
    with pytest.raises(InvalidHash):
        hex_to_hash(value)


def test_encrypt_decrypt_metadata():
    key = derive_key("secret")
    data = {"studentName": "Ada", "grade": "A"}

    blob = encrypt_metadata(data, key)

    assert blob["algorithm"] == ALGORITHM
    assert len(bytes.fromhex(blob["iv"])) == 16
    assert "Ada" not in blob["encrypted"]
    assert decrypt_metadata(blob["encrypted"], blob["iv"], key) == data


def test_encryption_deterministic_for_fixed_iv():
    key = derive_key("secret")
    iv = bytes(range(16))
    first = encrypt_metadata({"a": 1}, key, iv=iv)
    second = encrypt_metadata({"a": 1}, key, iv=iv)
    assert first == second
    assert encrypt_metadata({"a": 1}, key)["iv"] != encrypt_metadata({"a": 1}, key)["iv"]


def test_decrypt_with_wrong_key_fails():
    blob = encrypt_metadata({"studentName": "Ada"}, derive_key("right"))
    with pytest.raises(ValueError):
        decrypt_metadata(blob["encrypted"], blob["iv"], derive_key("wrong"))


def test_derive_key_is_256_bits():
    assert len(derive_key("short")) == 32
    assert derive_key("k") == derive_key(b"k")
