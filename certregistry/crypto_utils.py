import hashlib
import json
import os
from typing import Optional, Union

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .errors import InvalidHash

ALGORITHM = "aes-256-cbc"
HASH_SIZE = 32
ZERO_HASH = bytes(HASH_SIZE)


# ---------- HASHING ----------
def fingerprint(data: bytes) -> bytes:
    """32-byte SHA-256 digest of a document, used as the ledger key."""
    return hashlib.sha256(data).digest()


def hash_to_hex(doc_hash: bytes) -> str:
    return "0x" + doc_hash.hex()


def hex_to_hash(value: str) -> bytes:
    """Parse a hex document hash, with or without the 0x prefix."""
    value = (value or "").strip()
    if value[:2].lower() == "0x":
        value = value[2:]
    try:
        doc_hash = bytes.fromhex(value)
    except ValueError:
        raise InvalidHash(f"Invalid document hash: {value!r}")
    if len(doc_hash) != HASH_SIZE:
        raise InvalidHash(f"Document hash must be {HASH_SIZE} bytes")
    return doc_hash


# ---------- SYMMETRIC ENCRYPTION ----------
def derive_key(secret: Union[str, bytes]) -> bytes:
    # any secret length maps onto a 256-bit AES key
    if isinstance(secret, str):
        secret = secret.encode("utf-8")
    return hashlib.sha256(secret).digest()


def encrypt_metadata(data: dict, key: bytes, iv: Optional[bytes] = None) -> dict:
    """
    Encrypt a metadata record as JSON under AES-256-CBC.

    Returns the hex ciphertext and IV together with the algorithm name,
    which is the shape stored in the blob store. A random IV is drawn
    unless one is given.
    """
    iv = iv or os.urandom(16)

    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    plaintext = padder.update(json.dumps(data).encode("utf-8")) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(plaintext) + encryptor.finalize()

    return {
        "encrypted": ciphertext.hex(),
        "iv": iv.hex(),
        "algorithm": ALGORITHM,
    }


def decrypt_metadata(encrypted: str, iv: str, key: bytes) -> dict:
    """Raises ValueError on a wrong key or corrupted ciphertext."""
    decryptor = Cipher(algorithms.AES(key), modes.CBC(bytes.fromhex(iv))).decryptor()
    padded = decryptor.update(bytes.fromhex(encrypted)) + decryptor.finalize()

    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    plaintext = unpadder.update(padded) + unpadder.finalize()
    return json.loads(plaintext.decode("utf-8"))
