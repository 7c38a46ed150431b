"""
Encryption Unit: AES-256-GCM over UTF-8 text.
Blob format is base64(nonce[12] || ciphertext || tag[16]); a fresh nonce per call.
"""
import base64
import binascii
import hashlib
import os
import re

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

NONCE_BYTES = 12
_KEY_RE = re.compile(r"^[0-9a-fA-F]{64}$")


class ConfigurationError(Exception):
    """Encryption key missing or not 64 hex characters."""


class DecryptionError(Exception):
    """Blob is malformed, tampered with, or was sealed under a different key."""


def key_bytes(key_hex: str) -> bytes:
    """Decode and validate the 64-hex key. Never include the key in the error."""
    if not isinstance(key_hex, str) or not _KEY_RE.match(key_hex):
        raise ConfigurationError("Encryption key must be exactly 64 hex characters (32 bytes)")
    return bytes.fromhex(key_hex)


def validate_key(key_hex: str) -> None:
    key_bytes(key_hex)


def encrypt(plaintext: str, key_hex: str) -> str:
    aesgcm = AESGCM(key_bytes(key_hex))
    nonce = os.urandom(NONCE_BYTES)
    sealed = aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
    return base64.b64encode(nonce + sealed).decode("ascii")


def decrypt(blob: str, key_hex: str) -> str:
    aesgcm = AESGCM(key_bytes(key_hex))
    try:
        combined = base64.b64decode(blob, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecryptionError("Ciphertext is not valid base64") from e
    if len(combined) <= NONCE_BYTES:
        raise DecryptionError("Ciphertext too short")
    nonce, sealed = combined[:NONCE_BYTES], combined[NONCE_BYTES:]
    try:
        plaintext = aesgcm.decrypt(nonce, sealed, None)
    except InvalidTag as e:
        raise DecryptionError("Authentication tag mismatch") from e
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionError("Plaintext is not UTF-8") from e


def sha256_hex(value: str) -> str:
    """Lowercase hex SHA-256 of the UTF-8 value; used for store keys and client secret hashes."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()
