"""Tests for the Encryption Unit: AES-256-GCM round trip, nonce freshness, tamper detection, key validation."""
import base64

import pytest

from broker.crypto import ConfigurationError, DecryptionError, decrypt, encrypt, sha256_hex, validate_key

KEY = "0123456789abcdef" * 4
OTHER_KEY = "f" * 64


@pytest.mark.parametrize("plaintext", ["", "hello", '{"token": "abc"}', "naïve ☕ data", "x" * 10_000])
def test_round_trip(plaintext):
    assert decrypt(encrypt(plaintext, KEY), KEY) == plaintext


def test_uppercase_hex_key_accepted():
    assert decrypt(encrypt("v", KEY.upper()), KEY) == "v"


def test_same_plaintext_encrypts_differently():
    assert encrypt("same", KEY) != encrypt("same", KEY)


def test_blob_is_nonce_then_ciphertext_and_tag():
    raw = base64.b64decode(encrypt("abcd", KEY))
    assert len(raw) == 12 + 4 + 16


def test_tampered_ciphertext_fails():
    raw = bytearray(base64.b64decode(encrypt("secret data", KEY)))
    raw[-1] ^= 0x01
    with pytest.raises(DecryptionError):
        decrypt(base64.b64encode(bytes(raw)).decode(), KEY)


def test_tampered_nonce_fails():
    raw = bytearray(base64.b64decode(encrypt("secret data", KEY)))
    raw[0] ^= 0x80
    with pytest.raises(DecryptionError):
        decrypt(base64.b64encode(bytes(raw)).decode(), KEY)


def test_wrong_key_fails():
    with pytest.raises(DecryptionError):
        decrypt(encrypt("secret data", KEY), OTHER_KEY)


@pytest.mark.parametrize("blob", ["not base64!!", "", base64.b64encode(b"short").decode()])
def test_malformed_blob_fails(blob):
    with pytest.raises(DecryptionError):
        decrypt(blob, KEY)


@pytest.mark.parametrize("bad_key", ["", "abc", "0" * 63, "0" * 65, "g" * 64, None])
def test_invalid_key_is_configuration_error(bad_key):
    with pytest.raises(ConfigurationError):
        encrypt("x", bad_key)
    with pytest.raises(ConfigurationError):
        validate_key(bad_key)


def test_configuration_error_precedes_decryption():
    with pytest.raises(ConfigurationError):
        decrypt("not base64!!", "short")


def test_sha256_hex():
    assert sha256_hex("abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
