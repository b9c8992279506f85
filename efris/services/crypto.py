"""
Cryptographic primitives for the EFRIS protocol.

AES in ECB mode with PKCS#7 padding (mandated by the remote protocol; no IV),
optional gzip framing, RSA-SHA1 signatures and PKCS#1 v1.5 unwrapping of
the session key issued by the key-exchange interface.

All functions are pure over bytes and raise EncryptionError on failure.
"""
from __future__ import annotations

import base64
import binascii
import gzip
import re
import zlib
from typing import Any, Optional, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.asymmetric import padding as asym_padding
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from efris.errors import EncryptionError

AES_BLOCK_SIZE = 16
VALID_KEY_LENGTHS = (16, 24, 32)
GZIP_MAGIC = b"\x1f\x8b"

_HEX_RE = re.compile(rb"[0-9a-fA-F]+")

KeyMaterial = Union[str, bytes]


def _as_bytes(value: KeyMaterial) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def normalize_symmetric_key(raw: KeyMaterial) -> bytes:
    """
    Normalise AES key material to raw bytes.

    Keys arrive either as hex text (configuration, cache) or as raw bytes
    (network). Hex of even length is decoded, but only kept when it yields
    a valid AES key size; anything else is returned as raw bytes.
    """
    data = _as_bytes(raw)
    if data and len(data) % 2 == 0 and _HEX_RE.fullmatch(data):
        decoded = bytes.fromhex(data.decode("ascii"))
        if len(decoded) in VALID_KEY_LENGTHS:
            return decoded
    return data


def _checked_key(key: KeyMaterial) -> bytes:
    raw = normalize_symmetric_key(key)
    if len(raw) not in VALID_KEY_LENGTHS:
        raise EncryptionError(f"AES key must be 16/24/32 bytes, got {len(raw)}")
    return raw


def _b64decode(value: KeyMaterial, what: str) -> bytes:
    try:
        return base64.b64decode(_as_bytes(value), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise EncryptionError(f"Base64 decode of {what} failed: {exc}") from exc


def _is_flag(value: Any, expected: str) -> bool:
    return str(value) == expected


def encrypt(plaintext: bytes, key: KeyMaterial) -> str:
    """
    Encrypt ``plaintext`` with AES-ECB/PKCS#7 and return Base64 ciphertext.

    Output is deterministic for a given key and plaintext.
    """
    raw_key = _checked_key(key)

    padder = padding.PKCS7(AES_BLOCK_SIZE * 8).padder()
    padded = padder.update(plaintext) + padder.finalize()

    encryptor = Cipher(algorithms.AES(raw_key), modes.ECB()).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return base64.b64encode(ciphertext).decode("ascii")


def decompress(data: bytes) -> bytes:
    """Gunzip ``data``; the gzip magic header is mandatory."""
    if data[:2] != GZIP_MAGIC:
        raise EncryptionError("Content flagged as compressed but is not gzip data")
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as exc:
        raise EncryptionError(f"GZIP decompression failed: {exc}") from exc


def decrypt(
    ciphertext_b64: KeyMaterial,
    key: Optional[KeyMaterial],
    encrypted_flag: Any = "2",
    compressed_flag: Any = "0",
) -> bytes:
    """
    Reverse the remote's content framing.

    Order is Base64 decode, then gunzip (``compressed_flag == "1"``), then
    AES-ECB decrypt and PKCS#7 unpad (``encrypted_flag == "2"``).
    """
    if not ciphertext_b64:
        return b""

    data = _b64decode(ciphertext_b64, "content")

    if _is_flag(compressed_flag, "1"):
        data = decompress(data)

    if _is_flag(encrypted_flag, "2"):
        if not key:
            raise EncryptionError("AES key required for decrypt")
        raw_key = _checked_key(key)
        if len(data) % AES_BLOCK_SIZE != 0:
            raise EncryptionError(
                f"Ciphertext length {len(data)} not multiple of {AES_BLOCK_SIZE}"
            )
        decryptor = Cipher(algorithms.AES(raw_key), modes.ECB()).decryptor()
        decrypted = decryptor.update(data) + decryptor.finalize()
        data = _pkcs7_unpad(decrypted)

    return data


def _pkcs7_unpad(data: bytes) -> bytes:
    if not data:
        raise EncryptionError("Cannot unpad empty plaintext")
    pad_len = data[-1]
    if pad_len < 1 or pad_len > AES_BLOCK_SIZE:
        raise EncryptionError(f"Invalid PKCS7 padding length: {pad_len}")
    unpadder = padding.PKCS7(AES_BLOCK_SIZE * 8).unpadder()
    try:
        return unpadder.update(data) + unpadder.finalize()
    except ValueError as exc:
        raise EncryptionError("PKCS7 padding verification failed") from exc


def sign(data: KeyMaterial, private_key: RSAPrivateKey) -> str:
    """Return the Base64 RSA-SHA1 (PKCS#1 v1.5) signature of ``data``."""
    try:
        signature = private_key.sign(_as_bytes(data), asym_padding.PKCS1v15(), hashes.SHA1())
    except (ValueError, TypeError, AttributeError, UnsupportedAlgorithm) as exc:
        raise EncryptionError(f"RSA-SHA1 signing failed: {exc}") from exc
    return base64.b64encode(signature).decode("ascii")


def unwrap_symmetric_key(wrapped_b64: KeyMaterial, private_key: RSAPrivateKey) -> bytes:
    """
    Recover the AES session key from the key-exchange response.

    The RSA-decrypted value is usually Base64 text of the key; when it is
    not, the decrypted bytes are used directly. An 8-byte candidate is
    doubled into an AES-128 key, which is how the service hands out short keys.
    """
    wrapped = _b64decode(wrapped_b64, "wrapped session key")
    try:
        decrypted = private_key.decrypt(wrapped, asym_padding.PKCS1v15())
    except (ValueError, TypeError, AttributeError) as exc:
        raise EncryptionError(f"RSA decryption of AES key failed: {exc}") from exc

    try:
        candidate = base64.b64decode(decrypted, validate=True)
    except (binascii.Error, ValueError):
        candidate = b""
    if not candidate:
        candidate = decrypted

    if len(candidate) == 8:
        key = (candidate + candidate)[:16]
    elif len(candidate) in VALID_KEY_LENGTHS:
        key = candidate
    else:
        key = candidate[:16]

    if len(key) not in VALID_KEY_LENGTHS:
        raise EncryptionError(f"Cannot use AES key of length {len(key)} bytes")
    return key
