"""
Tests for the AES/RSA primitives in efris.services.crypto.
"""
from __future__ import annotations

import base64
import gzip
import os
import unittest

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from efris.errors import EncryptionError
from efris.services import crypto
from tests.helpers import SESSION_KEY_HEX, rsa_key, wrap_session_key


def _raw_ecb(block_data: bytes, key: bytes) -> str:
    """Encrypt already-padded data so tests can plant arbitrary padding bytes."""
    encryptor = Cipher(algorithms.AES(key), modes.ECB()).encryptor()
    return base64.b64encode(encryptor.update(block_data) + encryptor.finalize()).decode("ascii")


# ---------------------------------------------------------------------------
# 1. Key normalisation
# ---------------------------------------------------------------------------

class TestNormalizeSymmetricKey(unittest.TestCase):

    def test_hex_text_decodes_to_raw_key(self):
        for size in (16, 24, 32):
            key = os.urandom(size)
            self.assertEqual(crypto.normalize_symmetric_key(key.hex()), key)
            self.assertEqual(crypto.normalize_symmetric_key(key.hex().upper().encode()), key)

    def test_raw_bytes_pass_through(self):
        key = b"\xff" * 16
        self.assertEqual(crypto.normalize_symmetric_key(key), key)

    def test_non_hex_text_is_treated_as_raw(self):
        self.assertEqual(crypto.normalize_symmetric_key("not-hex-key-16ch"), b"not-hex-key-16ch")

    def test_hex_of_invalid_length_is_kept_raw(self):
        # 10 hex chars -> 5 bytes, not an AES size, so the text itself is the key
        self.assertEqual(crypto.normalize_symmetric_key("abcdef0123"), b"abcdef0123")

    def test_odd_length_hex_is_kept_raw(self):
        self.assertEqual(crypto.normalize_symmetric_key("abc"), b"abc")


# ---------------------------------------------------------------------------
# 2. AES-ECB encrypt / decrypt
# ---------------------------------------------------------------------------

class TestEncryptDecrypt(unittest.TestCase):

    def test_round_trip_for_every_key_size(self):
        for size in (16, 24, 32):
            key = os.urandom(size)
            for plaintext in (b"", b"x", b"0123456789abcdef", os.urandom(100)):
                ciphertext = crypto.encrypt(plaintext, key)
                self.assertEqual(crypto.decrypt(ciphertext, key, "2", "0"), plaintext)

    def test_encrypt_is_deterministic(self):
        self.assertEqual(
            crypto.encrypt(b'{"a":1}', SESSION_KEY_HEX),
            crypto.encrypt(b'{"a":1}', SESSION_KEY_HEX),
        )

    def test_ciphertext_is_block_aligned(self):
        raw = base64.b64decode(crypto.encrypt(b"0123456789abcdef", SESSION_KEY_HEX))
        # A full block of plaintext gains a full block of padding
        self.assertEqual(len(raw), 32)

    def test_encrypt_rejects_bad_key_length(self):
        with self.assertRaises(EncryptionError):
            crypto.encrypt(b"data", b"short")

    def test_end_to_end_with_hex_key(self):
        ciphertext = crypto.encrypt(b'{"a":1}', SESSION_KEY_HEX)
        self.assertEqual(crypto.decrypt(ciphertext, SESSION_KEY_HEX, encrypted_flag=2, compressed_flag=0), b'{"a":1}')

    def test_flipped_last_byte_never_yields_original(self):
        raw = bytearray(base64.b64decode(crypto.encrypt(b'{"a":1}', SESSION_KEY_HEX)))
        failures = 0
        for mask in (0x01, 0x02, 0x10, 0x80, 0xFF):
            tampered = bytearray(raw)
            tampered[-1] ^= mask
            try:
                result = crypto.decrypt(base64.b64encode(bytes(tampered)).decode(), SESSION_KEY_HEX, "2", "0")
            except EncryptionError:
                failures += 1
            else:
                self.assertNotEqual(result, b'{"a":1}')
        # A random final block carries valid padding far less than once in five tries
        self.assertGreaterEqual(failures, 4)

    def test_decrypt_requires_key(self):
        ciphertext = crypto.encrypt(b"data", SESSION_KEY_HEX)
        with self.assertRaises(EncryptionError):
            crypto.decrypt(ciphertext, None, "2", "0")

    def test_decrypt_rejects_unaligned_ciphertext(self):
        with self.assertRaises(EncryptionError):
            crypto.decrypt(base64.b64encode(b"x" * 15).decode(), SESSION_KEY_HEX, "2", "0")

    def test_decrypt_rejects_invalid_base64(self):
        with self.assertRaises(EncryptionError):
            crypto.decrypt("***not base64***", SESSION_KEY_HEX, "2", "0")

    def test_empty_ciphertext_decrypts_to_empty(self):
        self.assertEqual(crypto.decrypt("", SESSION_KEY_HEX), b"")

    def test_plain_flag_skips_decryption(self):
        encoded = base64.b64encode(b"hello").decode()
        self.assertEqual(crypto.decrypt(encoded, None, encrypted_flag="1", compressed_flag="0"), b"hello")


# ---------------------------------------------------------------------------
# 3. PKCS#7 padding rejection
# ---------------------------------------------------------------------------

class TestPaddingRejection(unittest.TestCase):
    key = bytes.fromhex(SESSION_KEY_HEX)

    def _assert_rejected(self, block: bytes) -> None:
        with self.assertRaises(EncryptionError):
            crypto.decrypt(_raw_ecb(block, self.key), self.key, "2", "0")

    def test_zero_pad_length(self):
        self._assert_rejected(b"A" * 15 + b"\x00")

    def test_pad_length_over_block_size(self):
        self._assert_rejected(b"A" * 15 + b"\x11")

    def test_pad_bytes_do_not_match(self):
        self._assert_rejected(b"A" * 12 + b"\x01\x04\x04\x04")

    def test_valid_padding_accepted(self):
        plaintext = crypto.decrypt(_raw_ecb(b"A" * 12 + b"\x04" * 4, self.key), self.key, "2", "0")
        self.assertEqual(plaintext, b"A" * 12)


# ---------------------------------------------------------------------------
# 4. Compression
# ---------------------------------------------------------------------------

class TestCompression(unittest.TestCase):

    def test_decompress_then_decrypt(self):
        ciphertext = base64.b64decode(crypto.encrypt(b'{"zipped":true}', SESSION_KEY_HEX))
        framed = base64.b64encode(gzip.compress(ciphertext)).decode()
        self.assertEqual(crypto.decrypt(framed, SESSION_KEY_HEX, "2", "1"), b'{"zipped":true}')

    def test_compressed_plaintext(self):
        framed = base64.b64encode(gzip.compress(b"plain")).decode()
        self.assertEqual(crypto.decrypt(framed, None, "1", "1"), b"plain")

    def test_missing_gzip_magic(self):
        with self.assertRaises(EncryptionError):
            crypto.decrypt(base64.b64encode(b"not gzip").decode(), None, "1", "1")

    def test_corrupt_gzip_stream(self):
        corrupt = gzip.compress(b"payload" * 20)[:12]
        with self.assertRaises(EncryptionError):
            crypto.decrypt(base64.b64encode(corrupt).decode(), None, "1", "1")


# ---------------------------------------------------------------------------
# 5. RSA signing and session-key unwrapping
# ---------------------------------------------------------------------------

class TestRsa(unittest.TestCase):

    def test_signature_verifies_with_sha1(self):
        from cryptography.hazmat.primitives import hashes
        from cryptography.hazmat.primitives.asymmetric import padding

        signature = crypto.sign("payload", rsa_key())
        rsa_key().public_key().verify(
            base64.b64decode(signature), b"payload", padding.PKCS1v15(), hashes.SHA1()
        )

    def test_sign_failure_is_encryption_error(self):
        with self.assertRaises(EncryptionError):
            crypto.sign("payload", None)

    def test_unwrap_base64_wrapped_key(self):
        key = os.urandom(32)
        self.assertEqual(crypto.unwrap_symmetric_key(wrap_session_key(key), rsa_key()), key)

    def test_unwrap_raw_wrapped_key(self):
        # 16 random bytes are (practically) never valid Base64 text
        key = b"\x00\xff" * 8
        wrapped = wrap_session_key(key, b64_inner=False)
        self.assertEqual(crypto.unwrap_symmetric_key(wrapped, rsa_key()), key)

    def test_short_key_is_doubled(self):
        seed = b"8bytekey"
        unwrapped = crypto.unwrap_symmetric_key(wrap_session_key(seed), rsa_key())
        self.assertEqual(unwrapped, seed + seed)
        self.assertEqual(len(unwrapped), 16)

    def test_odd_length_key_is_truncated(self):
        candidate = bytes(range(20))
        unwrapped = crypto.unwrap_symmetric_key(wrap_session_key(candidate), rsa_key())
        self.assertEqual(unwrapped, candidate[:16])

    def test_too_short_key_is_rejected(self):
        with self.assertRaises(EncryptionError):
            crypto.unwrap_symmetric_key(wrap_session_key(b"tiny"), rsa_key())

    def test_unwrap_rejects_invalid_base64(self):
        with self.assertRaises(EncryptionError):
            crypto.unwrap_symmetric_key("!!!", rsa_key())


if __name__ == "__main__":
    unittest.main()
