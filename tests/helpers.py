"""
Shared fixtures for the EFRIS SDK tests: RSA identities, PKCS#12
containers, canned HTTP responses and server-side envelopes.
"""
from __future__ import annotations

import base64
import datetime
import gzip
import json
from pathlib import Path
from typing import Any, Dict, Optional
from unittest.mock import MagicMock

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding as asym_padding
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from efris.runtime import EfrisConfig
from efris.services import crypto

PFX_PASSWORD = "pfx-secret"
SESSION_KEY_HEX = "00112233445566778899aabbccddeeff"

_RSA_KEY: Optional[rsa.RSAPrivateKey] = None


def rsa_key() -> rsa.RSAPrivateKey:
    """One 2048-bit identity key per test run; generation is slow."""
    global _RSA_KEY
    if _RSA_KEY is None:
        _RSA_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return _RSA_KEY


def self_signed_cert(key: rsa.RSAPrivateKey) -> x509.Certificate:
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "efris-test-device")])
    now = datetime.datetime.now(datetime.timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .sign(key, hashes.SHA256())
    )


def write_pfx(directory: Path, key: Optional[rsa.RSAPrivateKey] = None,
              password: str = PFX_PASSWORD) -> Path:
    key = key or rsa_key()
    data = pkcs12.serialize_key_and_certificates(
        b"efris",
        key,
        self_signed_cert(key),
        None,
        serialization.BestAvailableEncryption(password.encode("utf-8")),
    )
    path = Path(directory) / "device.pfx"
    path.write_bytes(data)
    return path


def make_config(pfx_path: Any = "/nonexistent/device.pfx", **overrides: Any) -> EfrisConfig:
    values: Dict[str, Any] = {
        "pfx_path": str(pfx_path),
        "pfx_password": PFX_PASSWORD,
        "tin": "1000000000",
        "device_no": "TCS0000000001",
        "brn": "80020000000001",
    }
    values.update(overrides)
    return EfrisConfig(**values)


def mock_response(status_code: int, json_data: Any = None, text: Optional[str] = None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    if json_data is None and text is not None:
        resp.json.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")
    else:
        resp.json.return_value = json_data
    resp.text = text if text is not None else json.dumps(json_data)
    return resp


def response_envelope(
    content: Any = None,
    *,
    key: Optional[str] = None,
    compressed: bool = False,
    return_code: str = "00",
    return_message: str = "SUCCESS",
) -> Dict[str, Any]:
    """
    Build an envelope the way the service does.

    With ``key`` the content is AES-encrypted (codeType=1, encryptCode=2);
    with ``compressed`` the (possibly encrypted) bytes are gzipped last.
    """
    if content is None:
        content_b64, code_type, encrypt_code = "", "0", "1"
    else:
        raw = json.dumps(content).encode("utf-8") if not isinstance(content, bytes) else content
        if key is not None:
            data = base64.b64decode(crypto.encrypt(raw, key))
            code_type, encrypt_code = "1", "2"
        else:
            data = raw
            code_type, encrypt_code = "0", "1"
        if compressed:
            data = gzip.compress(data)
        content_b64 = base64.b64encode(data).decode("ascii")

    return {
        "data": {
            "content": content_b64,
            "signature": "",
            "dataDescription": {
                "codeType": code_type,
                "encryptCode": encrypt_code,
                "zipCode": "1" if compressed else "0",
            },
        },
        "globalInfo": {"interfaceCode": "T000", "dataExchangeId": "0" * 32},
        "returnStateInfo": {"returnCode": return_code, "returnMessage": return_message},
    }


def wrap_session_key(key_bytes: bytes, public_key: Any = None, b64_inner: bool = True) -> str:
    public_key = public_key or rsa_key().public_key()
    plain = base64.b64encode(key_bytes) if b64_inner else key_bytes
    return base64.b64encode(public_key.encrypt(plain, asym_padding.PKCS1v15())).decode("ascii")


def key_exchange_envelope(key_bytes: bytes = bytes.fromhex(SESSION_KEY_HEX),
                          field: str = "passowrdDes") -> Dict[str, Any]:
    """A successful T104 response carrying ``key_bytes`` wrapped for the identity key."""
    return response_envelope({field: wrap_session_key(key_bytes), "sign": "c2lnbmF0dXJl"})
