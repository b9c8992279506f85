"""
IdentityKeyStore — the long-lived RSA private key used to sign requests
and unwrap session keys, loaded once from a PKCS#12 (.pfx) container.
"""
from __future__ import annotations

import hashlib
import logging
import threading
from pathlib import Path
from typing import Optional, Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.hazmat.primitives.serialization import pkcs12

from efris.errors import AuthenticationError
from efris.services import crypto

logger = logging.getLogger(__name__)


class IdentityKeyStore:
    """
    Loads and caches the identity key for the lifetime of this object.

    Loading is lazy and happens at most once, even when several threads
    race on first use.
    """

    def __init__(self, pfx_path: Union[str, Path], password: str = "") -> None:
        self._pfx_path = Path(pfx_path)
        self._password = password
        self._private_key: Optional[RSAPrivateKey] = None
        self._lock = threading.Lock()

    @property
    def pfx_path(self) -> Path:
        return self._pfx_path

    @property
    def is_loaded(self) -> bool:
        return self._private_key is not None

    def load(self) -> RSAPrivateKey:
        """
        Return the identity key, reading the container on first call.

        Raises:
            AuthenticationError: Container missing/unreadable, wrong password,
                                 or no RSA private key inside.
        """
        key = self._private_key
        if key is not None:
            return key
        with self._lock:
            if self._private_key is None:
                self._private_key = self._read_container()
            return self._private_key

    def sign(self, data: Union[str, bytes]) -> str:
        """Base64 RSA-SHA1 signature of ``data`` with the identity key."""
        return crypto.sign(data, self.load())

    def _read_container(self) -> RSAPrivateKey:
        if not self._pfx_path.is_file():
            raise AuthenticationError(f"PFX file not found: {self._pfx_path}")
        try:
            pfx_data = self._pfx_path.read_bytes()
        except OSError as exc:
            raise AuthenticationError(f"Failed to read PFX file: {self._pfx_path}: {exc}") from exc

        password = self._password.encode("utf-8") if self._password else None
        try:
            private_key, _cert, _extra = pkcs12.load_key_and_certificates(pfx_data, password)
        except (ValueError, TypeError) as exc:
            logger.error("Failed to load PFX %s: %s", self._pfx_path, exc)
            raise AuthenticationError(f"Failed to load PFX: {exc}") from exc

        if private_key is None:
            raise AuthenticationError("Private key extraction failed")
        if not isinstance(private_key, RSAPrivateKey):
            raise AuthenticationError(
                f"Unsupported identity key type: {type(private_key).__name__} (RSA required)"
            )

        public_der = private_key.public_key().public_bytes(
            serialization.Encoding.DER,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        logger.info(
            "Loaded private key with fingerprint: %s",
            hashlib.sha256(public_der).hexdigest(),
        )
        return private_key
