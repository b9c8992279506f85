"""
The generic ``call`` primitive behind every operation.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Optional

from efris.errors import EncryptionError
from efris.interfaces.envelope import Envelope
from efris.interfaces.registry import resolve
from efris.runtime import CallerIdentity, EfrisRuntime
from efris.services.codec import EnvelopeCodec
from efris.services.identity import IdentityKeyStore
from efris.services.session_key import SessionKeyManager

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Resolves operation keys, builds envelopes and classifies failures.

    The remote status block of the returned envelope is not interpreted
    here; callers decide whether a non-success status is fatal.
    """

    def __init__(
        self,
        runtime: EfrisRuntime,
        key_store: IdentityKeyStore,
        session_keys: SessionKeyManager,
        codec: EnvelopeCodec,
        identity: CallerIdentity,
    ) -> None:
        self._runtime = runtime
        self._key_store = key_store
        self._session_keys = session_keys
        self._codec = codec
        self._identity = identity

    @property
    def identity(self) -> CallerIdentity:
        return self._identity

    def set_taxpayer_id(self, taxpayer_id: str) -> None:
        self._identity = dataclasses.replace(self._identity, taxpayer_id=taxpayer_id)

    def call(
        self,
        operation_key: str,
        payload: Any = None,
        encrypt: bool = True,
        decrypt: bool = False,
    ) -> Envelope:
        """
        Send one request and return the parsed response envelope.

        Args:
            operation_key: Key from the interface registry (e.g. "billing_upload").
            payload:       JSON-serialisable request content.
            encrypt:       AES-encrypt the request content.
            decrypt:       Expect (and decrypt) an AES-encrypted response.

        Raises:
            APIError:            Unknown key, transport/HTTP failure or bad JSON.
            EncryptionError:     Session key unobtainable or a crypto step failed.
            AuthenticationError: Identity key could not be loaded.
        """
        interface_code = resolve(operation_key)
        payload = {} if payload is None else payload

        session_key: Optional[str] = None
        if encrypt or decrypt:
            session_key = self._session_keys.fetch()
            if not session_key:
                raise EncryptionError("AES symmetric key not available")

        self._key_store.load()

        if encrypt:
            envelope = self._codec.build_signed_encrypted(payload, session_key, interface_code, self._identity)
        else:
            envelope = self._codec.build_signed_plain(payload, interface_code, self._identity)

        if self._runtime.debug:
            logger.debug(
                "[EFRIS] Sending request to interface %s (encrypt=%s, decrypt=%s)",
                interface_code, encrypt, decrypt,
            )

        raw = self._runtime.post_envelope(envelope.as_dict())
        return self._codec.parse_response(raw, session_key if decrypt else None)
