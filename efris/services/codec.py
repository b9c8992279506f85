"""
Builds outbound envelopes and unwraps inbound ones.
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from typing import Any, Dict, Optional

from efris.errors import EncryptionError
from efris.interfaces.envelope import (
    CODE_TYPE_BINARY,
    CODE_TYPE_PLAIN,
    ENCRYPT_CODE_AES,
    ENCRYPT_CODE_PLAIN,
    ZIP_CODE_NONE,
    DataDescription,
    Envelope,
    ExtendField,
    GlobalInfo,
    Payload,
    ReturnStateInfo,
)
from efris.runtime import CallerIdentity
from efris.services import crypto
from efris.services.clock import TimeSource
from efris.services.identity import IdentityKeyStore

logger = logging.getLogger(__name__)


def new_exchange_id() -> str:
    """Fresh 128-bit correlation id as 32 uppercase hex characters."""
    return os.urandom(16).hex().upper()


def encode_content(content: Any) -> bytes:
    """Serialise a payload the way the service expects (compact, unescaped UTF-8)."""
    return json.dumps(content, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


class EnvelopeCodec:
    """
    Envelope build/parse protocol.

    Args:
        key_store:  Identity key used for signatures. When ``None``, plain
                    envelopes go out unsigned and encrypted ones are refused.
        clock:      Source of request timestamps.
        user_name:  Operator name stamped into the metadata block.
        longitude:  Static geolocation placeholder.
        latitude:   Static geolocation placeholder.
    """

    def __init__(
        self,
        key_store: Optional[IdentityKeyStore] = None,
        clock: Optional[TimeSource] = None,
        user_name: str = "admin",
        longitude: str = "32.5825",
        latitude: str = "0.3476",
    ) -> None:
        self._key_store = key_store
        self._clock = clock or TimeSource()
        self._user_name = user_name
        self._longitude = longitude
        self._latitude = latitude

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build_metadata(self, interface_code: str, identity: CallerIdentity) -> GlobalInfo:
        return GlobalInfo(
            interface_code=interface_code,
            data_exchange_id=new_exchange_id(),
            request_time=self._clock.now_request_format(),
            tin=identity.tin,
            device_no=identity.device_no,
            brn=identity.brn or "",
            taxpayer_id=identity.taxpayer_id or "1",
            user_name=self._user_name,
            longitude=self._longitude,
            latitude=self._latitude,
            extend_field=ExtendField(operator_name=self._user_name),
        )

    def build_signed_plain(self, content: Any, interface_code: str, identity: CallerIdentity) -> Envelope:
        """
        Base64 JSON content, signed when an identity key is available.

        Empty content produces empty content and signature fields.
        """
        content_b64 = ""
        signature = ""
        if content:
            content_b64 = base64.b64encode(encode_content(content)).decode("ascii")
            if self._key_store is not None:
                signature = self._key_store.sign(content_b64)

        return Envelope(
            data=Payload(
                content=content_b64,
                signature=signature,
                description=DataDescription(CODE_TYPE_PLAIN, ENCRYPT_CODE_PLAIN, ZIP_CODE_NONE),
            ),
            global_info=self.build_metadata(interface_code, identity),
            return_state=ReturnStateInfo(),
        )

    def build_signed_encrypted(
        self,
        content: Any,
        session_key: crypto.KeyMaterial,
        interface_code: str,
        identity: CallerIdentity,
    ) -> Envelope:
        """AES-encrypted content; the signature covers the Base64 ciphertext."""
        if self._key_store is None:
            raise EncryptionError("Encrypted requests require an identity key")
        encrypted_b64 = crypto.encrypt(encode_content(content), session_key)
        signature = self._key_store.sign(encrypted_b64)

        return Envelope(
            data=Payload(
                content=encrypted_b64,
                signature=signature,
                description=DataDescription(CODE_TYPE_BINARY, ENCRYPT_CODE_AES, ZIP_CODE_NONE),
            ),
            global_info=self.build_metadata(interface_code, identity),
            return_state=ReturnStateInfo(),
        )

    # ------------------------------------------------------------------
    # Parse
    # ------------------------------------------------------------------

    def parse_response(
        self,
        raw: Dict[str, Any],
        session_key: Optional[crypto.KeyMaterial] = None,
    ) -> Envelope:
        """
        Unwrap a response envelope.

        The status block is surfaced, not enforced. Content is decoded
        according to its description flags and replaced by the decoded JSON
        structure, or by the decoded text when it is not JSON.
        """
        envelope = Envelope.from_dict(raw)
        content = envelope.data.content
        if not content or not isinstance(content, str):
            return envelope

        description = envelope.data.description
        if description.is_binary:
            if not session_key:
                raise EncryptionError("Encrypted response but no AES key provided")
            decoded = crypto.decrypt(
                content,
                session_key,
                encrypted_flag=description.encrypt_code,
                compressed_flag=description.zip_code,
            )
        else:
            try:
                decoded = base64.b64decode(content, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise EncryptionError(f"Base64 decode failed: {exc}") from exc
            if description.is_compressed:
                decoded = crypto.decompress(decoded)

        text = decoded.decode("utf-8", errors="replace")
        try:
            envelope.data.content = json.loads(text)
        except ValueError:
            logger.debug("Response content for %s is not JSON; keeping raw text",
                         envelope.global_info.interface_code if envelope.global_info else "?")
            envelope.data.content = text
        return envelope
