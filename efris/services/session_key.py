"""
SessionKeyManager — negotiates, caches and expires the AES session key.

States: Absent (nothing cached, or forgotten) and Valid(key, fetched_at).
A key is served from cache until ``fetched_at + ttl``; after that, or on
``force``, one signed round trip to the key-exchange interface (T104)
replaces it. Concurrent callers that find the key absent share a single
in-flight negotiation and all receive its key or its failure.
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
import threading
import time
from concurrent.futures import Future
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from efris.errors import APIError, EncryptionError
from efris.interfaces.envelope import SUCCESS_RETURN_MESSAGE
from efris.interfaces.registry import SESSION_KEY_INTERFACE
from efris.runtime import SESSION_KEY_TTL_S, CallerIdentity, EfrisRuntime
from efris.services import crypto
from efris.services.codec import EnvelopeCodec
from efris.services.identity import IdentityKeyStore

logger = logging.getLogger(__name__)

# The service misspells the field; accept both spellings.
WRAPPED_KEY_FIELDS = ("passowrdDes", "passwordDes")


class SessionKeyManager:
    """
    Owns the short-lived symmetric session key.

    Args:
        runtime:    Transport used for the negotiation round trip.
        key_store:  Identity key used to sign the request and unwrap the key.
        codec:      Builds the negotiation envelope.
        identity:   Callable returning the current caller identity.
        ttl_s:      Cache lifetime of a negotiated key, in seconds.
        timeout_s:  HTTP timeout for the negotiation call.
        clock:      Epoch-seconds clock; injectable for tests.
    """

    def __init__(
        self,
        runtime: EfrisRuntime,
        key_store: IdentityKeyStore,
        codec: EnvelopeCodec,
        identity: Callable[[], CallerIdentity],
        ttl_s: float = SESSION_KEY_TTL_S,
        timeout_s: float = 30.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._runtime = runtime
        self._key_store = key_store
        self._codec = codec
        self._identity = identity
        self._ttl_s = ttl_s
        self._timeout_s = timeout_s
        self._clock = clock

        self._key_hex: Optional[str] = None
        self._fetched_at: Optional[float] = None
        self._content: Optional[Dict[str, Any]] = None

        self._lock = threading.Lock()
        self._inflight: Optional[Future] = None
        self._generation = 0

    # ------------------------------------------------------------------
    # State inspection
    # ------------------------------------------------------------------

    @property
    def ttl_s(self) -> float:
        return self._ttl_s

    @property
    def key(self) -> Optional[str]:
        """Cached key as hex text, or None when absent."""
        return self._key_hex

    @property
    def key_bytes(self) -> Optional[bytes]:
        return bytes.fromhex(self._key_hex) if self._key_hex is not None else None

    @property
    def fetched_at(self) -> Optional[float]:
        return self._fetched_at

    @property
    def content(self) -> Optional[Dict[str, Any]]:
        """Decoded content of the last key-exchange response."""
        return self._content

    def is_valid(self) -> bool:
        with self._lock:
            return self._is_valid_locked()

    def valid_until(self) -> Optional[datetime]:
        fetched_at = self._fetched_at
        if self._key_hex is None or fetched_at is None:
            return None
        return datetime.fromtimestamp(fetched_at + self._ttl_s, tz=timezone.utc)

    def forget(self) -> None:
        with self._lock:
            self._key_hex = None
            self._fetched_at = None
            self._content = None
            self._generation += 1
        logger.debug("Session key forgotten")

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    def fetch(self, force: bool = False) -> str:
        """
        Return the session key (hex), negotiating a new one when needed.

        Raises:
            APIError:        Transport failure or remote refusal.
            EncryptionError: The returned key material cannot be unwrapped.
        """
        with self._lock:
            if not force and self._is_valid_locked():
                logger.debug("Using cached AES key")
                return self._key_hex  # type: ignore[return-value]
            inflight = self._inflight
            leader = inflight is None
            if leader:
                inflight = self._inflight = Future()
                generation = self._generation

        if not leader:
            logger.debug("Joining in-flight session key negotiation")
            return inflight.result()

        try:
            key_hex, content = self._negotiate()
        except BaseException as exc:
            with self._lock:
                self._inflight = None
            inflight.set_exception(exc)
            raise

        with self._lock:
            installed = self._generation == generation
            if installed:
                self._key_hex = key_hex
                self._fetched_at = self._clock()
                self._content = content
            self._inflight = None
        inflight.set_result(key_hex)
        if installed:
            logger.info("AES key fetched and cached; valid until %s", self.valid_until())
        else:
            logger.debug("Session key forgotten during negotiation; result not cached")
        return key_hex

    def _is_valid_locked(self) -> bool:
        return (
            self._key_hex is not None
            and self._fetched_at is not None
            and (self._clock() - self._fetched_at) < self._ttl_s
        )

    def _negotiate(self) -> Tuple[str, Dict[str, Any]]:
        logger.info("Fetching AES symmetric key from %s endpoint", SESSION_KEY_INTERFACE)
        private_key = self._key_store.load()

        envelope = self._codec.build_signed_plain({}, SESSION_KEY_INTERFACE, self._identity())
        raw = self._runtime.post_envelope(envelope.as_dict(), timeout=self._timeout_s)

        state = raw.get("returnStateInfo") or {}
        if not isinstance(state, dict):
            raise APIError(f"{SESSION_KEY_INTERFACE} failed: malformed returnStateInfo", status_code=500)
        if state.get("returnMessage") != SUCCESS_RETURN_MESSAGE:
            message = state.get("returnMessage") or "Unknown error"
            code = str(state.get("returnCode") or "99")
            logger.error("%s failed: %s (code: %s)", SESSION_KEY_INTERFACE, message, code)
            raise APIError(
                f"{SESSION_KEY_INTERFACE} failed: {message}",
                return_code=code,
                return_message=message,
            )

        content = _decode_content(raw)
        wrapped = next((content[name] for name in WRAPPED_KEY_FIELDS if content.get(name)), None)
        if not wrapped:
            raise EncryptionError(f"Missing AES key field in {SESSION_KEY_INTERFACE} response")

        key = crypto.unwrap_symmetric_key(wrapped, private_key)
        return key.hex(), content


def _decode_content(raw: Dict[str, Any]) -> Dict[str, Any]:
    data = raw.get("data") or {}
    if not isinstance(data, dict):
        raise APIError(f"{SESSION_KEY_INTERFACE} failed: malformed data block", status_code=500)
    content_b64 = data.get("content") or ""
    if not isinstance(content_b64, str):
        raise APIError(f"{SESSION_KEY_INTERFACE} failed: malformed content", status_code=500)
    if not content_b64:
        raise EncryptionError(f"Missing content in {SESSION_KEY_INTERFACE} response")
    try:
        content = json.loads(base64.b64decode(content_b64, validate=True))
    except (binascii.Error, ValueError) as exc:
        raise EncryptionError(f"Failed to decode {SESSION_KEY_INTERFACE} content JSON: {exc}") from exc
    if not isinstance(content, dict):
        raise EncryptionError(f"{SESSION_KEY_INTERFACE} content is not a JSON object")
    return content
