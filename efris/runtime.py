"""
EFRIS Runtime — configuration and the JSON-over-HTTPS transport.
"""
from __future__ import annotations

import json
import logging
import math
import os
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

import requests
from requests import RequestException, Response

from efris.errors import APIError, ConfigError

logger = logging.getLogger(__name__)

SDK_VERSION = "1.0.0"

SESSION_KEY_TTL_S: int = 23 * 60 * 60


class Environment(str, Enum):
    """Two-valued environment selector; each value owns a fixed endpoint."""

    SANDBOX = "sbx"
    PRODUCTION = "prod"

    @property
    def base_url(self) -> str:
        return BASE_URLS[self]

    @classmethod
    def parse(cls, value: Union[str, "Environment"]) -> "Environment":
        if isinstance(value, Environment):
            return value
        normalised = str(value).strip().lower()
        if normalised in ("sbx", "sandbox", "test"):
            return cls.SANDBOX
        if normalised in ("prod", "production"):
            return cls.PRODUCTION
        raise ConfigError(f"Unknown EFRIS environment: {value!r} (expected 'sbx' or 'prod')")


BASE_URLS: Mapping[Environment, str] = {
    Environment.SANDBOX: "https://efristest.ura.go.ug/efrisws/ws/taapp/getInformation",
    Environment.PRODUCTION: "https://efrisws.ura.go.ug/ws/taapp/getInformation",
}


@dataclass(frozen=True)
class CallerIdentity:
    """Who is calling: stamped into every envelope's metadata block."""

    tin: str
    device_no: str
    brn: str = ""
    taxpayer_id: str = "1"


@dataclass
class EfrisConfig:
    """Configuration for the EFRIS client."""

    pfx_path: str
    pfx_password: str
    tin: str
    device_no: str
    brn: str = ""
    taxpayer_id: str = "1"
    env: Environment = Environment.SANDBOX
    timeout_s: float = 60.0       # general calls
    key_timeout_s: float = 30.0   # session key negotiation
    session_key_ttl_s: int = SESSION_KEY_TTL_S
    debug: bool = False
    user_name: str = "admin"
    longitude: str = "32.5825"
    latitude: str = "0.3476"
    verify_ssl: bool = True
    extra_headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.env = Environment.parse(self.env)
        if self.timeout_s <= 0 or self.key_timeout_s <= 0:
            raise ConfigError("HTTP timeouts must be positive")
        if self.session_key_ttl_s <= 0:
            raise ConfigError("session_key_ttl_s must be positive")

    @property
    def base_url(self) -> str:
        return self.env.base_url

    @property
    def identity(self) -> CallerIdentity:
        return CallerIdentity(
            tin=self.tin,
            device_no=self.device_no,
            brn=self.brn or "",
            taxpayer_id=self.taxpayer_id or "1",
        )

    @classmethod
    def from_env(cls, prefix: str = "EFRIS", **overrides: Any) -> "EfrisConfig":
        """
        Build a config from ``{prefix}_*`` environment variables.

        Recognised variables: ``ENV``, ``TIN``, ``DEVICE_NO``, ``PFX_PATH``,
        ``PFX_PASSWORD``, ``BRN``, ``TAXPAYER_ID``, ``HTTP_TIMEOUT`` and
        ``DEBUG``. Keyword overrides win over the environment.
        """
        env = os.environ
        values: Dict[str, Any] = {
            "env": env.get(f"{prefix}_ENV") or "sbx",
            "tin": env.get(f"{prefix}_TIN", ""),
            "device_no": env.get(f"{prefix}_DEVICE_NO", ""),
            "pfx_path": env.get(f"{prefix}_PFX_PATH", ""),
            "pfx_password": env.get(f"{prefix}_PFX_PASSWORD", ""),
            "brn": env.get(f"{prefix}_BRN", ""),
            "taxpayer_id": env.get(f"{prefix}_TAXPAYER_ID") or "1",
            "debug": env.get(f"{prefix}_DEBUG", "").lower() in ("1", "true", "yes"),
        }
        timeout = env.get(f"{prefix}_HTTP_TIMEOUT")
        if timeout:
            try:
                values["timeout_s"] = float(timeout)
            except ValueError as exc:
                raise ConfigError(f"{prefix}_HTTP_TIMEOUT must be a number, got {timeout!r}") from exc
        values.update(overrides)

        missing = [name for name in ("tin", "device_no", "pfx_path") if not values.get(name)]
        if missing:
            names = ", ".join(f"{prefix}_{name.upper()}" for name in missing)
            raise ConfigError(f"Missing required EFRIS configuration: {names}")
        return cls(**values)


def full_jitter_delay(attempt: int, base_delay_s: float, max_delay_s: float) -> float:
    """
    Return a random delay drawn uniformly from [0, cap] where
    cap = min(max_delay_s, base_delay_s * 2^attempt) ("Full Jitter").
    """
    cap = min(max_delay_s, base_delay_s * math.pow(2, attempt))
    return random.uniform(0, cap)


class EfrisRuntime:
    """
    Low-level HTTP client for the EFRIS web service.

    Responsibilities:
    - Injects the JSON content type and SDK user agent on every request.
    - POSTs envelopes to the environment-selected endpoint.
    - Classifies failures: transport errors (status 0), non-200 HTTP
      statuses and unparseable JSON bodies all raise APIError.
    """

    def __init__(self, config: EfrisConfig, session: Optional[requests.Session] = None) -> None:
        self._config = config
        self._session = session or requests.Session()
        self._session.headers.update({
            "Content-Type": "application/json",
            "User-Agent": f"EFRIS-Python-SDK/{SDK_VERSION}",
        })
        if config.extra_headers:
            self._session.headers.update(config.extra_headers)

    @property
    def debug(self) -> bool:
        return self._config.debug

    @property
    def url(self) -> str:
        return self._config.base_url

    def post_envelope(self, envelope: Dict[str, Any], timeout: Optional[float] = None) -> Dict[str, Any]:
        """
        POST an envelope and return the decoded JSON body.

        Args:
            envelope: JSON-serialisable request envelope.
            timeout:  Seconds before the call is abandoned; defaults to
                      ``EfrisConfig.timeout_s``.

        Raises:
            APIError: On transport failure, non-200 status or invalid JSON.
        """
        timeout = self._config.timeout_s if timeout is None else timeout
        body = json.dumps(envelope, ensure_ascii=False, separators=(",", ":"))
        self._log_request(envelope)

        try:
            response = self._session.post(
                self.url,
                data=body.encode("utf-8"),
                timeout=timeout,
                verify=self._config.verify_ssl,
            )
        except RequestException as exc:
            logger.error("[EFRIS] Transport error: %s", exc)
            raise APIError(f"Transport error: {exc}", status_code=0) from exc

        return self._handle_response(response)

    def _handle_response(self, response: Response) -> Dict[str, Any]:
        """Return parsed JSON on 200; raise APIError otherwise."""
        if response.status_code != 200:
            logger.error("[EFRIS] HTTP %d: %s", response.status_code, response.text)
            raise APIError(
                f"HTTP {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            logger.error("[EFRIS] Invalid JSON response: %s", exc)
            raise APIError(f"Invalid JSON response: {exc}", status_code=500) from exc

        if not isinstance(data, dict):
            raise APIError("Invalid JSON response: expected an object", status_code=500)

        if self.debug:
            state = data.get("returnStateInfo")
            if not isinstance(state, dict):
                state = {}
            logger.debug("[EFRIS] Response returnCode: %s", state.get("returnCode", "N/A"))
        return data

    def _log_request(self, envelope: Dict[str, Any]) -> None:
        if not self.debug:
            return
        info = envelope.get("globalInfo") or {}
        logger.debug(
            "[EFRIS] HTTP Request: POST %s interface=%s exchange=%s",
            self.url, info.get("interfaceCode"), info.get("dataExchangeId"),
        )
