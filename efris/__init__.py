"""
EFRIS Python SDK.

Usage::

    from efris import Efris, EfrisConfig

    sdk = Efris(EfrisConfig(
        pfx_path="/path/to/cert.pfx",
        pfx_password="secret",
        tin="1000000000",
        device_no="TCS1234567890",
        env="sbx",
    ))

    sdk.system.sign_in()
    result = sdk.invoices.fiscalise(invoice)
    if result.is_success:
        print(result.content["basicInformation"]["invoiceNo"])
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from efris.errors import (
    APIError,
    AuthenticationError,
    ConfigError,
    EfrisError,
    EncryptionError,
    SchemaNotFoundError,
    ValidationError,
)
from efris.interfaces.envelope import Envelope
from efris.interfaces.registry import INTERFACES
from efris.runtime import CallerIdentity, EfrisConfig, EfrisRuntime, Environment
from efris.services.clock import TimeSource
from efris.services.codec import EnvelopeCodec
from efris.services.dispatcher import Dispatcher
from efris.services.identity import IdentityKeyStore
from efris.services.resources import (
    GoodsResource,
    InvoiceResource,
    SystemResource,
    TaxpayerResource,
)
from efris.services.session_key import SessionKeyManager
from efris.services.validator import Validator

__version__ = "1.0.0"

__all__ = [
    "Efris",
    "EfrisConfig",
    "Environment",
    "CallerIdentity",
    "Envelope",
    "INTERFACES",
    # Errors
    "EfrisError",
    "APIError",
    "AuthenticationError",
    "ConfigError",
    "EncryptionError",
    "SchemaNotFoundError",
    "ValidationError",
]

logging.getLogger(__name__).addHandler(logging.NullHandler())


class Efris:
    """
    Main entry point for the EFRIS Python SDK.

    Args:
        config:   Client configuration (credentials, environment, timeouts).
        session:  Optional ``requests.Session`` to send requests through.
    """

    system: SystemResource
    invoices: InvoiceResource
    taxpayers: TaxpayerResource
    goods: GoodsResource

    def __init__(self, config: EfrisConfig, *, session: Optional[requests.Session] = None) -> None:
        self.config = config
        self.clock = TimeSource()
        self.runtime = EfrisRuntime(config, session=session)
        self.key_store = IdentityKeyStore(config.pfx_path, config.pfx_password)
        self.codec = EnvelopeCodec(
            self.key_store,
            self.clock,
            user_name=config.user_name,
            longitude=config.longitude,
            latitude=config.latitude,
        )
        self.session_keys = SessionKeyManager(
            self.runtime,
            self.key_store,
            self.codec,
            identity=lambda: self.dispatcher.identity,
            ttl_s=config.session_key_ttl_s,
            timeout_s=config.key_timeout_s,
        )
        self.dispatcher = Dispatcher(
            self.runtime, self.key_store, self.session_keys, self.codec, config.identity,
        )
        self.validator = Validator()

        self.system = SystemResource(self.dispatcher, self.validator, self.session_keys, self.clock)
        self.invoices = InvoiceResource(self.dispatcher, self.validator)
        self.taxpayers = TaxpayerResource(self.dispatcher, self.validator)
        self.goods = GoodsResource(self.dispatcher, self.validator)

    @classmethod
    def from_env(cls, prefix: str = "EFRIS", **overrides: Any) -> "Efris":
        """Build a client from ``{prefix}_*`` environment variables."""
        return cls(EfrisConfig.from_env(prefix, **overrides))

    def call(
        self,
        operation_key: str,
        payload: Any = None,
        encrypt: bool = True,
        decrypt: bool = False,
    ) -> Envelope:
        """Send any registered operation through the generic dispatcher."""
        return self.dispatcher.call(operation_key, payload, encrypt=encrypt, decrypt=decrypt)
