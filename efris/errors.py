"""
Exception hierarchy for the EFRIS SDK.

Every error raised by the SDK derives from :class:`EfrisError`, so callers
can catch the whole family with a single ``except`` clause.
"""
from __future__ import annotations

from typing import Dict, Optional


class EfrisError(Exception):
    """Base class for all SDK errors."""

    error_type = "UNKNOWN"

    def __init__(self, message: str, error_type: Optional[str] = None) -> None:
        super().__init__(message)
        if error_type is not None:
            self.error_type = error_type

    def __repr__(self) -> str:
        return f"{type(self).__name__}(error_type={self.error_type!r}, message={str(self)!r})"


class ConfigError(EfrisError):
    """Invalid or incomplete client configuration."""

    error_type = "CONFIG_ERROR"


class AuthenticationError(EfrisError):
    """Identity key container missing, unreadable, or extraction failed."""

    error_type = "AUTHENTICATION_ERROR"

    def __init__(self, message: str = "Authentication failed", status_code: int = 401) -> None:
        super().__init__(message)
        self.status_code = status_code


class EncryptionError(EfrisError):
    """Any cryptographic step failed (padding, key length, signing, unwrap...)."""

    error_type = "ENCRYPTION_ERROR"


class APIError(EfrisError):
    """
    Raised for unknown operation keys, transport failures (status code 0),
    non-200 HTTP responses, malformed JSON bodies and remote-reported failures.
    """

    error_type = "API_ERROR"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        return_code: Optional[str] = None,
        return_message: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.return_code = return_code
        self.return_message = return_message

    def __repr__(self) -> str:
        return (
            f"APIError(status_code={self.status_code!r}, "
            f"return_code={self.return_code!r}, message={str(self)!r})"
        )


class ValidationError(EfrisError):
    """Field-level validation failure, keyed by dotted field path."""

    error_type = "VALIDATION_ERROR"

    def __init__(self, message: str, errors: Dict[str, str]) -> None:
        super().__init__(message)
        self.errors = errors

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def field_error(self, field_path: str) -> Optional[str]:
        return self.errors.get(field_path)

    def __str__(self) -> str:
        return f"{self.args[0]}: {self.errors}"


class SchemaNotFoundError(EfrisError):
    error_type = "SCHEMA_NOT_FOUND"

    def __init__(self, schema_key: str) -> None:
        super().__init__(f"Schema '{schema_key}' not found in registry")
        self.schema_key = schema_key
