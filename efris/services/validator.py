"""
Payload checks against the per-interface pydantic schemas.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from efris.errors import SchemaNotFoundError, ValidationError
from efris.models.schemas import SCHEMAS, SchemaEntry

logger = logging.getLogger(__name__)


def _format_errors(exc: PydanticValidationError) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    for error in exc.errors():
        path = ".".join(str(part) for part in error["loc"]) or "_root"
        errors.setdefault(path, error["msg"])
    return errors


class Validator:
    """
    Request validation is strict: failures raise ValidationError with
    field-level messages. Response validation is advisory only.
    """

    def __init__(self, schemas: Optional[Mapping[str, SchemaEntry]] = None) -> None:
        self._schemas = SCHEMAS if schemas is None else schemas

    def schema_for(self, code: str) -> SchemaEntry:
        try:
            return self._schemas[code]
        except KeyError:
            raise SchemaNotFoundError(code) from None

    def validate(self, data: Any, code: str) -> Any:
        """
        Return a filtered copy of ``data`` containing only recognised fields.

        Data for interfaces without a request schema is returned unchanged.

        Raises:
            ValidationError: One or more fields are missing or malformed.
        """
        entry = self._schemas.get(code)
        if entry is None or entry.request is None:
            return data
        if not isinstance(data, dict):
            raise ValidationError("Payload validation failed", {"_root": "Expected an object"})

        try:
            model = entry.request.model_validate(data)
        except PydanticValidationError as exc:
            raise ValidationError(f"Payload validation failed for {code}", _format_errors(exc)) from exc
        return model.model_dump(by_alias=True, exclude_none=True)

    def validate_response(self, content: Any, code: str) -> Any:
        """Check response content; log and carry on when it doesn't match."""
        entry = self._schemas.get(code)
        if entry is None or entry.response is None:
            return content

        try:
            entry.response.model_validate(content)
        except PydanticValidationError as exc:
            logger.warning("Response validation warning for %s: %s", code, _format_errors(exc))
        return content
