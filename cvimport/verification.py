"""
Schema verification for extraction service responses.

Validates the service's structured draft against cv_schema.json before
anything downstream is allowed to see it.
"""

from __future__ import annotations

import json
from functools import lru_cache
from importlib.resources import files
from typing import Any, Dict, List, Optional

from jsonschema import Draft7Validator

from .errors import SchemaViolation
from .logging_utils import LOG
from .shared import VerificationResult


@lru_cache(maxsize=1)
def _bundled_schema_text() -> str:
    return files("cvimport.contracts").joinpath("cv_schema.json").read_text(encoding="utf-8")


def load_cv_schema() -> Dict[str, Any]:
    """Return a fresh copy of the fixed CV entity schema."""
    return json.loads(_bundled_schema_text())


def _format_path(path) -> str:
    out = ""
    for part in path:
        if isinstance(part, int):
            out += f"[{part}]"
        else:
            out += f".{part}" if out else str(part)
    return out or "<root>"


class SchemaVerifier:
    """
    Verifier that validates structured drafts against cv_schema.json.

    Uses full JSON Schema (draft 7) validation; every violation is reported
    with the path of the offending value.
    """

    def __init__(self, schema: Optional[Dict[str, Any]] = None):
        self.schema = schema if schema is not None else load_cv_schema()
        Draft7Validator.check_schema(self.schema)
        self._validator = Draft7Validator(self.schema)

    def verify(self, data: Any) -> VerificationResult:
        if not isinstance(data, dict):
            return VerificationResult(ok=False, errors=["response must be a JSON object"], warnings=[])

        errors: List[str] = []
        for err in sorted(self._validator.iter_errors(data), key=lambda e: list(e.absolute_path)):
            errors.append(f"{_format_path(err.absolute_path)}: {err.message}")

        warnings: List[str] = []
        known = set(self.schema.get("properties", {}))
        for key in data:
            if key not in known:
                warnings.append(f"unexpected top-level field ignored: {key}")

        return VerificationResult(ok=not errors, errors=errors, warnings=warnings)

    def require_valid(self, data: Any) -> Dict[str, Any]:
        """Return data unchanged if it conforms, else raise SchemaViolation."""
        result = self.verify(data)
        for warn in result.warnings:
            LOG.debug("schema: %s", warn)
        if not result.ok:
            LOG.warning("Service response failed schema validation: %s", "; ".join(result.errors[:5]))
            raise SchemaViolation(
                f"extraction service response does not match the CV schema ({result.errors[0]})",
                errors=result.errors,
            )
        return data


__all__ = ["SchemaVerifier", "load_cv_schema"]
