"""
Schema validator for the meeting artifact wire format (v1.0).

Pure and deterministic: no I/O, no provider calls. Validation is expressed
as a Draft 7 JSON Schema and evaluated with ``jsonschema``, collecting every
error rather than stopping at the first, so the full violation list can be
handed to the repair stage.

Extra keys policy: rejected by default (``additionalProperties: false`` on
every object). ``allow_extra_keys=True`` tolerates them.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List

from jsonschema import Draft7Validator
from jsonschema.exceptions import ValidationError as JsonSchemaError

from domain.models import SchemaViolation, ValidationOutcome
from shared_utils.constants import SCHEMA_VERSION


_NULLABLE_STRING = {"type": ["string", "null"]}
_NULLABLE_NUMBER = {"type": ["number", "null"]}

PIPELINE_RESULT_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["schema_version", "summary", "action_items"],
    "properties": {
        "schema_version": {"type": "string", "const": SCHEMA_VERSION},
        "summary": {
            "type": "object",
            "required": ["title", "tldr", "bullets"],
            "properties": {
                "title": {"type": "string"},
                "tldr": {"type": "string"},
                "bullets": {"type": "array", "items": {"type": "string"}},
            },
        },
        "action_items": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["task", "owner", "due_date", "evidence"],
                "properties": {
                    "task": {"type": "string"},
                    "owner": _NULLABLE_STRING,
                    "due_date": _NULLABLE_STRING,
                    "evidence": {
                        "type": "object",
                        "required": ["start_s", "end_s"],
                        "properties": {
                            "start_s": _NULLABLE_NUMBER,
                            "end_s": _NULLABLE_NUMBER,
                        },
                    },
                },
            },
        },
    },
}


def build_schema(allow_extra_keys: bool = False) -> Dict[str, Any]:
    """Return the artifact schema with the chosen extra-keys policy applied."""
    schema = copy.deepcopy(PIPELINE_RESULT_SCHEMA)
    if not allow_extra_keys:
        _close_objects(schema)
    return schema


def _close_objects(node: Any) -> None:
    if isinstance(node, dict):
        if node.get("type") == "object":
            node["additionalProperties"] = False
        for value in node.values():
            _close_objects(value)
    elif isinstance(node, list):
        for value in node:
            _close_objects(value)


def _format_path(parts: List[Any]) -> str:
    return ".".join(str(p) for p in parts) if parts else "$"


def _to_violation(error: JsonSchemaError) -> SchemaViolation:
    parts = list(error.absolute_path)
    # Point "required" errors at the missing field itself.
    if error.validator == "required" and isinstance(error.instance, dict):
        missing = [p for p in error.validator_value if p not in error.instance]
        if len(missing) == 1:
            parts.append(missing[0])
    return SchemaViolation(path=_format_path(parts), message=error.message)


class SchemaValidator:
    """Validate candidate results against the v1.0 artifact schema."""

    def __init__(self, allow_extra_keys: bool = False) -> None:
        self.allow_extra_keys = allow_extra_keys
        self._validator = Draft7Validator(build_schema(allow_extra_keys))

    def validate(self, candidate: Any) -> ValidationOutcome:
        """Return Ok, or Invalid with every violation found (sorted by path)."""
        violations = [_to_violation(e) for e in self._validator.iter_errors(candidate)]
        if not violations:
            return ValidationOutcome.accept()
        violations.sort(key=lambda v: (v.path, v.message))
        return ValidationOutcome.reject(violations)


_default_validator = SchemaValidator()


def validate(candidate: Any) -> ValidationOutcome:
    """Validate with the default (strict, extra keys rejected) policy."""
    return _default_validator.validate(candidate)
