"""Validation and defaulting of template variables against ``variables_schema``.

Schemas are the JSON-Schema-like objects declared in ``scaffold.yaml``
(``type`` / ``properties`` / ``required`` / ``additionalProperties``).
Defaults are filled in before validation so a property with a ``default``
never fails a ``required`` check.  Every violation is reported, not just
the first one.
"""

from __future__ import annotations

import copy
import re
from typing import Any

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError
from pydantic import BaseModel, Field

_REQUIRED_MESSAGE = re.compile(r"^'(?P<name>[^']+)' is a required property$")


class SchemaValidation(BaseModel):
    """Outcome of :func:`validate_variables`."""

    success: bool
    data: dict[str, Any] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)


def apply_schema_defaults(schema: dict[str, Any], variables: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *variables* with schema defaults for absent properties.

    Nested ``object`` properties are defaulted recursively when the caller
    supplied (or a default created) a mapping for them.
    """
    result = dict(variables)
    properties = schema.get("properties") or {}
    for key, prop_schema in properties.items():
        if not isinstance(prop_schema, dict):
            continue
        if key not in result and "default" in prop_schema:
            result[key] = copy.deepcopy(prop_schema["default"])
        if isinstance(result.get(key), dict) and prop_schema.get("properties"):
            result[key] = apply_schema_defaults(prop_schema, result[key])
    return result


def validate_variables(schema: dict[str, Any] | None, raw_variables: dict[str, Any]) -> SchemaValidation:
    """Validate *raw_variables* against *schema* after applying defaults.

    Errors are formatted as ``path: message``; ``root`` stands in for the
    top-level object.
    """
    if not schema:
        return SchemaValidation(success=True, data=dict(raw_variables))

    data = apply_schema_defaults(schema, raw_variables)
    try:
        Draft7Validator.check_schema(schema)
    except SchemaError as exc:
        return SchemaValidation(
            success=False,
            data=dict(raw_variables),
            errors=[f"Schema parsing error: {exc.message}"],
        )

    validator = Draft7Validator(schema)
    errors = sorted(
        validator.iter_errors(data),
        key=lambda e: (".".join(map(str, e.absolute_path)), e.message),
    )
    if not errors:
        return SchemaValidation(success=True, data=data)

    return SchemaValidation(
        success=False,
        data=dict(raw_variables),
        errors=[_format_error(e) for e in errors],
    )


def _format_error(error: Any) -> str:
    parts = [str(p) for p in error.absolute_path]
    if error.validator == "required":
        match = _REQUIRED_MESSAGE.match(error.message)
        if match:
            parts.append(match.group("name"))
            return f"{'.'.join(parts)}: Required"
    path = ".".join(parts) if parts else "root"
    return f"{path}: {error.message}"
