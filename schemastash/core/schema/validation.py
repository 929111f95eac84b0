"""
JSON Schema validation.

Validation results are returned, never raised: the caller decides whether
an invalid document is fatal.
"""

from typing import Any

from jsonschema import exceptions as jsonschema_exceptions
from jsonschema.validators import validator_for

from schemastash.core.models import ValidationError, ValidationResult
from schemastash.observability.logger import get_logger

logger = get_logger(__name__)


def _format_path(path) -> str:
    out = "$"
    for part in path:
        out += f"[{part}]" if isinstance(part, int) else f".{part}"
    return out


def _to_validation_error(error: jsonschema_exceptions.ValidationError) -> ValidationError:
    return ValidationError(
        path=_format_path(error.absolute_path),
        message=error.message,
        validator=str(error.validator) if error.validator is not None else None,
    )


def check_schema(schema: Any) -> ValidationResult:
    """
    Validate a schema document against its meta-schema.

    Returns:
        ValidationResult whose data is the schema itself
    """
    if not isinstance(schema, dict):
        return ValidationResult(
            data=schema,
            is_valid=False,
            errors=[ValidationError(message="schema must be a JSON object")],
        )
    validator_class = validator_for(schema)
    meta_validator = validator_class(validator_class.META_SCHEMA)
    errors = [
        _to_validation_error(e)
        for e in sorted(meta_validator.iter_errors(schema), key=lambda e: list(e.absolute_path))
    ]
    return ValidationResult(
        data=schema,
        json_schema=validator_class.META_SCHEMA,
        is_valid=not errors,
        errors=errors,
    )


def validate_data_with_schema(data: Any, schema: dict[str, Any]) -> ValidationResult:
    """
    Validate data against a JSON Schema.

    A malformed schema is reported as an invalid result rather than raised.

    Args:
        data: Any JSON value
        schema: JSON Schema document

    Returns:
        ValidationResult with every violation found
    """
    schema_check = check_schema(schema)
    if not schema_check.is_valid:
        logger.warning(
            "Validation schema failed its meta-schema check",
            extra={"schema_title": schema.get("title") if isinstance(schema, dict) else None},
        )
        return ValidationResult(
            data=data, json_schema=schema, is_valid=False, errors=schema_check.errors
        )

    validator = validator_for(schema)(schema)
    errors = [
        _to_validation_error(e)
        for e in sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path))
    ]
    return ValidationResult(data=data, json_schema=schema, is_valid=not errors, errors=errors)


def validate_schema_document(schema: Any) -> ValidationResult:
    """
    Checks applied before a schema is registered.

    The schema must be an object with non-empty "title" and "version",
    and must pass its meta-schema.
    """
    errors: list[ValidationError] = []
    if isinstance(schema, dict):
        if not schema.get("title"):
            errors.append(ValidationError(path="$.title", message="title is required", validator="required"))
        if schema.get("version") is None or schema.get("version") == "":
            errors.append(ValidationError(path="$.version", message="version is required", validator="required"))
    meta = check_schema(schema)
    errors.extend(meta.errors)
    return ValidationResult(data=schema, json_schema=meta.json_schema, is_valid=not errors, errors=errors)
