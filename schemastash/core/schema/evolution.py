"""
Schema comparison and merging.

Compares versions of a schema family property by property and merges
titled schemas under one namespaced object schema.
"""

from typing import Any

from schemastash.observability.logger import get_logger

logger = get_logger(__name__)


class SchemaMergeError(ValueError):
    """Raised when schemas cannot be merged."""


def _property_types(schema: dict[str, Any]) -> dict[str, Any]:
    return {
        name: prop.get("type") if isinstance(prop, dict) else None
        for name, prop in (schema.get("properties") or {}).items()
    }


def compare_schemas(old_schema: dict[str, Any], new_schema: dict[str, Any]) -> dict[str, Any]:
    """
    Compare two object schemas.

    Returns:
        Dictionary with added_fields, removed_fields, type_changes,
        newly_required and compatible. A change is compatible when no
        field was removed, no type changed and nothing became required.
    """
    old_types = _property_types(old_schema)
    new_types = _property_types(new_schema)

    added = sorted(set(new_types) - set(old_types))
    removed = sorted(set(old_types) - set(new_types))
    type_changes = [
        {"field": name, "old_type": old_types[name], "new_type": new_types[name]}
        for name in sorted(set(old_types) & set(new_types))
        if old_types[name] != new_types[name]
    ]
    newly_required = sorted(
        set(new_schema.get("required") or []) - set(old_schema.get("required") or [])
    )

    return {
        "added_fields": added,
        "removed_fields": removed,
        "type_changes": type_changes,
        "newly_required": newly_required,
        "compatible": not removed and not type_changes and not newly_required,
    }


def get_sub_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Schema without its title."""
    return {key: value for key, value in schema.items() if key != "title"}


def _merge_named(mapping: dict[str, dict[str, Any]]) -> dict[str, Any]:
    properties = {
        namespace: {"type": "object", "properties": schema.get("properties", {})}
        for namespace, schema in mapping.items()
    }
    return {
        "description": f"merged schemas: {', '.join(mapping)}",
        "type": "object",
        "properties": properties,
    }


def merge_schemas(*schemas: dict[str, Any]) -> dict[str, Any]:
    """
    Merge schemas into one namespaced object schema.

    - no arguments: empty schema
    - one schema with "properties": returned as is
    - one mapping of namespace -> schema: each namespaced under its key
    - several schemas: each namespaced under its title (titles required)

    Raises:
        SchemaMergeError: If a schema in a multi-argument call has no title
    """
    if not schemas:
        return {}
    if len(schemas) == 1:
        only = schemas[0]
        if "properties" in only:
            return only
        return _merge_named(only)

    mapping: dict[str, dict[str, Any]] = {}
    for index, schema in enumerate(schemas):
        title = schema.get("title")
        if not title:
            raise SchemaMergeError(
                f"argument {index} in inputs does not have a 'title' field, "
                "which is required for this invocation"
            )
        mapping[title] = schema
    return _merge_named(mapping)
