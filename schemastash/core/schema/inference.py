"""
Schema inference for sample JSON data.

Generates a JSON Schema describing sample documents, for bootstrapping a
schema when none has been written yet.
"""

from typing import Any

from schemastash.observability.logger import get_logger

logger = get_logger(__name__)

DRAFT_2020_12 = "https://json-schema.org/draft/2020-12/schema"


class SchemaInferrer:
    """
    Infers a JSON Schema from one or more sample values.

    Object properties seen in every sample become required; properties
    seen in some samples are optional. Conflicting scalar types widen to
    a type list ("integer" merges into "number").
    """

    def infer(self, value: Any) -> dict[str, Any]:
        """Schema for a single value."""
        if value is None:
            return {"type": "null"}
        if isinstance(value, bool):
            return {"type": "boolean"}
        if isinstance(value, int):
            return {"type": "integer"}
        if isinstance(value, float):
            return {"type": "number"}
        if isinstance(value, str):
            return {"type": "string"}
        if isinstance(value, list):
            if not value:
                return {"type": "array"}
            items = self.infer(value[0])
            for item in value[1:]:
                items = self.merge(items, self.infer(item))
            return {"type": "array", "items": items}
        if isinstance(value, dict):
            return {
                "type": "object",
                "properties": {key: self.infer(v) for key, v in value.items()},
                "required": sorted(value.keys()),
            }
        raise TypeError(f"Cannot infer schema for {type(value).__name__}")

    def infer_many(self, samples: list[Any]) -> dict[str, Any]:
        """Schema covering every sample."""
        if not samples:
            raise ValueError("At least one sample is required for inference")
        schema = self.infer(samples[0])
        for sample in samples[1:]:
            schema = self.merge(schema, self.infer(sample))
        return schema

    def merge(self, left: dict[str, Any], right: dict[str, Any]) -> dict[str, Any]:
        """Least schema accepting everything either side accepts."""
        left_types = _types_of(left)
        right_types = _types_of(right)

        if left_types == {"object"} and right_types == {"object"}:
            props = dict(left.get("properties", {}))
            for key, sub in right.get("properties", {}).items():
                props[key] = self.merge(props[key], sub) if key in props else sub
            required = sorted(set(left.get("required", [])) & set(right.get("required", [])))
            out: dict[str, Any] = {"type": "object", "properties": props}
            if required:
                out["required"] = required
            return out

        if left_types == {"array"} and right_types == {"array"}:
            if "items" in left and "items" in right:
                return {"type": "array", "items": self.merge(left["items"], right["items"])}
            items = left.get("items") or right.get("items")
            return {"type": "array", "items": items} if items else {"type": "array"}

        types = left_types | right_types
        if "number" in types:
            types.discard("integer")
        if len(types) == 1:
            return {"type": types.pop()}
        return {"type": sorted(types)}


def _types_of(schema: dict[str, Any]) -> set[str]:
    t = schema.get("type")
    if t is None:
        return set()
    return set(t) if isinstance(t, list) else {t}


def infer_json_schema(
    data: Any,
    title: str = "GeneratedSchema",
    version: str | None = None,
    many: bool = False,
) -> dict[str, Any]:
    """
    Generate a titled JSON Schema for sample data.

    Args:
        data: A sample value, or a list of samples when many=True
        title: Schema title
        version: Optional version to stamp on the schema
        many: Treat data as a list of independent samples
    """
    inferrer = SchemaInferrer()
    body = inferrer.infer_many(list(data)) if many else inferrer.infer(data)
    schema: dict[str, Any] = {"$schema": DRAFT_2020_12, "title": title}
    if version is not None:
        schema["version"] = str(version)
    schema.update(body)
    logger.debug("Inferred schema", extra={"schema_title": title})
    return schema
