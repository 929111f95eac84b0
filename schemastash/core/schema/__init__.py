"""
JSON Schema handling: validation, version resolution, inference and comparison.
"""

from .evolution import SchemaMergeError, compare_schemas, get_sub_schema, merge_schemas
from .inference import SchemaInferrer, infer_json_schema
from .validation import check_schema, validate_data_with_schema, validate_schema_document
from .versions import latest_version, select_version

__all__ = [
    "SchemaMergeError",
    "compare_schemas",
    "get_sub_schema",
    "merge_schemas",
    "SchemaInferrer",
    "infer_json_schema",
    "check_schema",
    "validate_data_with_schema",
    "validate_schema_document",
    "latest_version",
    "select_version",
]
