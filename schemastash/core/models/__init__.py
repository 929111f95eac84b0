"""
Core data models for schemastash.

All models use Pydantic for runtime validation; wire and storage forms
use the camelCase aliases.
"""

from .cacheable_data_result import CacheableDataResult
from .cacheable_input_source import CacheableInputSource, InputSourceUpsertResult, UpsertOutcome
from .json_schema_record import JsonSchemaRecord
from .schema_tagged_payload import SchemaTaggedPayload
from .transformer_record import TransformerRecord
from .validation_result import ValidationError, ValidationResult

__all__ = [
    "CacheableDataResult",
    "CacheableInputSource",
    "InputSourceUpsertResult",
    "UpsertOutcome",
    "JsonSchemaRecord",
    "SchemaTaggedPayload",
    "TransformerRecord",
    "ValidationError",
    "ValidationResult",
]
