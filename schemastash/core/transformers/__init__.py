"""
Transformer implementations.

Provides transformers for declarative JSON mappings, JMESPath queries and
Jinja2 templates behind one async contract.
"""

from .base import LANGUAGE_ALIASES, Transformer, TransformerLanguage, normalize_language
from .mapping import MappingTransformer
from .query import JmesPathTransformer
from .registry import (
    LANGUAGE_EXTENSIONS,
    TRANSFORMER_REGISTRY,
    language_for_path,
    load_transformer_file,
    make_transformer,
    transformer_from_record,
)
from .template import Jinja2Transformer
from .validated import (
    SchemaToSchema,
    SchemaValidationFailure,
    SourceValidationError,
    TargetValidationError,
    make_validated_transformer,
)

__all__ = [
    "LANGUAGE_ALIASES",
    "LANGUAGE_EXTENSIONS",
    "TRANSFORMER_REGISTRY",
    "Transformer",
    "TransformerLanguage",
    "MappingTransformer",
    "JmesPathTransformer",
    "Jinja2Transformer",
    "SchemaToSchema",
    "SchemaValidationFailure",
    "SourceValidationError",
    "TargetValidationError",
    "language_for_path",
    "load_transformer_file",
    "make_transformer",
    "make_validated_transformer",
    "normalize_language",
    "transformer_from_record",
]
