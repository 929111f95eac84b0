"""
Schema-checked transformations.

SchemaToSchema validates the input against a source schema before running
a transformer and the unwrapped output against a target schema after it.
Unlike plain validation these checks raise, since a validated pipeline
stage has no sensible result to pass on.
"""

from typing import Any, Awaitable, Callable, Mapping

from schemastash.core.errors import StashError
from schemastash.core.models import ValidationResult
from schemastash.core.protocol import (
    INPUT_KEY,
    unwrap_transformation_context,
    wrap_transformation_context,
)
from schemastash.core.schema import validate_data_with_schema
from schemastash.observability.logger import get_logger

from .base import Transformer

logger = get_logger(__name__)


class SchemaValidationFailure(StashError):
    """Data failed a schema check inside a validated transformation."""

    def __init__(self, message: str, result: ValidationResult):
        self.result = result
        super().__init__(message, errors=[e.model_dump(exclude_none=True) for e in result.errors])


class SourceValidationError(SchemaValidationFailure):
    def __init__(self, result: ValidationResult):
        super().__init__("input failed source schema validation", result)


class TargetValidationError(SchemaValidationFailure):
    def __init__(self, result: ValidationResult):
        super().__init__("output failed target schema validation", result)


class SchemaToSchema:
    """
    Transformation between two JSON Schemas.

    Args:
        source_schema: Schema the wrapped "input" must satisfy
        target_schema: Schema the unwrapped output must satisfy
    """

    def __init__(self, source_schema: dict[str, Any], target_schema: dict[str, Any]):
        self.source_schema = source_schema
        self.target_schema = target_schema

    async def transform(self, wrapped: Mapping[str, Any], transformer: Transformer) -> Any:
        """
        Validate, transform, validate.

        Returns:
            The transformer's wrapped output

        Raises:
            SourceValidationError: If the input does not match the source schema
            TargetValidationError: If the output is missing or does not match the target schema
        """
        source_result = validate_data_with_schema(wrapped.get(INPUT_KEY), self.source_schema)
        if not source_result.is_valid:
            raise SourceValidationError(source_result)

        output = await transformer.transform(wrapped)
        target_result = validate_data_with_schema(
            unwrap_transformation_context(output), self.target_schema
        )
        if not target_result.is_valid:
            logger.warning(
                "Transformed output failed target schema",
                extra={
                    "transformer": transformer.name,
                    "target_schema": self.target_schema.get("title"),
                },
            )
            raise TargetValidationError(target_result)
        return output


def make_validated_transformer(
    input_schema: dict[str, Any],
    transformer: Transformer,
    output_schema: dict[str, Any],
) -> Callable[..., Awaitable[Any]]:
    """
    Reusable transformation on bare data.

    The returned coroutine function takes (data, context=None), wraps the
    data, runs the schema-checked transformation and answers the unwrapped output.
    """
    schema_to_schema = SchemaToSchema(input_schema, output_schema)

    async def run(data: Any, context: Mapping[str, Any] | None = None) -> Any:
        wrapped = wrap_transformation_context(data, context)
        output = await schema_to_schema.transform(wrapped, transformer)
        return unwrap_transformation_context(output)

    return run
