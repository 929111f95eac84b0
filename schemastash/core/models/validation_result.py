"""
ValidationResult model representing the outcome of JSON Schema validation (ephemeral).
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ValidationError(BaseModel):
    """One JSON Schema violation."""

    path: str = "$"
    message: str
    validator: str | None = None


class ValidationResult(BaseModel):
    """
    Outcome of validating data against a JSON Schema.

    Never raised: callers inspect is_valid and decide whether it is fatal.

    Attributes:
        data: The validated data
        json_schema: The schema used
        is_valid: Overall status
        errors: Violations, empty when valid
    """

    model_config = ConfigDict(populate_by_name=True)

    data: Any = None
    json_schema: Any = Field(None, alias="schema")
    is_valid: bool = Field(..., alias="isValid")
    errors: list[ValidationError] = Field(default_factory=list)

    @field_validator("errors")
    @classmethod
    def check_valid_consistency(cls, v, info):
        """is_valid=True implies errors is empty."""
        if info.data.get("is_valid") and len(v) > 0:
            raise ValueError("isValid=True but errors is not empty")
        return v

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "errors": [e.model_dump(exclude_none=True) for e in self.errors],
        }
