"""
CacheableDataResult model: one content-addressed JSON blob in the cache ledger.
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CacheableDataResult(BaseModel):
    """
    Row of the append-only CacheableDataResult table.

    Attributes:
        id: Primary key
        sha256: Hex digest of the canonical content; unique
        content: Canonical JSON text (raw import record, transformer source or output)
        size: Content length in bytes
        created_at: ISO-8601 time the row was first written
        parent_id: Self-link to the data this was derived from
        input_source_id: Link to the CacheableInputSource it was imported from
        json_schema_record_id: Link to the JsonSchemaRecord that validated it
        transformer_data_id: Self-link to the transformer source record that produced it
    """

    model_config = ConfigDict(populate_by_name=True)

    id: int | None = None
    sha256: str
    content: str
    size: int = Field(..., ge=0)
    created_at: str = Field(..., alias="createdAt")
    parent_id: int | None = Field(None, alias="CacheableDataResult_id")
    input_source_id: int | None = Field(None, alias="CacheableInputSource_id")
    json_schema_record_id: int | None = Field(None, alias="JsonSchemaRecord_id")
    transformer_data_id: int | None = Field(None, alias="TransformerData_id")

    def load(self) -> Any:
        """Parsed JSON content."""
        return json.loads(self.content)
