"""
CacheableInputSource model: an external input tracked by path and content hash.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CacheableInputSource(BaseModel):
    """
    Row of the CacheableInputSource table.

    Attributes:
        id: Primary key
        source_path: Unique path of the tracked input
        sha256: Hex digest of the most recently observed content only
        size: Content size in bytes
        updated_at: ISO-8601 time of the last content change (not of the last check)
    """

    model_config = ConfigDict(populate_by_name=True)

    id: int | None = None
    source_path: str = Field(..., alias="sourcePath", min_length=1)
    sha256: str
    size: int = Field(..., ge=0)
    updated_at: str = Field(..., alias="updatedAt")


class UpsertOutcome(str, Enum):
    """Result of checking an input source against its stored hash."""

    INSERTED = "inserted"
    UNCHANGED = "unchanged"
    UPSERTED = "upserted"


class InputSourceUpsertResult(BaseModel):
    """
    Three-way outcome of upsert_input_source.

    Attributes:
        outcome: inserted, unchanged or upserted
        sha256: Current content hash
        previous_sha256: Hash before this call (None when inserted)
        source: The stored row after the call
    """

    outcome: UpsertOutcome
    sha256: str
    previous_sha256: str | None = None
    source: CacheableInputSource

    @property
    def changed(self) -> bool:
        """True when downstream work has to run."""
        return self.outcome is not UpsertOutcome.UNCHANGED
