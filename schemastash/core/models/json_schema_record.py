"""
JsonSchemaRecord model representing a stored JSON Schema document.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from schemastash.core.checksum import canonicalize, checksum_of
from schemastash.core.errors import PayloadError


class JsonSchemaRecord(BaseModel):
    """
    A JSON Schema as stored by the schema registry.

    Attributes:
        title: Schema family name
        version: Version string; compared lexically when resolving "latest"
        content: The schema document
        sha256: "sha256:<hex>" of the canonicalized schema
        description: Optional human description (copied from the schema)
        created_at: When this version was registered

    (title, version) is unique. Records are immutable; a new version is a new record.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    title: str = Field(..., min_length=1)
    version: str
    content: dict[str, Any]
    sha256: str
    description: str | None = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), alias="createdAt"
    )

    @classmethod
    def from_schema(cls, schema: dict[str, Any]) -> "JsonSchemaRecord":
        """
        Build a record from a schema document carrying "title" and "version".

        Raises:
            PayloadError: If title or version is missing
        """
        title = schema.get("title")
        version = schema.get("version")
        if not title:
            raise PayloadError("title must not be empty")
        if version is None or version == "":
            raise PayloadError("version must not be empty")
        return cls(
            title=title,
            version=str(version),
            content=schema,
            sha256=checksum_of(schema),
            description=schema.get("description"),
        )

    @property
    def canonical_content(self) -> str:
        return canonicalize(self.content)
