"""
SchemaTaggedPayload model: the envelope binding JSON data to its schema identity.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schemastash.core.checksum import is_checksum


class SchemaTaggedPayload(BaseModel):
    """
    Data plus schema identity, content checksum and provenance.

    Attributes:
        protocol_version: Format version of the envelope itself
        schema_name: Title of the schema the data conforms to
        schema_version: Version of that schema
        data: Arbitrary JSON value
        data_checksum: "sha256:<hex>" of the canonicalized data; the payload's identity
        created_at: Epoch seconds; wall clock at tagging unless supplied

    Payloads are never mutated once stored.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        json_schema_extra={
            "example": {
                "protocolVersion": "2022-02-26.1",
                "schemaName": "my-test-input-schema",
                "schemaVersion": "0",
                "data": {"foo": 1, "bar": "baz"},
                "dataChecksum": "sha256:fdd6d11951299b11b907b704cb0030da837421f7be1315f0b2d16c86cee08bdc",
                "createdAt": 1646265600.0,
            }
        },
    )

    protocol_version: str = Field(..., alias="protocolVersion", min_length=1)
    schema_name: str = Field(..., alias="schemaName", min_length=1)
    schema_version: str = Field(..., alias="schemaVersion")
    data: Any = None
    data_checksum: str = Field(..., alias="dataChecksum")
    created_at: float | None = Field(None, alias="createdAt")

    @field_validator("schema_version", mode="before")
    @classmethod
    def coerce_schema_version(cls, v):
        """Schema versions are strings; numeric versions are accepted and stringified."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("data_checksum")
    @classmethod
    def check_checksum_format(cls, v):
        if not is_checksum(v):
            raise ValueError(f"dataChecksum must look like sha256:<hex>, got {v!r}")
        return v

    def to_wire(self) -> dict[str, Any]:
        """camelCase dict as stored and sent over the wire."""
        return self.model_dump(by_alias=True, exclude_none=True)
