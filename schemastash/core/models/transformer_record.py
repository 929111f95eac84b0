"""
TransformerRecord model: a named, language-tagged unit of transformation source.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from schemastash.core.checksum import checksum_of


class TransformerRecord(BaseModel):
    """
    Stored transformer definition.

    Attributes:
        name: Unique name; transformers are invoked by name
        language: Transformation language tag (see TransformerLanguage)
        source_code: Transformer source text
        source_code_checksum: Checksum of the source text (computed when omitted)
        output_schema: Title of the schema the output is tagged with
        supported_input_schemas: Titles of schemas this transformer accepts
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field(..., min_length=1, max_length=222)
    language: str = Field(..., min_length=1)
    source_code: str = Field(..., alias="sourceCode")
    source_code_checksum: str | None = Field(None, alias="sourceCodeChecksum")
    output_schema: str | None = Field(None, alias="outputSchema")
    supported_input_schemas: list[str] = Field(default_factory=list, alias="supportedInputSchemas")

    @model_validator(mode="before")
    @classmethod
    def fill_source_checksum(cls, values: Any) -> Any:
        if isinstance(values, dict):
            source = values.get("sourceCode", values.get("source_code"))
            has_checksum = values.get("sourceCodeChecksum") or values.get("source_code_checksum")
            if isinstance(source, str) and not has_checksum:
                values = {**values, "sourceCodeChecksum": checksum_of(source)}
                values.pop("source_code_checksum", None)
        return values

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
