"""
Unit tests for Pydantic data models.

Tests the core models for validation, aliasing and constraint enforcement.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from schemastash.core.checksum import checksum_of
from schemastash.core.errors import PayloadError
from schemastash.core.models import (
    CacheableDataResult,
    CacheableInputSource,
    InputSourceUpsertResult,
    JsonSchemaRecord,
    SchemaTaggedPayload,
    TransformerRecord,
    UpsertOutcome,
    ValidationError,
    ValidationResult,
)

EXAMPLE_CHECKSUM = "sha256:fdd6d11951299b11b907b704cb0030da837421f7be1315f0b2d16c86cee08bdc"


class TestSchemaTaggedPayload:
    """Tests for SchemaTaggedPayload model"""

    def test_from_wire_names(self):
        """Test creating a payload from camelCase fields"""
        payload = SchemaTaggedPayload.model_validate({
            "protocolVersion": "2022-02-26.1",
            "schemaName": "my-test-input-schema",
            "schemaVersion": "0",
            "data": {"foo": 1, "bar": "baz"},
            "dataChecksum": EXAMPLE_CHECKSUM,
            "createdAt": 1646265600.0,
        })
        assert payload.schema_name == "my-test-input-schema"
        assert payload.data == {"foo": 1, "bar": "baz"}
        assert payload.created_at == 1646265600.0

    def test_to_wire_uses_camel_case(self):
        payload = SchemaTaggedPayload(
            protocol_version="2022-02-26.1",
            schema_name="s",
            schema_version="1",
            data=[1, 2],
            data_checksum=checksum_of([1, 2]),
        )
        wire = payload.to_wire()
        assert set(wire) == {"protocolVersion", "schemaName", "schemaVersion", "data", "dataChecksum"}

    def test_numeric_schema_version_stringified(self):
        payload = SchemaTaggedPayload(
            protocol_version="2022-02-26.1",
            schema_name="s",
            schema_version=2,
            data=None,
            data_checksum=checksum_of(None),
        )
        assert payload.schema_version == "2"

    def test_malformed_checksum_rejected(self):
        """Test that a checksum without the algorithm tag is rejected"""
        with pytest.raises(PydanticValidationError) as exc_info:
            SchemaTaggedPayload(
                protocol_version="2022-02-26.1",
                schema_name="s",
                schema_version="1",
                data={},
                data_checksum="fdd6d119",
            )
        assert "dataChecksum" in str(exc_info.value)

    def test_empty_schema_name_rejected(self):
        with pytest.raises(PydanticValidationError):
            SchemaTaggedPayload(
                protocol_version="2022-02-26.1",
                schema_name="",
                schema_version="1",
                data={},
                data_checksum=checksum_of({}),
            )

    def test_payload_is_immutable(self):
        payload = SchemaTaggedPayload(
            protocol_version="2022-02-26.1",
            schema_name="s",
            schema_version="1",
            data={},
            data_checksum=checksum_of({}),
        )
        with pytest.raises(PydanticValidationError):
            payload.schema_name = "other"


class TestTransformerRecord:
    """Tests for TransformerRecord model"""

    def test_source_checksum_filled(self):
        record = TransformerRecord(name="t", language="jmespath", source_code="input")
        assert record.source_code_checksum == checksum_of("input")

    def test_wire_round_trip(self):
        record = TransformerRecord(
            name="t",
            language="jmespath",
            source_code="input",
            output_schema="out",
            supported_input_schemas=["in"],
        )
        wire = record.to_wire()
        assert wire["sourceCode"] == "input"
        assert wire["outputSchema"] == "out"
        assert wire["supportedInputSchemas"] == ["in"]
        assert TransformerRecord.model_validate(wire) == record

    def test_name_length_limit(self):
        with pytest.raises(PydanticValidationError):
            TransformerRecord(name="x" * 223, language="jmespath", source_code="input")


class TestJsonSchemaRecord:
    """Tests for JsonSchemaRecord model"""

    def test_from_schema(self, input_schema):
        record = JsonSchemaRecord.from_schema(input_schema)
        assert record.title == "my-test-input-schema"
        assert record.version == "0"
        assert record.sha256 == checksum_of(input_schema)

    def test_numeric_version_stringified(self):
        record = JsonSchemaRecord.from_schema({"title": "t", "version": 3, "type": "object"})
        assert record.version == "3"

    def test_missing_title(self):
        with pytest.raises(PayloadError):
            JsonSchemaRecord.from_schema({"version": "1"})

    def test_missing_version(self):
        with pytest.raises(PayloadError):
            JsonSchemaRecord.from_schema({"title": "t"})


class TestCacheModels:
    """Tests for the cache table models"""

    def test_data_result_from_row(self):
        row = {
            "id": 7,
            "sha256": "ab" * 32,
            "content": '{"foo":1}',
            "size": 9,
            "createdAt": "2024-01-01T00:00:00+00:00",
            "CacheableDataResult_id": 3,
            "CacheableInputSource_id": None,
            "JsonSchemaRecord_id": None,
            "TransformerData_id": 5,
        }
        result = CacheableDataResult(**row)
        assert result.parent_id == 3
        assert result.transformer_data_id == 5
        assert result.load() == {"foo": 1}

    def test_negative_size_rejected(self):
        with pytest.raises(PydanticValidationError):
            CacheableInputSource(
                source_path="a.jsonl", sha256="ab" * 32, size=-1, updated_at="2024-01-01"
            )

    def test_upsert_result_changed(self):
        source = CacheableInputSource(
            id=1, source_path="a.jsonl", sha256="ab" * 32, size=10, updated_at="2024-01-01"
        )
        unchanged = InputSourceUpsertResult(
            outcome=UpsertOutcome.UNCHANGED, sha256=source.sha256,
            previous_sha256=source.sha256, source=source,
        )
        inserted = InputSourceUpsertResult(
            outcome=UpsertOutcome.INSERTED, sha256=source.sha256, source=source
        )
        assert not unchanged.changed
        assert inserted.changed


class TestValidationResult:
    """Tests for ValidationResult model"""

    def test_valid_result(self):
        result = ValidationResult(data={}, is_valid=True)
        assert result.to_dict() == {"isValid": True, "errors": []}

    def test_invalid_result_serializes_errors(self):
        result = ValidationResult(
            data={},
            is_valid=False,
            errors=[ValidationError(path="$.foo", message="'foo' is a required property", validator="required")],
        )
        assert result.to_dict()["errors"][0]["path"] == "$.foo"

    def test_valid_with_errors_rejected(self):
        """Test that is_valid=True with errors raises ValidationError"""
        with pytest.raises(PydanticValidationError):
            ValidationResult(data={}, is_valid=True, errors=[ValidationError(message="boom")])
