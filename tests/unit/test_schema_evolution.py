"""
Unit tests for schema comparison and merging.
"""

import pytest

from schemastash.core.schema import SchemaMergeError, compare_schemas, get_sub_schema, merge_schemas


@pytest.fixture
def base_schema():
    return {
        "title": "orders",
        "version": "1",
        "type": "object",
        "properties": {"id": {"type": "string"}, "amount": {"type": "number"}},
        "required": ["id"],
    }


class TestCompareSchemas:
    """Tests for compare_schemas"""

    def test_identical(self, base_schema):
        diff = compare_schemas(base_schema, base_schema)
        assert diff["added_fields"] == []
        assert diff["compatible"] is True

    def test_added_optional_field_is_compatible(self, base_schema):
        new = {**base_schema, "properties": {**base_schema["properties"], "note": {"type": "string"}}}
        diff = compare_schemas(base_schema, new)
        assert diff["added_fields"] == ["note"]
        assert diff["compatible"] is True

    def test_removed_field_is_incompatible(self, base_schema):
        new = {**base_schema, "properties": {"id": {"type": "string"}}}
        diff = compare_schemas(base_schema, new)
        assert diff["removed_fields"] == ["amount"]
        assert diff["compatible"] is False

    def test_type_change(self, base_schema):
        new = {**base_schema, "properties": {**base_schema["properties"], "amount": {"type": "string"}}}
        diff = compare_schemas(base_schema, new)
        assert diff["type_changes"] == [{"field": "amount", "old_type": "number", "new_type": "string"}]
        assert diff["compatible"] is False

    def test_newly_required(self, base_schema):
        new = {**base_schema, "required": ["id", "amount"]}
        diff = compare_schemas(base_schema, new)
        assert diff["newly_required"] == ["amount"]
        assert diff["compatible"] is False


class TestMergeSchemas:
    """Tests for merge_schemas"""

    def test_no_arguments(self):
        assert merge_schemas() == {}

    def test_single_schema_returned(self, base_schema):
        assert merge_schemas(base_schema) is base_schema

    def test_named_mapping(self, base_schema):
        merged = merge_schemas({"left": base_schema})
        assert merged["properties"]["left"]["properties"] == base_schema["properties"]

    def test_merge_by_title(self, base_schema):
        other = {"title": "customers", "properties": {"name": {"type": "string"}}}
        merged = merge_schemas(base_schema, other)
        assert set(merged["properties"]) == {"orders", "customers"}
        assert merged["description"] == "merged schemas: orders, customers"

    def test_merge_requires_titles(self, base_schema):
        with pytest.raises(SchemaMergeError) as exc_info:
            merge_schemas(base_schema, {"properties": {}})
        assert "argument 1" in str(exc_info.value)

    def test_get_sub_schema_drops_title(self, base_schema):
        sub = get_sub_schema(base_schema)
        assert "title" not in sub
        assert sub["properties"] == base_schema["properties"]
