"""
Integration tests for the relational JSON database on PostgreSQL.

Requires Docker; skipped otherwise.
"""

import pytest

from schemastash.api import StashService
from schemastash.core.checksum import checksum_of
from schemastash.core.errors import SchemaVersionConflictError
from schemastash.core.protocol import tag
from schemastash.jsonstore import RelationalJsonDatabase

CONTEXT = {"sideLoaded": "-oh-yeah"}


@pytest.fixture
async def pg_database(postgres_pool):
    async with RelationalJsonDatabase(postgres_pool) as database:
        yield database


@pytest.mark.integration
async def test_schema_registry(pg_database, input_schema):
    await pg_database.put_schema(input_schema)
    await pg_database.put_schema({**input_schema, "version": "1"})
    assert await pg_database.list_schema_versions("my-test-input-schema") == ["0", "1"]
    assert (await pg_database.find_latest_matching_schema("my-test-input-schema"))["version"] == "1"

    with pytest.raises(SchemaVersionConflictError):
        await pg_database.put_schema({**input_schema, "required": []})


@pytest.mark.integration
async def test_payload_stored_once(pg_database):
    payload = tag("s", "1", {"a": 1}, {"createdAt": 10})
    assert await pg_database.put_schema_tagged_payload(payload) is True
    assert await pg_database.put_schema_tagged_payload(payload) is False
    assert await pg_database.get_schema_tagged_payload(payload.data_checksum) == payload


@pytest.mark.integration
@pytest.mark.parametrize("language", ["jmespath", "jinja2", "mapping"])
async def test_example_transformation(pg_database, input_schema, output_schema, transformer_sources, language):
    await pg_database.put_schema(input_schema)
    await pg_database.put_schema(output_schema)
    await pg_database.put_transformer(
        "example", language, transformer_sources[language], output_schema="my-test-output-schema"
    )

    service = StashService(pg_database)
    stored = await service.tag_and_store("my-test-input-schema", {"foo": 1, "bar": "baz"})
    assert stored["payload"]["dataChecksum"] == checksum_of({"foo": 1, "bar": "baz"})

    result = await service.transform_payload(
        "example", stored["payload"]["dataChecksum"], CONTEXT, store=True
    )
    assert result["status"] == "ok"
    assert result["payload"]["data"] == {"newBar": 2, "newFoo": "quuxbaz-oh-yeah"}

    found = await pg_database.find_schema_tagged_payloads("my-test-output-schema")
    assert [p.data for p in found] == [{"newBar": 2, "newFoo": "quuxbaz-oh-yeah"}]
