"""
Storage-agnostic service facade.

The HTTP layer and the CLIs call StashService; every method answers a
status object and never raises a StashError:

    {"status": "ok", ...}
    {"status": "error", "message": "...", "details": {...}}
"""

import functools
from typing import Any, Mapping

from schemastash.core.errors import StashError
from schemastash.core.protocol import tag
from schemastash.core.schema import validate_data_with_schema
from schemastash.jsonstore import GraphJsonDatabase, JsonDatabase
from schemastash.observability.logger import get_logger

logger = get_logger(__name__)


def ok(**fields: Any) -> dict[str, Any]:
    return {"status": "ok", **fields}


def error(message: str, **fields: Any) -> dict[str, Any]:
    return {"status": "error", "message": message, **fields}


def returns_status(func):
    """Convert StashError raised by a service method into an error status."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except StashError as e:
            logger.info("Request failed", extra={"operation": func.__name__, "error_message": e.message})
            return e.to_dict()

    return wrapper


class StashService:
    """
    Operations exposed to callers of the core.

    Args:
        database: An open JsonDatabase
    """

    def __init__(self, database: JsonDatabase):
        self.database = database

    @returns_status
    async def put_schema(self, schema: Any) -> dict[str, Any]:
        result = await self.database.put_schema(schema)
        if not result.is_valid:
            return error("schema failed validation", validation=result.to_dict())
        return ok(title=schema["title"], version=str(schema["version"]))

    @returns_status
    async def get_schema(self, schema_name: str, schema_version: str | None = None) -> dict[str, Any]:
        schema = await self.database.get_schema(schema_name, schema_version)
        if schema is None:
            label = schema_name if schema_version is None else f"{schema_name}@{schema_version}"
            return error(f"no schema matching {label}")
        return ok(schema=schema)

    @returns_status
    async def put_transformer(
        self,
        name: str,
        language: str,
        source_code: str,
        output_schema: str | None = None,
        input_schemas: list[str] | None = None,
    ) -> dict[str, Any]:
        record = await self.database.put_transformer(
            name, language, source_code, output_schema, input_schemas
        )
        return ok(transformer=record.to_wire())

    @returns_status
    async def get_transformer(self, name: str) -> dict[str, Any]:
        record = await self.database.require_transformer(name)
        return ok(transformer=record.to_wire())

    @returns_status
    async def tag_and_store(
        self,
        schema_name: str,
        data: Any,
        schema_version: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Validate data against a stored schema, tag it and store the payload."""
        schema_record = await self.database.require_schema(schema_name, schema_version)
        validation = validate_data_with_schema(data, schema_record.content)
        if not validation.is_valid:
            return error("data failed validation", validation=validation.to_dict())
        payload = tag(schema_record.title, schema_record.version, data, context)
        stored = await self.database.put_schema_tagged_payload(payload)
        return ok(payload=payload.to_wire(), stored=stored)

    @returns_status
    async def put_schema_tagged_payload(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        stored = await self.database.put_schema_tagged_payload(payload)
        return ok(dataChecksum=payload.get("dataChecksum"), stored=stored)

    @returns_status
    async def get_schema_tagged_payload(self, data_checksum: str) -> dict[str, Any]:
        payload = await self.database.require_schema_tagged_payload(data_checksum)
        return ok(payload=payload.to_wire())

    @returns_status
    async def find_schema_tagged_payloads(
        self, schema_name: str, schema_version: str | None = None
    ) -> dict[str, Any]:
        payloads = await self.database.find_schema_tagged_payloads(schema_name, schema_version)
        return ok(payloads=[p.to_wire() for p in payloads])

    @returns_status
    async def transform_payload(
        self,
        transformer_name: str,
        data_checksum: str,
        context: Mapping[str, Any] | None = None,
        store: bool = False,
    ) -> dict[str, Any]:
        if not store:
            payload = await self.database.transform_payload(transformer_name, data_checksum, context)
            if payload is None:
                return error(f"transformer {transformer_name} failed on {data_checksum}")
            return ok(payload=payload.to_wire())

        result = await self.database.transform_and_store(transformer_name, data_checksum, context)
        if result.payload is None:
            return error(f"transformer {transformer_name} failed on {data_checksum}")
        if not result.validation.is_valid:
            return error(
                "transformed data failed output schema validation",
                payload=result.payload.to_wire(),
                validation=result.validation.to_dict(),
            )
        return ok(payload=result.payload.to_wire(), stored=result.stored)

    @returns_status
    async def get_lineage(self, data_checksum: str) -> dict[str, Any]:
        if not isinstance(self.database, GraphJsonDatabase):
            return error(f"lineage is not kept by the {self.database.backend_name} backend")
        await self.database.require_schema_tagged_payload(data_checksum)
        return ok(lineage=await self.database.get_lineage(data_checksum))
