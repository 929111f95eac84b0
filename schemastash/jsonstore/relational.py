"""
Relational JSON database (PostgreSQL or SQLite).

Three tables hold canonical JSON text next to the columns used for lookup.
Uniqueness constraints do the de-duplication: inserts use
ON CONFLICT DO NOTHING and a zero row count means "already stored".
"""

import json
from datetime import datetime, timezone

from schemastash.core.checksum import canonicalize
from schemastash.core.models import JsonSchemaRecord, SchemaTaggedPayload, TransformerRecord
from schemastash.observability.logger import get_logger
from schemastash.warehouse.connection import AsyncSqlConnection, quote_identifier

from .base import (
    JSON_SCHEMAS_COLLECTION,
    SCHEMA_TAGGED_PAYLOADS_COLLECTION,
    TRANSFORMERS_COLLECTION,
    JsonDatabase,
)

logger = get_logger(__name__)

SCHEMAS_TABLE = quote_identifier(JSON_SCHEMAS_COLLECTION)
TRANSFORMERS_TABLE = quote_identifier(TRANSFORMERS_COLLECTION)
PAYLOADS_TABLE = quote_identifier(SCHEMA_TAGGED_PAYLOADS_COLLECTION)


class RelationalJsonDatabase(JsonDatabase):
    """
    JSON database over an async SQL connection.

    Args:
        conn: SQL connection; opened and closed with this database
    """

    backend_name = "relational"

    def __init__(self, conn: AsyncSqlConnection):
        self.conn = conn

    async def open(self) -> None:
        await self.conn.open()
        await self.setup_tables()

    async def close(self) -> None:
        await self.conn.close()

    async def setup_tables(self) -> None:
        """Create the three tables when missing."""
        float_type = self.conn.float_type
        await self.conn.execute_command(
            f"CREATE TABLE IF NOT EXISTS {SCHEMAS_TABLE} ("
            "title TEXT NOT NULL, "
            "version TEXT NOT NULL, "
            "sha256 VARCHAR(71) NOT NULL, "
            "json TEXT NOT NULL, "
            '"createdAt" TEXT NOT NULL, '
            "UNIQUE (title, version))"
        )
        await self.conn.execute_command(
            f"CREATE TABLE IF NOT EXISTS {TRANSFORMERS_TABLE} ("
            "name TEXT PRIMARY KEY, "
            '"sourceCodeChecksum" VARCHAR(71), '
            "json TEXT NOT NULL, "
            '"createdAt" TEXT NOT NULL)'
        )
        await self.conn.execute_command(
            f"CREATE TABLE IF NOT EXISTS {PAYLOADS_TABLE} ("
            '"dataChecksum" VARCHAR(71) PRIMARY KEY, '
            '"schemaName" TEXT NOT NULL, '
            '"schemaVersion" TEXT NOT NULL, '
            "json TEXT NOT NULL, "
            f'"createdAt" {float_type})'
        )

    async def _insert(self, command: str, params: tuple) -> bool:
        try:
            return await self.conn.execute_command(command, params) > 0
        except Exception as e:
            if self.conn.is_unique_violation(e):
                return False
            raise

    async def _insert_schema_record(self, record: JsonSchemaRecord) -> bool:
        return await self._insert(
            f'INSERT INTO {SCHEMAS_TABLE} (title, version, sha256, json, "createdAt") '
            "VALUES (%s, %s, %s, %s, %s) ON CONFLICT DO NOTHING",
            (
                record.title,
                record.version,
                record.sha256,
                record.canonical_content,
                record.created_at.isoformat(),
            ),
        )

    async def _list_schema_records(self, title: str) -> list[JsonSchemaRecord]:
        rows = await self.conn.execute_query(
            f'SELECT title, version, sha256, json, "createdAt" FROM {SCHEMAS_TABLE} WHERE title = %s',
            (title,),
        )
        records = []
        for row in rows:
            content = json.loads(row["json"])
            records.append(JsonSchemaRecord(
                title=row["title"],
                version=row["version"],
                content=content,
                sha256=row["sha256"],
                description=content.get("description"),
                created_at=datetime.fromisoformat(row["createdAt"]),
            ))
        return records

    async def _insert_transformer_record(self, record: TransformerRecord) -> bool:
        return await self._insert(
            f'INSERT INTO {TRANSFORMERS_TABLE} (name, "sourceCodeChecksum", json, "createdAt") '
            "VALUES (%s, %s, %s, %s) ON CONFLICT DO NOTHING",
            (
                record.name,
                record.source_code_checksum,
                canonicalize(record.to_wire()),
                datetime.now(timezone.utc).isoformat(),
            ),
        )

    async def get_transformer(self, transformer_name: str) -> TransformerRecord | None:
        rows = await self.conn.execute_query(
            f"SELECT json FROM {TRANSFORMERS_TABLE} WHERE name = %s",
            (transformer_name,),
        )
        return TransformerRecord.model_validate(json.loads(rows[0]["json"])) if rows else None

    async def _insert_payload(self, payload: SchemaTaggedPayload) -> bool:
        return await self._insert(
            f'INSERT INTO {PAYLOADS_TABLE} ("dataChecksum", "schemaName", "schemaVersion", json, "createdAt") '
            "VALUES (%s, %s, %s, %s, %s) ON CONFLICT DO NOTHING",
            (
                payload.data_checksum,
                payload.schema_name,
                payload.schema_version,
                canonicalize(payload.to_wire()),
                payload.created_at,
            ),
        )

    async def get_schema_tagged_payload(self, data_checksum: str) -> SchemaTaggedPayload | None:
        rows = await self.conn.execute_query(
            f'SELECT json FROM {PAYLOADS_TABLE} WHERE "dataChecksum" = %s',
            (data_checksum,),
        )
        return SchemaTaggedPayload.model_validate(json.loads(rows[0]["json"])) if rows else None

    async def find_schema_tagged_payloads(
        self, schema_name: str, schema_version: str | None = None
    ) -> list[SchemaTaggedPayload]:
        query = f'SELECT json FROM {PAYLOADS_TABLE} WHERE "schemaName" = %s'
        params: tuple = (schema_name,)
        if schema_version is not None:
            query += ' AND "schemaVersion" = %s'
            params += (str(schema_version),)
        query += ' ORDER BY "createdAt", "dataChecksum"'
        rows = await self.conn.execute_query(query, params)
        return [SchemaTaggedPayload.model_validate(json.loads(row["json"])) for row in rows]
