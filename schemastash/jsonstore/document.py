"""
Document-store JSON database on TinyDB.

One TinyDB table per record kind. The database lives in memory
(":memory:") or in a single JSON file under the store directory. Every
table access holds the store's lock, so the existence check and the
insert of a record are one step.
"""

import asyncio
import json
from pathlib import Path
from threading import RLock
from typing import Any, Optional

from tinydb import Query, TinyDB
from tinydb.storages import MemoryStorage

from schemastash.config import MEMORY
from schemastash.core.checksum import canonicalize
from schemastash.core.models import JsonSchemaRecord, SchemaTaggedPayload, TransformerRecord
from schemastash.observability.logger import get_logger

from .base import (
    JSON_SCHEMAS_COLLECTION,
    SCHEMA_TAGGED_PAYLOADS_COLLECTION,
    TRANSFORMERS_COLLECTION,
    JsonDatabase,
)

logger = get_logger(__name__)

# File holding every table of a directory store
DATABASE_FILE = "stash-db.json"

_QUERY = Query()


class DocumentJsonDatabase(JsonDatabase):
    """
    JSON database over TinyDB tables.

    Documents are stored as {"key": ..., "document": ...}; the key is the
    record's identity in its collection.

    Args:
        root: Directory for the database file, or ":memory:"
    """

    backend_name = "document"

    def __init__(self, root: str = MEMORY):
        self.root = root
        self._db: Optional[TinyDB] = None
        self._lock = RLock()

    async def open(self) -> None:
        if self._db is not None:
            return
        if self.root == MEMORY:
            self._db = TinyDB(storage=MemoryStorage)
            return

        path = Path(self.root) / DATABASE_FILE
        self._db = await asyncio.to_thread(TinyDB, str(path), create_dirs=True)
        logger.info("Opened document store", extra={"root": self.root, "path": str(path)})

    async def close(self) -> None:
        if self._db is None:
            return
        with self._lock:
            self._db.close()
            self._db = None

    def _table(self, name: str):
        if self._db is None:
            raise RuntimeError("Document store is not open. Call open() first.")
        return self._db.table(name)

    def _insert_sync(self, collection: str, key: str, document: dict[str, Any]) -> bool:
        with self._lock:
            table = self._table(collection)
            # Existence check and insert under the same lock
            if table.get(_QUERY.key == key) is not None:
                return False
            table.insert({"key": key, "document": json.loads(canonicalize(document))})
            return True

    def _get_sync(self, collection: str, key: str) -> dict[str, Any] | None:
        with self._lock:
            row = self._table(collection).get(_QUERY.key == key)
            return row["document"] if row is not None else None

    def _search_sync(self, collection: str, condition) -> list[dict[str, Any]]:
        with self._lock:
            return [row["document"] for row in self._table(collection).search(condition)]

    async def _insert(self, collection: str, key: str, document: dict[str, Any]) -> bool:
        return await asyncio.to_thread(self._insert_sync, collection, key, document)

    async def _get(self, collection: str, key: str) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._get_sync, collection, key)

    async def _search(self, collection: str, condition) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._search_sync, collection, condition)

    @staticmethod
    def _schema_key(title: str, version: str) -> str:
        return f"{title}@{version}"

    async def _insert_schema_record(self, record: JsonSchemaRecord) -> bool:
        return await self._insert(
            JSON_SCHEMAS_COLLECTION,
            self._schema_key(record.title, record.version),
            record.model_dump(mode="json", by_alias=True),
        )

    async def _list_schema_records(self, title: str) -> list[JsonSchemaRecord]:
        documents = await self._search(JSON_SCHEMAS_COLLECTION, _QUERY.document.title == title)
        return [JsonSchemaRecord.model_validate(document) for document in documents]

    async def _insert_transformer_record(self, record: TransformerRecord) -> bool:
        return await self._insert(TRANSFORMERS_COLLECTION, record.name, record.to_wire())

    async def get_transformer(self, transformer_name: str) -> TransformerRecord | None:
        document = await self._get(TRANSFORMERS_COLLECTION, transformer_name)
        return TransformerRecord.model_validate(document) if document else None

    async def _insert_payload(self, payload: SchemaTaggedPayload) -> bool:
        return await self._insert(SCHEMA_TAGGED_PAYLOADS_COLLECTION, payload.data_checksum, payload.to_wire())

    async def get_schema_tagged_payload(self, data_checksum: str) -> SchemaTaggedPayload | None:
        document = await self._get(SCHEMA_TAGGED_PAYLOADS_COLLECTION, data_checksum)
        return SchemaTaggedPayload.model_validate(document) if document else None

    async def find_schema_tagged_payloads(
        self, schema_name: str, schema_version: str | None = None
    ) -> list[SchemaTaggedPayload]:
        condition = _QUERY.document.schemaName == schema_name
        documents = await self._search(SCHEMA_TAGGED_PAYLOADS_COLLECTION, condition)
        matches = [
            SchemaTaggedPayload.model_validate(document)
            for document in documents
            if schema_version is None or str(document.get("schemaVersion")) == str(schema_version)
        ]
        return sorted(matches, key=lambda p: (p.created_at or 0.0, p.data_checksum))
