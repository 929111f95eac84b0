"""
Content-addressed cache and import engine.

Input sources are tracked by path and content hash; imported records,
transformer sources and transformed outputs are stored once per content
hash in the append-only CacheableDataResult table. Nothing in that table
is ever updated or deleted.
"""

from datetime import datetime, timezone
from typing import Any, Mapping

from schemastash.core.checksum import canonicalize, content_sha256, sha256_hex
from schemastash.core.models import (
    CacheableDataResult,
    CacheableInputSource,
    InputSourceUpsertResult,
    UpsertOutcome,
)
from schemastash.core.protocol import unwrap_transformation_context, wrap_transformation_context
from schemastash.core.schema import validate_data_with_schema
from schemastash.core.transformers import Transformer
from schemastash.observability.logger import get_logger, log_operation
from schemastash.observability.metrics import (
    cached_transformations_total,
    import_records_written_total,
    import_short_circuits_total,
    increment_counter,
    input_source_upserts_total,
)

from .connection import AsyncSqlConnection, quote_identifier
from .loaders import Loader, Parser, maybe_await
from .schema_mgmt import builtin_table_schemas, generate_tables_from_schemas

logger = get_logger(__name__)

INPUT_SOURCE_TABLE = "CacheableInputSource"
DATA_RESULT_TABLE = "CacheableDataResult"
SCHEMA_RECORD_TABLE = "JsonSchemaRecord"

# Hash of an input source whose first import has not completed
PENDING_SHA256 = ""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _insert_sql(table: str, columns: list[str]) -> str:
    column_list = ", ".join(quote_identifier(c) for c in columns)
    placeholders = ", ".join(["%s"] * len(columns))
    return (
        f"INSERT INTO {quote_identifier(table)} ({column_list}) "
        f"VALUES ({placeholders}) ON CONFLICT DO NOTHING"
    )


class CacheDatabase:
    """
    Relational cache over an async SQL connection.

    Handles:
    - Provisioning the cache tables (plus extra schema tables)
    - Tracking input sources by content hash
    - Content-addressed storage of records, schemas and transformer sources
    - Change-driven imports and cached transformations
    """

    def __init__(
        self,
        conn: AsyncSqlConnection,
        strict_schema_types: bool = False,
        extra_schemas: list[dict[str, Any]] | None = None,
    ):
        """
        Initialize the cache.

        Args:
            conn: Open SQL connection
            strict_schema_types: Fail provisioning on unknown JSON Schema types
            extra_schemas: Additional JSON Schemas to provision as tables
        """
        self.conn = conn
        self.strict_schema_types = strict_schema_types
        self.extra_schemas = extra_schemas or []

    async def provision_tables(self) -> dict[str, list]:
        """Create the cache tables and any extra schema tables that are missing."""
        return await generate_tables_from_schemas(
            self.conn,
            builtin_table_schemas() + list(self.extra_schemas),
            strict=self.strict_schema_types,
        )

    # =======================
    # INPUT SOURCES
    # =======================

    async def get_input_source(self, source_path: str) -> CacheableInputSource | None:
        rows = await self.conn.execute_query(
            f'SELECT * FROM {quote_identifier(INPUT_SOURCE_TABLE)} WHERE "sourcePath" = %s',
            (source_path,),
        )
        return CacheableInputSource(**rows[0]) if rows else None

    async def upsert_input_source(self, source_path: str, loader: Loader) -> InputSourceUpsertResult:
        """
        Load a source and record its content hash.

        Returns:
            inserted (no prior row), unchanged (same hash, nothing written)
            or upserted (hash, size and updatedAt replaced in place, with
            the previous hash reported)
        """
        content = await maybe_await(loader(source_path))
        check = await self._check_source_content(source_path, content)
        if not check.changed:
            return check
        return await self._commit_source_content(check, content)

    async def _check_source_content(self, source_path: str, content: str) -> InputSourceUpsertResult:
        """
        Compare content with the stored hash without recording the new hash.

        A source seen for the first time gets a row holding PENDING_SHA256 so
        records can link to it before the import completes; a row still
        pending counts as inserted.
        """
        sha256 = sha256_hex(content)
        existing = await self.get_input_source(source_path)
        if existing is None:
            await self.conn.execute_command(
                _insert_sql(INPUT_SOURCE_TABLE, ["sourcePath", "sha256", "size", "updatedAt"]),
                (source_path, PENDING_SHA256, len(content.encode("utf-8")), _now()),
            )
            existing = await self.get_input_source(source_path)

        if existing.sha256 == sha256:
            result = InputSourceUpsertResult(
                outcome=UpsertOutcome.UNCHANGED,
                sha256=sha256,
                previous_sha256=existing.sha256,
                source=existing,
            )
            self._count_source_check(result)
            return result
        if existing.sha256 == PENDING_SHA256:
            return InputSourceUpsertResult(
                outcome=UpsertOutcome.INSERTED, sha256=sha256, source=existing
            )
        return InputSourceUpsertResult(
            outcome=UpsertOutcome.UPSERTED,
            sha256=sha256,
            previous_sha256=existing.sha256,
            source=existing,
        )

    async def _commit_source_content(
        self, check: InputSourceUpsertResult, content: str
    ) -> InputSourceUpsertResult:
        """Write the hash, size and updatedAt found by _check_source_content."""
        await self.conn.execute_command(
            f'UPDATE {quote_identifier(INPUT_SOURCE_TABLE)} '
            f'SET "sha256" = %s, "size" = %s, "updatedAt" = %s WHERE "id" = %s',
            (check.sha256, len(content.encode("utf-8")), _now(), check.source.id),
        )
        result = check.model_copy(
            update={"source": await self.get_input_source(check.source.source_path)}
        )
        self._count_source_check(result)
        return result

    @staticmethod
    def _count_source_check(result: InputSourceUpsertResult) -> None:
        increment_counter(input_source_upserts_total, outcome=result.outcome.value)
        logger.debug(
            "Checked input source",
            extra={"source_path": result.source.source_path, "outcome": result.outcome.value,
                   "sha256": result.sha256},
        )

    # =======================
    # CONTENT-ADDRESSED RECORDS
    # =======================

    async def get_data_result(self, sha256: str) -> CacheableDataResult | None:
        rows = await self.conn.execute_query(
            f'SELECT * FROM {quote_identifier(DATA_RESULT_TABLE)} WHERE "sha256" = %s',
            (sha256,),
        )
        return CacheableDataResult(**rows[0]) if rows else None

    async def list_data_results(self) -> list[CacheableDataResult]:
        rows = await self.conn.execute_query(
            f'SELECT * FROM {quote_identifier(DATA_RESULT_TABLE)} ORDER BY "id"'
        )
        return [CacheableDataResult(**row) for row in rows]

    async def ensure_data_result(
        self,
        value: Any,
        parent_id: int | None = None,
        input_source_id: int | None = None,
        json_schema_record_id: int | None = None,
        transformer_data_id: int | None = None,
    ) -> tuple[CacheableDataResult, bool]:
        """
        Insert a JSON value unless its content hash is already stored.

        Links are only written with a new row; an existing row is returned as is.

        Returns:
            (row, created)
        """
        content = canonicalize(value)
        sha256 = sha256_hex(content)
        existing = await self.get_data_result(sha256)
        if existing is not None:
            return existing, False

        try:
            new_id = await self.conn.insert_returning_id(
                _insert_sql(DATA_RESULT_TABLE, [
                    "sha256", "content", "size", "createdAt",
                    "CacheableDataResult_id", "CacheableInputSource_id",
                    "JsonSchemaRecord_id", "TransformerData_id",
                ]),
                (
                    sha256, content, len(content.encode("utf-8")), _now(),
                    parent_id, input_source_id, json_schema_record_id, transformer_data_id,
                ),
            )
        except Exception as e:
            if not self.conn.is_unique_violation(e):
                raise
            new_id = None

        row = await self.get_data_result(sha256)
        return row, new_id is not None

    async def ensure_json_schema_record(self, schema: dict[str, Any]) -> int:
        """
        Store a schema by the hash of its canonical form unless present.

        Returns:
            The JsonSchemaRecord id
        """
        content = canonicalize(schema)
        sha256 = content_sha256(schema)
        select = f'SELECT "id" FROM {quote_identifier(SCHEMA_RECORD_TABLE)} WHERE "sha256" = %s'

        rows = await self.conn.execute_query(select, (sha256,))
        if rows:
            return rows[0]["id"]

        try:
            new_id = await self.conn.insert_returning_id(
                _insert_sql(SCHEMA_RECORD_TABLE, ["sha256", "content", "description", "createdAt"]),
                (sha256, content, schema.get("description"), _now()),
            )
        except Exception as e:
            if not self.conn.is_unique_violation(e):
                raise
            new_id = None
        if new_id is not None:
            return new_id
        rows = await self.conn.execute_query(select, (sha256,))
        return rows[0]["id"]

    # =======================
    # IMPORTS AND TRANSFORMATIONS
    # =======================

    async def run_import_process(
        self,
        source_path: str,
        loader: Loader,
        parser: Parser,
        validator_schema: dict[str, Any] | None = None,
    ) -> int:
        """
        Import the records of an input source if its content changed.

        Unchanged sources short-circuit: the parser and validator are never
        called. Otherwise every record that validates is stored by content
        hash and linked to its source and validating schema. Records that fail
        validation are logged and skipped. The new hash is recorded only after
        every record is stored, so a failed import is retried by the next call.

        Returns:
            Number of newly written records (not the number of records parsed)
        """
        content = await maybe_await(loader(source_path))
        upsert = await self._check_source_content(source_path, content)

        if not upsert.changed:
            logger.info(
                "Input source unchanged; skipping import",
                extra={"source_path": source_path, "sha256": upsert.sha256},
            )
            increment_counter(import_short_circuits_total)
            return 0

        with log_operation("Importing input source", logger=logger, source_path=source_path,
                           outcome=upsert.outcome.value):
            records = await maybe_await(parser(content))
            schema_record_id = None
            if validator_schema is not None:
                schema_record_id = await self.ensure_json_schema_record(validator_schema)

            written = 0
            invalid = 0
            for index, record in enumerate(records):
                if validator_schema is not None:
                    validation = validate_data_with_schema(record, validator_schema)
                    if not validation.is_valid:
                        invalid += 1
                        logger.warning(
                            "Skipping record that failed validation",
                            extra={"source_path": source_path, "record_index": index,
                                   "errors": validation.to_dict()["errors"]},
                        )
                        continue
                _, created = await self.ensure_data_result(
                    record,
                    input_source_id=upsert.source.id,
                    json_schema_record_id=schema_record_id,
                )
                if created:
                    written += 1

            logger.info(
                "Imported records",
                extra={"source_path": source_path, "records": len(records),
                       "written": written, "invalid": invalid},
            )

        await self._commit_source_content(upsert, content)
        increment_counter(import_records_written_total, written)
        return written

    async def find_cached_transformation(
        self, input_id: int, transformer_id: int
    ) -> CacheableDataResult | None:
        rows = await self.conn.execute_query(
            f'SELECT * FROM {quote_identifier(DATA_RESULT_TABLE)} '
            f'WHERE "CacheableDataResult_id" = %s AND "TransformerData_id" = %s '
            f'ORDER BY "id" LIMIT 1',
            (input_id, transformer_id),
        )
        return CacheableDataResult(**rows[0]) if rows else None

    async def run_cacheable_transformation(
        self,
        transformer: Transformer,
        data: Any,
        context: Mapping[str, Any] | None = None,
    ) -> CacheableDataResult | None:
        """
        Transform data, storing the transformer source, input and output.

        The output row links to the input (CacheableDataResult_id) and to the
        transformer source (TransformerData_id). Without a context, an
        (input, transformer) pair computed before is answered from the cache
        without running the transformer; a context may change the output so
        it always runs.

        Returns:
            The output row, or None when the transformation failed
        """
        transformer_row, _ = await self.ensure_data_result(transformer.source_code)
        input_row, _ = await self.ensure_data_result(data)

        if not context:
            cached = await self.find_cached_transformation(input_row.id, transformer_row.id)
            if cached is not None:
                increment_counter(cached_transformations_total, result="hit")
                logger.debug(
                    "Transformation answered from cache",
                    extra={"transformer": transformer.name, "sha256": cached.sha256},
                )
                return cached

        output = unwrap_transformation_context(
            await transformer.transform(wrap_transformation_context(data, context))
        )
        if output is None:
            increment_counter(cached_transformations_total, result="failed")
            return None

        output_row, _ = await self.ensure_data_result(
            output,
            parent_id=input_row.id,
            input_source_id=input_row.input_source_id,
            transformer_data_id=transformer_row.id,
        )
        increment_counter(cached_transformations_total, result="computed")
        return output_row
