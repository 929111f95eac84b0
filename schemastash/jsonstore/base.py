"""
Storage-agnostic JSON database.

JsonDatabase defines one capability surface over schemas, transformers and
schema-tagged payloads. Backends implement a handful of storage primitives
(insert-if-absent and lookups) in their native idiom; everything else,
including the transform_payload protocol, lives here so every backend
behaves identically.
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping

from pydantic import BaseModel

from schemastash.core.errors import (
    MissingOutputSchemaError,
    PayloadError,
    SchemaVersionConflictError,
    TransformerExistsError,
    UnknownChecksumError,
    UnknownSchemaError,
    UnknownTransformerError,
)
from schemastash.core.models import (
    JsonSchemaRecord,
    SchemaTaggedPayload,
    TransformerRecord,
    ValidationResult,
)
from schemastash.core.protocol import (
    tag,
    unwrap_transformation_context,
    verify_payload_checksum,
    wrap_transformation_context,
)
from schemastash.core.schema import (
    compare_schemas,
    select_version,
    validate_data_with_schema,
    validate_schema_document,
)
from schemastash.core.transformers import normalize_language, transformer_from_record
from schemastash.observability.logger import get_logger
from schemastash.observability.metrics import (
    increment_counter,
    payloads_duplicate_total,
    payloads_stored_total,
)

logger = get_logger(__name__)

JSON_SCHEMAS_COLLECTION = "json-schemas"
TRANSFORMERS_COLLECTION = "transformers"
SCHEMA_TAGGED_PAYLOADS_COLLECTION = "schema-tagged-payloads"


class TransformAndStoreResult(BaseModel):
    """
    Outcome of transform_and_store.

    Attributes:
        payload: The transformed payload, or None when the transformation failed
        validation: Validation of payload data against the output schema
        stored: True when the payload was newly written
    """

    payload: SchemaTaggedPayload | None = None
    validation: ValidationResult | None = None
    stored: bool = False


class JsonDatabase(ABC):
    """
    Abstract JSON database.

    Exactly one implementation is active per process, chosen at startup by
    create_json_database(config).
    """

    backend_name: str = "abstract"

    async def open(self) -> None:
        """Acquire resources and create collections/tables."""

    async def close(self) -> None:
        """Release resources."""

    async def __aenter__(self) -> "JsonDatabase":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # =======================
    # STORAGE PRIMITIVES
    # =======================

    @abstractmethod
    async def _insert_schema_record(self, record: JsonSchemaRecord) -> bool:
        """Insert unless (title, version) exists; True when written."""

    @abstractmethod
    async def _list_schema_records(self, title: str) -> list[JsonSchemaRecord]:
        """Every stored version of a schema family."""

    @abstractmethod
    async def _insert_transformer_record(self, record: TransformerRecord) -> bool:
        """Insert unless the name exists; True when written."""

    @abstractmethod
    async def get_transformer(self, transformer_name: str) -> TransformerRecord | None:
        pass

    @abstractmethod
    async def _insert_payload(self, payload: SchemaTaggedPayload) -> bool:
        """Insert unless the checksum exists; True when written. Never overwrites."""

    @abstractmethod
    async def get_schema_tagged_payload(self, data_checksum: str) -> SchemaTaggedPayload | None:
        pass

    @abstractmethod
    async def find_schema_tagged_payloads(
        self, schema_name: str, schema_version: str | None = None
    ) -> list[SchemaTaggedPayload]:
        """Payloads of a schema family, optionally of one version, oldest first."""

    async def _record_derivation(
        self,
        source: SchemaTaggedPayload,
        derived: SchemaTaggedPayload,
        transformer: TransformerRecord,
    ) -> None:
        """Hook for backends that keep lineage."""

    # =======================
    # SCHEMAS
    # =======================

    async def put_schema(self, schema: Any) -> ValidationResult:
        """
        Register a schema version.

        Schemas need "title" and "version" and must pass their meta-schema;
        failures are returned, not raised. Re-registering identical content
        is a no-op.

        Raises:
            SchemaVersionConflictError: If (title, version) exists with different content
        """
        result = validate_schema_document(schema)
        if not result.is_valid:
            logger.warning(
                "Rejected schema",
                extra={"schema_title": schema.get("title") if isinstance(schema, dict) else None,
                       "errors": result.to_dict()["errors"]},
            )
            return result

        record = JsonSchemaRecord.from_schema(schema)
        family = await self._list_schema_records(record.title)
        existing = select_version(family, record.version, key=lambda r: r.version)
        if existing is not None:
            if existing.sha256 != record.sha256:
                raise SchemaVersionConflictError(record.title, record.version)
            logger.debug("Schema already registered",
                         extra={"schema_title": record.title, "version": record.version})
            return result

        previous = select_version(family, None, key=lambda r: r.version)
        if previous is not None:
            diff = compare_schemas(previous.content, record.content)
            logger.info(
                "Registering new schema version",
                extra={"schema_title": record.title, "version": record.version,
                       "previous_version": previous.version, **diff},
            )

        if not await self._insert_schema_record(record):
            stored = select_version(await self._list_schema_records(record.title),
                                    record.version, key=lambda r: r.version)
            if stored is None or stored.sha256 != record.sha256:
                raise SchemaVersionConflictError(record.title, record.version)
        return result

    async def get_schema_record(
        self, schema_name: str, schema_version: str | None = None
    ) -> JsonSchemaRecord | None:
        """Exact version, or the lexically greatest one when version is None."""
        family = await self._list_schema_records(schema_name)
        return select_version(family, schema_version, key=lambda r: r.version)

    async def get_schema(
        self, schema_name: str, schema_version: str | None = None
    ) -> dict[str, Any] | None:
        record = await self.get_schema_record(schema_name, schema_version)
        return record.content if record else None

    async def find_latest_matching_schema(self, schema_name: str) -> dict[str, Any] | None:
        return await self.get_schema(schema_name)

    async def list_schema_versions(self, schema_name: str) -> list[str]:
        return sorted(r.version for r in await self._list_schema_records(schema_name))

    # =======================
    # TRANSFORMERS
    # =======================

    async def put_transformer(
        self,
        name: str,
        language: str,
        source_code: str,
        output_schema: str | None = None,
        input_schemas: list[str] | None = None,
    ) -> TransformerRecord:
        """
        Store a transformer.

        Raises:
            UnsupportedTransformerLanguageError: For an unknown language tag
            UnknownSchemaError: If a declared input or output schema does not resolve
            TransformerExistsError: If the name is taken by a different transformer
        """
        record = TransformerRecord(
            name=name,
            language=normalize_language(language).value,
            source_code=source_code,
            output_schema=output_schema,
            supported_input_schemas=list(input_schemas or []),
        )
        return await self.put_transformer_record(record)

    async def put_transformer_record(self, record: TransformerRecord) -> TransformerRecord:
        """Store a transformer definition; see put_transformer."""
        normalize_language(record.language)
        declared = [("output", record.output_schema)]
        declared += [("input", name) for name in record.supported_input_schemas]
        for role, schema_name in declared:
            if schema_name is not None and await self.get_schema_record(schema_name) is None:
                raise UnknownSchemaError(schema_name, role=role)

        existing = await self.get_transformer(record.name)
        if existing is None and await self._insert_transformer_record(record):
            logger.info("Stored transformer",
                        extra={"transformer": record.name, "language": record.language})
            return record

        existing = existing or await self.get_transformer(record.name)
        if existing is not None and existing.to_wire() == record.to_wire():
            logger.debug("Transformer already stored", extra={"transformer": record.name})
            return existing
        raise TransformerExistsError(record.name)

    async def require_transformer(self, transformer_name: str) -> TransformerRecord:
        record = await self.get_transformer(transformer_name)
        if record is None:
            raise UnknownTransformerError(transformer_name)
        return record

    async def require_transformer_with_output_schema(self, transformer_name: str) -> TransformerRecord:
        record = await self.require_transformer(transformer_name)
        if record.output_schema is None:
            raise MissingOutputSchemaError(transformer_name)
        return record

    # =======================
    # PAYLOADS
    # =======================

    async def put_schema_tagged_payload(self, payload: SchemaTaggedPayload | Mapping[str, Any]) -> bool:
        """
        Store a payload unless its checksum is already stored.

        Storing the same payload twice is not an error; the first copy wins.

        Returns:
            True when newly written

        Raises:
            PayloadError: If the envelope is malformed or the checksum does not match the data
        """
        if not isinstance(payload, SchemaTaggedPayload):
            try:
                payload = SchemaTaggedPayload.model_validate(payload)
            except ValueError as e:
                raise PayloadError(f"invalid schema-tagged payload: {e}") from e
        if not verify_payload_checksum(payload):
            raise PayloadError(
                f"dataChecksum {payload.data_checksum} does not match payload data",
                data_checksum=payload.data_checksum,
            )

        stored = await self._insert_payload(payload)
        if stored:
            increment_counter(payloads_stored_total, backend=self.backend_name)
            logger.debug("Stored payload", extra={"data_checksum": payload.data_checksum,
                                                  "schema_name": payload.schema_name})
        else:
            increment_counter(payloads_duplicate_total, backend=self.backend_name)
            logger.debug("Payload already stored", extra={"data_checksum": payload.data_checksum})
        return stored

    async def require_schema_tagged_payload(self, data_checksum: str) -> SchemaTaggedPayload:
        payload = await self.get_schema_tagged_payload(data_checksum)
        if payload is None:
            raise UnknownChecksumError(data_checksum)
        return payload

    async def require_schema(
        self, schema_name: str, schema_version: str | None = None, role: str | None = None
    ) -> JsonSchemaRecord:
        record = await self.get_schema_record(schema_name, schema_version)
        if record is None:
            raise UnknownSchemaError(schema_name, schema_version, role=role)
        return record

    # =======================
    # TRANSFORMATION
    # =======================

    async def _transform(
        self,
        transformer_name: str,
        data_checksum: str,
        context: Mapping[str, Any] | None,
    ) -> tuple[SchemaTaggedPayload | None, SchemaTaggedPayload, TransformerRecord, JsonSchemaRecord]:
        context = dict(context or {})
        transformer_record = await self.require_transformer_with_output_schema(transformer_name)
        payload = await self.require_schema_tagged_payload(data_checksum)
        output_schema = await self.require_schema(transformer_record.output_schema, role="output")

        if transformer_record.supported_input_schemas and \
                payload.schema_name not in transformer_record.supported_input_schemas:
            logger.warning(
                "Payload schema not among transformer's supported inputs",
                extra={"transformer": transformer_name, "schema_name": payload.schema_name,
                       "supported": transformer_record.supported_input_schemas},
            )

        transformer = transformer_from_record(transformer_record)
        unwrapped = unwrap_transformation_context(
            await transformer.transform(wrap_transformation_context(payload.data, context))
        )
        if unwrapped is None:
            return None, payload, transformer_record, output_schema
        if not isinstance(unwrapped, Mapping) or "data" not in unwrapped:
            logger.error(
                'Transformer output has no "data" field',
                extra={"transformer": transformer_name, "data_checksum": data_checksum},
            )
            return None, payload, transformer_record, output_schema

        derived = tag(output_schema.title, output_schema.version, unwrapped["data"], context)
        return derived, payload, transformer_record, output_schema

    async def transform_payload(
        self,
        transformer_name: str,
        data_checksum: str,
        context: Mapping[str, Any] | None = None,
    ) -> SchemaTaggedPayload | None:
        """
        Run a stored transformer on a stored payload.

        The result is tagged with the transformer's output schema (latest
        version), a checksum of the new data and createdAt from context or
        the wall clock. Nothing is stored.

        Returns:
            The new payload, or None when the transformation failed

        Raises:
            UnknownTransformerError, MissingOutputSchemaError,
            UnknownChecksumError, UnknownSchemaError
        """
        derived, _, _, _ = await self._transform(transformer_name, data_checksum, context)
        return derived

    async def transform_and_store(
        self,
        transformer_name: str,
        data_checksum: str,
        context: Mapping[str, Any] | None = None,
    ) -> TransformAndStoreResult:
        """
        transform_payload, then validate against the output schema and store.

        Invalid or failed outputs are not stored.
        """
        derived, source, transformer_record, output_schema = await self._transform(
            transformer_name, data_checksum, context
        )
        if derived is None:
            return TransformAndStoreResult()

        validation = validate_data_with_schema(derived.data, output_schema.content)
        if not validation.is_valid:
            logger.warning(
                "Transformed payload failed output schema validation",
                extra={"transformer": transformer_name, "schema_name": output_schema.title,
                       "errors": validation.to_dict()["errors"]},
            )
            return TransformAndStoreResult(payload=derived, validation=validation)

        stored = await self.put_schema_tagged_payload(derived)
        await self._record_derivation(source, derived, transformer_record)
        return TransformAndStoreResult(payload=derived, validation=validation, stored=stored)
