"""
Table provisioning from JSON Schema documents.

Each object schema becomes one table named after its title:

- "id" is the auto-increment primary key
- "<Table>_id" is an integer foreign key to <Table>.id ("x-foreign-table"
  overrides the table named by the prefix)
- "sha256" is a unique hash column ("x-unique": false keeps it a plain
  column, for tables that are not content-addressed)
- other properties map by JSON type; "x-unique": true adds a unique constraint

Provisioning is a one-time step and idempotent: existing tables are left alone.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from schemastash.core.errors import SchemaProvisioningError
from schemastash.observability.logger import get_logger

from .connection import AsyncSqlConnection, quote_identifier

logger = get_logger(__name__)

BUILTIN_SCHEMA_DIR = Path(__file__).parent / "schemas"

PRIMARY_KEY = "id"
FOREIGN_KEY_SUFFIX = "_id"
HASH_COLUMN = "sha256"
HASH_COLUMN_TYPE = "VARCHAR(71)"


@dataclass(frozen=True)
class ForeignKey:
    """A <table>_id column referencing another table's primary key."""

    local_table: str
    local_key: str
    foreign_table: str
    foreign_key: str = PRIMARY_KEY


@dataclass
class TableDefinition:
    """CREATE TABLE parts derived from one JSON Schema."""

    name: str
    columns: list[tuple[str, str]] = field(default_factory=list)
    foreign_keys: list[ForeignKey] = field(default_factory=list)
    skipped_properties: list[str] = field(default_factory=list)

    def create_statement(self, references: Iterable[ForeignKey] = ()) -> str:
        """CREATE TABLE with inline REFERENCES for the given foreign keys."""
        references = {fk.local_key: fk for fk in references}
        parts = []
        for column_name, column_type in self.columns:
            column_sql = f"{quote_identifier(column_name)} {column_type}"
            fk = references.get(column_name)
            if fk is not None:
                column_sql += (
                    f" REFERENCES {quote_identifier(fk.foreign_table)}"
                    f"({quote_identifier(fk.foreign_key)})"
                )
            parts.append(column_sql)
        return (
            f"CREATE TABLE IF NOT EXISTS {quote_identifier(self.name)} (\n    "
            + ",\n    ".join(parts)
            + "\n)"
        )


def get_columns_from_json_schema(
    schema: dict[str, Any],
    exclude: Iterable[str] | None = None,
    auto_convert_refs: bool = True,
) -> list[str]:
    """
    Column names for a schema's properties.

    Properties holding a "$ref" become "<name>_id" join columns.
    """
    excluded = set(exclude or ())
    columns = []
    for key, prop in (schema.get("properties") or {}).items():
        if auto_convert_refs and isinstance(prop, dict) and "$ref" in prop:
            key = f"{key}{FOREIGN_KEY_SUFFIX}"
        if key in excluded:
            continue
        columns.append(key)
    return columns


def _is_foreign_key_column(name: str) -> bool:
    return name.endswith(FOREIGN_KEY_SUFFIX) and len(name) > len(FOREIGN_KEY_SUFFIX)


def extract_foreign_keys(schema: dict[str, Any]) -> list[ForeignKey]:
    """Foreign keys declared by the <table>_id naming convention."""
    table = schema.get("title")
    out = []
    for key, prop in (schema.get("properties") or {}).items():
        if not _is_foreign_key_column(key):
            continue
        foreign_table = None
        if isinstance(prop, dict):
            foreign_table = prop.get("x-foreign-table")
        out.append(ForeignKey(
            local_table=table,
            local_key=key,
            foreign_table=foreign_table or key[: -len(FOREIGN_KEY_SUFFIX)],
        ))
    return out


def _json_type(prop: Any) -> str | None:
    if not isinstance(prop, dict):
        return None
    t = prop.get("type")
    if isinstance(t, list):
        non_null = [x for x in t if x != "null"]
        return non_null[0] if non_null else None
    return t


def json_schema_to_table_definition(
    schema: dict[str, Any],
    primary_key_type: str,
    float_type: str,
    strict: bool = False,
) -> TableDefinition:
    """
    Map a JSON Schema to a table definition.

    Args:
        schema: Object schema with a "title"
        primary_key_type: Dialect type for the "id" column
        float_type: Dialect type for JSON "number"
        strict: Raise on properties of unknown type instead of skipping them

    Raises:
        SchemaProvisioningError: If the schema has no title or properties, or
            (when strict) a property type has no column mapping
    """
    title = schema.get("title")
    properties = schema.get("properties")
    if not title:
        raise SchemaProvisioningError("cannot provision a table for a schema without a title")
    if not isinstance(properties, dict) or not properties:
        raise SchemaProvisioningError(f"schema {title} has no properties", table=title)

    type_map = {
        "integer": "INTEGER",
        "number": float_type,
        "string": "TEXT",
        "boolean": "BOOLEAN",
    }

    definition = TableDefinition(name=title, foreign_keys=extract_foreign_keys(schema))
    for name, prop in properties.items():
        if name == PRIMARY_KEY:
            column_type = primary_key_type
        elif _is_foreign_key_column(name):
            column_type = "INTEGER"
        elif name == HASH_COLUMN:
            column_type = HASH_COLUMN_TYPE
            if not isinstance(prop, dict) or prop.get("x-unique", True):
                column_type += " UNIQUE"
        else:
            json_type = _json_type(prop)
            column_type = type_map.get(json_type)
            if column_type is None:
                if strict:
                    raise SchemaProvisioningError(
                        f"no column type for property {title}.{name} of type {json_type!r}",
                        table=title,
                        column=name,
                        json_type=json_type,
                    )
                logger.warning(
                    "Skipping property with unsupported JSON type",
                    extra={"table": title, "column": name, "json_type": json_type},
                )
                definition.skipped_properties.append(name)
                continue
            if isinstance(prop, dict) and prop.get("x-unique"):
                column_type += " UNIQUE"
        definition.columns.append((name, column_type))
    return definition


def order_by_dependency(schemas: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Order schemas so referenced tables come before referencing ones.

    Self references and references to tables outside the list do not
    constrain the order; cycles keep their input order.
    """
    by_title = {s.get("title"): s for s in schemas}
    ordered: list[dict[str, Any]] = []
    visiting: set[str] = set()
    done: set[str] = set()

    def visit(schema: dict[str, Any]) -> None:
        title = schema.get("title")
        if title in done or title in visiting:
            return
        visiting.add(title)
        for fk in extract_foreign_keys(schema):
            if fk.foreign_table != title and fk.foreign_table in by_title:
                visit(by_title[fk.foreign_table])
        visiting.discard(title)
        done.add(title)
        ordered.append(schema)

    for schema in schemas:
        visit(schema)
    return ordered


async def generate_tables_from_schemas(
    conn: AsyncSqlConnection,
    schemas: list[dict[str, Any]],
    strict: bool = False,
) -> dict[str, list]:
    """
    Create a table for every schema that does not have one yet.

    Foreign keys are declared inline; a key pointing at a table that is
    neither being provisioned nor already present is skipped with a warning.

    Returns:
        {"created": [...], "existing": [...], "skipped_foreign_keys": [...]}
    """
    results: dict[str, list] = {"created": [], "existing": [], "skipped_foreign_keys": []}
    available: set[str] = set()

    for schema in order_by_dependency(schemas):
        definition = json_schema_to_table_definition(
            schema, conn.primary_key_type, conn.float_type, strict=strict
        )
        if await conn.table_exists(definition.name):
            results["existing"].append(definition.name)
            available.add(definition.name)
            continue

        references = []
        for fk in definition.foreign_keys:
            if fk.foreign_table == definition.name or fk.foreign_table in available \
                    or await conn.table_exists(fk.foreign_table):
                references.append(fk)
            else:
                logger.warning(
                    "Skipping foreign key to table with no schema",
                    extra={"table": definition.name, "column": fk.local_key,
                           "foreign_table": fk.foreign_table},
                )
                results["skipped_foreign_keys"].append(fk)

        statement = definition.create_statement(references)
        logger.debug("Creating table", extra={"table": definition.name, "ddl": statement})
        await conn.execute_command(statement)
        results["created"].append(definition.name)
        available.add(definition.name)

    if results["created"]:
        logger.info("Provisioned tables", extra={"tables": results["created"]})
    return results


def load_schema_dir(path: str | Path) -> list[dict[str, Any]]:
    """
    Load every *.json schema in a directory, sorted by file name.

    Raises:
        FileNotFoundError: If the directory does not exist
    """
    path = Path(path)
    if not path.is_dir():
        raise FileNotFoundError(f"Schema directory not found: {path}")
    schemas = []
    for schema_file in sorted(path.glob("*.json")):
        with open(schema_file, encoding="utf-8") as f:
            schemas.append(json.load(f))
    return schemas


def builtin_table_schemas() -> list[dict[str, Any]]:
    """Schemas of the cache tables: CacheableInputSource, JsonSchemaRecord, CacheableDataResult."""
    return load_schema_dir(BUILTIN_SCHEMA_DIR)
