"""
Relational cache CLI.

Usage:
    schemastash-cache canonicalize --input data.json [--sha256] [--ensure-in-database]
    schemastash-cache upsert-source --source path/to/file
    schemastash-cache import --source records.jsonl [--schema schema.json] [--format json]
    schemastash-cache provision [--schema-dir dir]

Every command prints a JSON status object; the exit code is 1 on error.
"""

import argparse
import asyncio
import sys

from schemastash.api import error, ok
from schemastash.core.checksum import canonicalize, sha256_hex
from schemastash.core.errors import StashError
from schemastash.observability.logger import get_logger
from schemastash.warehouse.cache import CacheDatabase
from schemastash.warehouse.connection import STORAGE_ERRORS, create_sql_connection
from schemastash.warehouse.loaders import filesystem_loader, json_document_parser, split_lines_parser
from schemastash.warehouse.schema_mgmt import load_schema_dir

from .common import add_config_arguments, config_from_args, emit, exit_code, load_document

logger = get_logger(__name__)

PARSERS = {
    "jsonl": split_lines_parser,
    "json": json_document_parser,
}


async def dispatch(cache: CacheDatabase, args) -> dict:
    """Route a parsed command to the cache."""
    if args.command == "provision":
        results = await cache.provision_tables()
        return ok(created=results["created"], existing=results["existing"])

    if args.command == "canonicalize":
        canonical = canonicalize(load_document(args.input))
        result = ok(canonical=canonical)
        if args.sha256:
            result["sha256"] = sha256_hex(canonical)
        if args.ensure_in_database:
            await cache.provision_tables()
            row, created = await cache.ensure_data_result(load_document(args.input))
            result.update(id=row.id, sha256=row.sha256, created=created)
        return result

    await cache.provision_tables()

    if args.command == "upsert-source":
        upsert = await cache.upsert_input_source(args.source, filesystem_loader)
        return ok(
            outcome=upsert.outcome.value,
            sha256=upsert.sha256,
            previousSha256=upsert.previous_sha256,
            sourcePath=upsert.source.source_path,
        )

    if args.command == "import":
        schema = load_document(args.schema) if args.schema else None
        written = await cache.run_import_process(
            args.source, filesystem_loader, PARSERS[args.format], schema
        )
        return ok(sourcePath=args.source, written=written)

    return error(f"unknown command: {args.command}")


async def run_command(args) -> dict:
    config = config_from_args(args)
    schema_dir = args.schema_dir or config.schema_dir
    extra_schemas = load_schema_dir(schema_dir) if schema_dir else []
    async with create_sql_connection(config) as conn:
        cache = CacheDatabase(
            conn,
            strict_schema_types=config.strict_schema_types,
            extra_schemas=extra_schemas,
        )
        return await dispatch(cache, args)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Content-addressed cache and change-driven imports",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    add_config_arguments(parser)
    parser.add_argument("--schema-dir", help="Directory of extra JSON Schemas to provision as tables")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("provision", help="Create the cache tables")

    canonicalize_parser = subparsers.add_parser("canonicalize", help="Print canonical JSON")
    canonicalize_parser.add_argument("--input", required=True, help="JSON or YAML file")
    canonicalize_parser.add_argument("--sha256", action="store_true", help="Also print the hash")
    canonicalize_parser.add_argument(
        "--ensure-in-database",
        action="store_true",
        help="Store the document as a content-addressed data result"
    )

    upsert_parser = subparsers.add_parser("upsert-source", help="Record an input source's hash")
    upsert_parser.add_argument("--source", required=True, help="Input source path")

    import_parser = subparsers.add_parser("import", help="Import records if the source changed")
    import_parser.add_argument("--source", required=True, help="Input source path")
    import_parser.add_argument("--schema", help="JSON Schema each record must satisfy")
    import_parser.add_argument(
        "--format",
        choices=sorted(PARSERS),
        default="jsonl",
        help="Source format (default: jsonl)"
    )

    return parser


def run(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        result = asyncio.run(run_command(args))
    except (StashError, OSError, ValueError, *STORAGE_ERRORS) as e:
        logger.error("Command failed", extra={"command": args.command, "error_message": str(e)})
        result = e.to_dict() if isinstance(e, StashError) else error(str(e))

    emit(result)
    return exit_code(result)


def main():
    """Main entry point for the cache CLI."""
    try:
        sys.exit(run())
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
