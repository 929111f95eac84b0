"""
JSON database CLI.

Usage:
    schemastash-store put-schema --file schema.json
    schemastash-store get-schema --name <title> [--version <v>]
    schemastash-store put-transformer --name <name> --file xfm.jmespath \\
        [--language jmespath] [--output-schema <title>] [--input-schema <title> ...]
    schemastash-store tag --schema-name <title> --input data.json [--context ctx.json]
    schemastash-store get-payload (--checksum sha256:... | --schema-name <title>)
    schemastash-store transform --transformer <name> --checksum sha256:... [--store]
    schemastash-store lineage --checksum sha256:...

Every command prints a JSON status object; the exit code is 1 on error.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from schemastash.api import StashService, error
from schemastash.core.errors import StashError
from schemastash.core.transformers import language_for_path
from schemastash.jsonstore import create_json_database
from schemastash.observability.logger import get_logger
from schemastash.warehouse.connection import STORAGE_ERRORS

from .common import add_config_arguments, config_from_args, emit, exit_code, load_document

logger = get_logger(__name__)


async def dispatch(service: StashService, args) -> dict:
    """Route a parsed command to the service."""
    if args.command == "put-schema":
        return await service.put_schema(load_document(args.file))

    if args.command == "get-schema":
        return await service.get_schema(args.name, args.version)

    if args.command == "put-transformer":
        language = args.language or language_for_path(args.file).value
        return await service.put_transformer(
            args.name,
            language,
            Path(args.file).read_text(encoding="utf-8"),
            output_schema=args.output_schema,
            input_schemas=args.input_schema,
        )

    if args.command == "tag":
        context = load_document(args.context) if args.context else None
        return await service.tag_and_store(
            args.schema_name, load_document(args.input), args.schema_version, context
        )

    if args.command == "get-payload":
        if args.checksum:
            return await service.get_schema_tagged_payload(args.checksum)
        return await service.find_schema_tagged_payloads(args.schema_name, args.schema_version)

    if args.command == "transform":
        context = load_document(args.context) if args.context else None
        return await service.transform_payload(
            args.transformer, args.checksum, context, store=args.store
        )

    if args.command == "lineage":
        return await service.get_lineage(args.checksum)

    return error(f"unknown command: {args.command}")


async def run_command(args) -> dict:
    config = config_from_args(args)
    async with create_json_database(config) as database:
        return await dispatch(StashService(database), args)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Store and transform schema-tagged payloads",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    add_config_arguments(parser)
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    put_schema_parser = subparsers.add_parser("put-schema", help="Register a JSON Schema version")
    put_schema_parser.add_argument("--file", required=True, help="Schema file (JSON or YAML)")

    get_schema_parser = subparsers.add_parser("get-schema", help="Fetch a schema")
    get_schema_parser.add_argument("--name", required=True, help="Schema title")
    get_schema_parser.add_argument("--version", help="Schema version (default: latest)")

    put_transformer_parser = subparsers.add_parser("put-transformer", help="Store a transformer")
    put_transformer_parser.add_argument("--name", required=True, help="Transformer name")
    put_transformer_parser.add_argument("--file", required=True, help="Transformer source file")
    put_transformer_parser.add_argument(
        "--language",
        help="Transformer language (default: from file extension)"
    )
    put_transformer_parser.add_argument("--output-schema", help="Title of the output schema")
    put_transformer_parser.add_argument(
        "--input-schema",
        action="append",
        default=[],
        help="Title of a supported input schema (repeatable)"
    )

    tag_parser = subparsers.add_parser("tag", help="Validate, tag and store a payload")
    tag_parser.add_argument("--schema-name", required=True, help="Schema title")
    tag_parser.add_argument("--schema-version", help="Schema version (default: latest)")
    tag_parser.add_argument("--input", required=True, help="Data file (JSON or YAML)")
    tag_parser.add_argument("--context", help="Context file, e.g. with createdAt")

    get_payload_parser = subparsers.add_parser("get-payload", help="Fetch payloads")
    selector = get_payload_parser.add_mutually_exclusive_group(required=True)
    selector.add_argument("--checksum", help="Data checksum (sha256:<hex>)")
    selector.add_argument("--schema-name", help="Schema title")
    get_payload_parser.add_argument("--schema-version", help="Schema version")

    transform_parser = subparsers.add_parser("transform", help="Transform a stored payload")
    transform_parser.add_argument("--transformer", required=True, help="Transformer name")
    transform_parser.add_argument("--checksum", required=True, help="Input data checksum")
    transform_parser.add_argument("--context", help="Context file (JSON or YAML)")
    transform_parser.add_argument(
        "--store",
        action="store_true",
        help="Validate against the output schema and store the result"
    )

    lineage_parser = subparsers.add_parser("lineage", help="Show a payload's derivation chain")
    lineage_parser.add_argument("--checksum", required=True, help="Data checksum")

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
    """Main entry point for the store CLI."""
    try:
        sys.exit(run())
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
