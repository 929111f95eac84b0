"""
Validate and transform JSON documents from the command line.

Usage:
    schemastash-validate --input data.json
    schemastash-validate --input data.json --schema schema.json
    schemastash-validate --input data.json --schema in.json \\
        --transformer xfm.jmespath --post-transform-schema out.json

Without a schema or transformer, prints a schema inferred from the input.

Exit codes:
    0  success
    1  input failed validation (or could not be read)
    2  transformation failed or its output failed validation
"""

import argparse
import asyncio
import sys

from schemastash.core.errors import StashError
from schemastash.core.protocol import unwrap_transformation_context, wrap_transformation_context
from schemastash.core.schema import infer_json_schema, validate_data_with_schema
from schemastash.core.transformers import load_transformer_file
from schemastash.observability.logger import configure_logging, get_logger

from .common import emit, load_document

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_INPUT_INVALID = 1
EXIT_OUTPUT_INVALID = 2


def validate_command(args) -> int:
    """
    Run validation (and optional transformation) for parsed arguments.

    Returns:
        Process exit code
    """
    try:
        data = load_document(args.input)
        context = load_document(args.context) if args.context else {}
    except (OSError, ValueError) as e:
        emit({"status": "error", "message": str(e)})
        return EXIT_INPUT_INVALID

    if not args.schema and not args.transformer:
        emit({"status": "ok", "schema": infer_json_schema(data, title=args.title)})
        return EXIT_OK

    if args.schema:
        result = validate_data_with_schema(data, load_document(args.schema))
        if not result.is_valid:
            emit({"status": "error", "message": "input failed validation", "validation": result.to_dict()})
            return EXIT_INPUT_INVALID
        if not args.transformer:
            emit({"status": "ok", "validation": result.to_dict()})
            return EXIT_OK

    try:
        transformer = load_transformer_file(args.transformer)
    except (OSError, StashError) as e:
        emit({"status": "error", "message": str(e)})
        return EXIT_INPUT_INVALID

    output = unwrap_transformation_context(
        asyncio.run(transformer.transform(wrap_transformation_context(data, context)))
    )
    if output is None:
        emit({"status": "error", "message": f"transformer {transformer.name} produced no output"})
        return EXIT_OUTPUT_INVALID

    if args.post_transform_schema:
        result = validate_data_with_schema(output, load_document(args.post_transform_schema))
        if not result.is_valid:
            emit({
                "status": "error",
                "message": "transformed output failed validation",
                "output": output,
                "validation": result.to_dict(),
            })
            return EXIT_OUTPUT_INVALID

    emit({"status": "ok", "output": output})
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate, transform and infer schemas for JSON/YAML documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--input", required=True, help="Input JSON or YAML file")
    parser.add_argument("--schema", help="JSON Schema the input must satisfy")
    parser.add_argument("--transformer", help="Transformer file (.json, .jmespath, .j2)")
    parser.add_argument(
        "--post-transform-schema",
        help="JSON Schema the transformed output must satisfy"
    )
    parser.add_argument("--context", help="JSON or YAML file with extra transformation context")
    parser.add_argument(
        "--title",
        default="GeneratedSchema",
        help="Title of the inferred schema (default: GeneratedSchema)"
    )
    parser.add_argument("--log-level", help="Log level (default: INFO)")
    return parser


def run(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.log_level:
        configure_logging(level=args.log_level)
    try:
        return validate_command(args)
    except (OSError, ValueError) as e:
        emit({"status": "error", "message": str(e)})
        return EXIT_INPUT_INVALID


def main():
    """Main entry point for the validate CLI."""
    try:
        sys.exit(run())
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
