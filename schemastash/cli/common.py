"""
Helpers shared by the schemastash command line tools.
"""

import argparse
import json
from pathlib import Path
from typing import Any

import yaml

from schemastash.config import StashConfig, load_config
from schemastash.observability.logger import configure_logging

YAML_SUFFIXES = {".yaml", ".yml"}


def load_document(path: str | Path) -> Any:
    """
    Read a JSON or YAML document (chosen by file extension).

    Raises:
        FileNotFoundError: If the file does not exist
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"file not found: {path}")
    with open(path, encoding="utf-8") as f:
        if path.suffix.lower() in YAML_SUFFIXES:
            return yaml.safe_load(f)
        return json.load(f)


def emit(result: dict[str, Any]) -> None:
    """Print a status object as JSON on stdout."""
    print(json.dumps(result, indent=2, default=str))


def exit_code(result: dict[str, Any]) -> int:
    return 0 if result.get("status") == "ok" else 1


def add_config_arguments(parser: argparse.ArgumentParser) -> None:
    """Options overriding the configuration file and environment."""
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument("--env-file", help=".env file with STASH_* settings")
    parser.add_argument(
        "--backend", choices=["document", "relational", "graph"],
        help="JSON database backend"
    )
    parser.add_argument("--sql-engine", choices=["sqlite", "postgres"], help="SQL engine")
    parser.add_argument("--sqlite-path", help="SQLite database file")
    parser.add_argument("--document-dir", help="Document store directory")
    parser.add_argument("--log-level", help="Log level (default: INFO)")


def config_from_args(args: argparse.Namespace) -> StashConfig:
    """Load configuration and apply CLI overrides; also configures logging."""
    config = load_config(
        env_file=args.env_file,
        config_path=args.config,
        backend=args.backend,
        sql_engine=args.sql_engine,
        sqlite_path=args.sqlite_path,
        document_dir=args.document_dir,
        log_level=args.log_level,
    )
    configure_logging(level=config.log_level, format_type=config.log_format)
    return config
