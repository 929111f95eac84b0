"""
JSON database backends and the startup factory.
"""

from schemastash.config import StashConfig
from schemastash.core.errors import ConfigurationError
from schemastash.warehouse.connection import create_sql_connection

from .base import JsonDatabase, TransformAndStoreResult
from .document import DocumentJsonDatabase
from .graph import GraphJsonDatabase
from .relational import RelationalJsonDatabase


def create_json_database(config: StashConfig) -> JsonDatabase:
    """
    Build the backend selected by the configuration (not yet opened).

    Raises:
        ConfigurationError: For an unknown backend or incomplete connection settings
    """
    if config.backend == "document":
        return DocumentJsonDatabase(config.document_dir)
    if config.backend == "relational":
        return RelationalJsonDatabase(create_sql_connection(config))
    if config.backend == "graph":
        return GraphJsonDatabase()
    raise ConfigurationError(f"unsupported backend: {config.backend}")


__all__ = [
    "JsonDatabase",
    "TransformAndStoreResult",
    "DocumentJsonDatabase",
    "GraphJsonDatabase",
    "RelationalJsonDatabase",
    "create_json_database",
]
