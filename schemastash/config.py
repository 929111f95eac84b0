"""
Configuration loading for schemastash.

Configuration is built once at startup and passed explicitly to the
storage factory and CLI commands; nothing reads a global "current" config.

Sources, lowest precedence first:

1. Field defaults
2. YAML file (config_path argument or STASH_CONFIG_FILE)
3. .env file (env_file argument), then the process environment (STASH_*)
4. Keyword overrides
"""

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from schemastash.core.errors import ConfigurationError

ENV_PREFIX = "STASH_"
MEMORY = ":memory:"


class StashConfig(BaseModel):
    """
    Runtime configuration.

    Attributes:
        backend: Active JSON database backend (document, relational or graph)
        sql_engine: SQL engine for the relational backend and the cache
        sqlite_path: SQLite database file, or ":memory:"
        document_dir: Root directory of the document store, or ":memory:"
        db_host/db_port/db_name/db_user/db_password: PostgreSQL settings
        pool_min_size/pool_max_size/pool_timeout: PostgreSQL pool settings
        strict_schema_types: Fail table provisioning on unknown JSON Schema types
        schema_dir: Directory of extra JSON Schemas to provision as cache tables
        log_level: Log level name
        log_format: "json" or "text"
    """

    model_config = ConfigDict(extra="forbid")

    backend: Literal["document", "relational", "graph"] = "relational"
    sql_engine: Literal["sqlite", "postgres"] = "sqlite"
    sqlite_path: str = MEMORY
    document_dir: str = MEMORY

    db_host: str = "localhost"
    db_port: int = Field(5432, gt=0, lt=65536)
    db_name: str = "schemastash"
    db_user: str = "stash"
    db_password: str | None = None

    pool_min_size: int = Field(1, ge=1)
    pool_max_size: int = Field(10, ge=1)
    pool_timeout: float = Field(30.0, gt=0)

    strict_schema_types: bool = False
    schema_dir: str | None = None

    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"

    @model_validator(mode="after")
    def check_pool_bounds(self) -> "StashConfig":
        if self.pool_min_size > self.pool_max_size:
            raise ValueError("pool_min_size must not exceed pool_max_size")
        return self

    @property
    def uses_postgres(self) -> bool:
        return self.sql_engine == "postgres"

    @property
    def postgres_conninfo(self) -> str:
        """
        libpq connection string.

        Raises:
            ConfigurationError: If no password is configured
        """
        if not self.db_password:
            raise ConfigurationError(
                "Database password must be provided. "
                "Set STASH_DB_PASSWORD or db_password in the config file."
            )
        return (
            f"host={self.db_host} "
            f"port={self.db_port} "
            f"dbname={self.db_name} "
            f"user={self.db_user} "
            f"password={self.db_password} "
            f"connect_timeout={int(self.pool_timeout)}"
        )


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}", path=str(path))
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration file must contain a mapping", path=str(path))
    return data


def _prefixed(values: dict[str, str | None]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    known = StashConfig.model_fields
    for key, value in values.items():
        if not key.startswith(ENV_PREFIX) or value is None:
            continue
        field = key[len(ENV_PREFIX):].lower()
        if field in known:
            out[field] = value
    return out


def load_config(
    env_file: str | Path | None = None,
    config_path: str | Path | None = None,
    **overrides: Any,
) -> StashConfig:
    """
    Build the configuration from file, environment and overrides.

    Args:
        env_file: Optional .env file; process environment still wins over it
        config_path: Optional YAML file (defaults to STASH_CONFIG_FILE when set)
        **overrides: Final values, e.g. from CLI flags; None values are ignored

    Raises:
        ConfigurationError: If a file is missing or a value is invalid
    """
    values: dict[str, Any] = {}

    config_path = config_path or os.getenv(f"{ENV_PREFIX}CONFIG_FILE")
    if config_path:
        values.update(_read_yaml(Path(config_path)))

    if env_file is not None:
        values.update(_prefixed(dict(dotenv_values(env_file))))
    values.update(_prefixed(dict(os.environ)))
    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return StashConfig(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e.error_count()} error(s)", errors=[
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]) from e
