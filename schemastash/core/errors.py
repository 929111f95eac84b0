"""
Exception hierarchy for schemastash.

Validation failures are not exceptions: they are reported as
ValidationResult objects. Everything here is raised to the caller.
"""

from typing import Any


class StashError(Exception):
    """Base class for all errors raised by schemastash."""

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Structured error response used by the CLI and service layers."""
        out: dict[str, Any] = {"status": "error", "message": self.message}
        if self.details:
            out["details"] = self.details
        return out


# =======================
# RESOLUTION ERRORS
# =======================

class ResolutionError(StashError):
    """A named transformer, schema or checksum could not be resolved."""


class UnknownTransformerError(ResolutionError):
    def __init__(self, transformer_name: str):
        super().__init__(f"no transformer named {transformer_name}", transformer_name=transformer_name)


class MissingOutputSchemaError(ResolutionError):
    def __init__(self, transformer_name: str):
        super().__init__(
            f"transformer {transformer_name} has no output schema",
            transformer_name=transformer_name,
        )


class UnknownChecksumError(ResolutionError):
    def __init__(self, data_checksum: str):
        super().__init__(f"no data with checksum {data_checksum}", data_checksum=data_checksum)


class UnknownSchemaError(ResolutionError):
    def __init__(self, schema_name: str, schema_version: str | None = None, role: str | None = None):
        label = schema_name if schema_version is None else f"{schema_name}@{schema_version}"
        kind = f"{role} schema" if role else "schema"
        super().__init__(
            f"no {kind} matching {label}",
            schema_name=schema_name,
            schema_version=schema_version,
        )


# =======================
# CONFIGURATION ERRORS
# =======================

class ConfigurationError(StashError):
    """Invalid configuration; fatal to the invocation that hit it."""


class UnsupportedTransformerLanguageError(ConfigurationError):
    def __init__(self, language: str):
        super().__init__(f"unsupported transformer language: {language}", language=language)


# =======================
# STORAGE ERRORS
# =======================

class StorageError(StashError):
    """Backend-level failure for a single operation."""


class TransformerExistsError(StorageError):
    def __init__(self, transformer_name: str):
        super().__init__(
            f"transformer {transformer_name} already exists with different source",
            transformer_name=transformer_name,
        )


class SchemaVersionConflictError(StorageError):
    def __init__(self, title: str, version: str):
        super().__init__(
            f"schema {title}@{version} already exists with different content",
            title=title,
            version=version,
        )


class SchemaProvisioningError(StorageError):
    """A JSON Schema could not be mapped to a table definition."""


# =======================
# PAYLOAD ERRORS
# =======================

class PayloadError(StashError):
    """Malformed schema-tagged payload envelope."""
