"""
Schema-tagged payload protocol.

Transformers never see bare data. Input is wrapped as

    {"input": <data>, **context}

and a transformer is expected to answer with

    {"output": <result>, ...}

so contextual values (createdAt, side-loaded auxiliary data, user info)
are readable without polluting the data's own schema.
"""

import time
from typing import Any, Mapping

from schemastash.core.checksum import checksum_of
from schemastash.core.models import SchemaTaggedPayload
from schemastash.observability.logger import get_logger

logger = get_logger(__name__)

CURRENT_PROTOCOL_VERSION = "2022-02-26.1"

INPUT_KEY = "input"
OUTPUT_KEY = "output"
CREATED_AT_KEY = "createdAt"


def wrap_transformation_context(data: Any, context: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """
    Place data under "input" alongside the caller's context fields.

    A context "input" key never shadows the data.
    """
    return {**(context or {}), INPUT_KEY: data}


def unwrap_transformation_context(wrapped: Mapping[str, Any] | None) -> Any:
    """
    Extract "output" from a transformer's result.

    Missing output is not fatal: a warning is logged and None returned.
    """
    if wrapped is None or not isinstance(wrapped, Mapping) or wrapped.get(OUTPUT_KEY) is None:
        logger.warning('wrapped data has no "output" field')
        return None
    return wrapped[OUTPUT_KEY]


def resolve_created_at(context: Mapping[str, Any] | None = None) -> float:
    """createdAt from context (e.g. backfills) or the current wall clock in epoch seconds."""
    if context and context.get(CREATED_AT_KEY) is not None:
        return float(context[CREATED_AT_KEY])
    return time.time()


def tag(
    schema_name: str,
    schema_version: str,
    data: Any,
    context: Mapping[str, Any] | None = None,
) -> SchemaTaggedPayload:
    """
    Wrap validated data in a SchemaTaggedPayload.

    Stamps the current protocol version, computes the data checksum over
    the canonical form and sets createdAt from context or the wall clock.
    Key order in data never affects the checksum.
    """
    return SchemaTaggedPayload(
        protocol_version=CURRENT_PROTOCOL_VERSION,
        schema_name=schema_name,
        schema_version=str(schema_version),
        data=data,
        data_checksum=checksum_of(data),
        created_at=resolve_created_at(context),
    )


def verify_payload_checksum(payload: SchemaTaggedPayload) -> bool:
    """True when the stored checksum matches the payload's data."""
    return payload.data_checksum == checksum_of(payload.data)
