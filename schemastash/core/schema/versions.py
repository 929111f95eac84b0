"""
Schema version resolution.

"Latest" is the lexically greatest version string, so "10" sorts before
"9". This ordering is kept deliberately until a product decision on
semantic versions is made; callers that care should pass an explicit version.
"""

from typing import Iterable, TypeVar

from schemastash.observability.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def latest_version(versions: Iterable[str]) -> str | None:
    """Lexically greatest version, or None for an empty family."""
    versions = [str(v) for v in versions]
    if not versions:
        return None
    return max(versions)


def select_version(records: Iterable[T], version: str | None, key=lambda r: r["version"]) -> T | None:
    """
    Pick a record from a schema family.

    Args:
        records: All records sharing a title
        version: Exact version, or None for the latest
        key: Extracts the version string from a record
    """
    records = list(records)
    if not records:
        return None
    if version is not None:
        for record in records:
            if str(key(record)) == str(version):
                return record
        return None

    chosen = max(records, key=lambda r: str(key(r)))
    if len(records) > 1:
        logger.debug(
            "Resolved latest schema version lexically",
            extra={"version": str(key(chosen)), "candidates": sorted(str(key(r)) for r in records)},
        )
    return chosen
