"""
Prometheus metrics collection for schemastash

This module provides metrics instrumentation for the payload store,
the transformer layer and the relational cache/import engine.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# PAYLOAD STORE METRICS
# =======================

payloads_stored_total = Counter(
    name="stash_payloads_stored_total",
    documentation="Schema-tagged payloads written to the active backend",
    labelnames=["backend"],
    registry=REGISTRY,
)

payloads_duplicate_total = Counter(
    name="stash_payloads_duplicate_total",
    documentation="Schema-tagged payload stores skipped because the checksum already existed",
    labelnames=["backend"],
    registry=REGISTRY,
)

# =======================
# TRANSFORMER METRICS
# =======================

transformations_total = Counter(
    name="stash_transformations_total",
    documentation="Transformer invocations",
    labelnames=["language", "status"],  # status: success, failed
    registry=REGISTRY,
)

transformation_duration_seconds = Histogram(
    name="stash_transformation_duration_seconds",
    documentation="Time spent inside a transformer in seconds",
    labelnames=["language"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
    registry=REGISTRY,
)

# =======================
# CACHE / IMPORT METRICS
# =======================

input_source_upserts_total = Counter(
    name="stash_input_source_upserts_total",
    documentation="Input source checks by outcome",
    labelnames=["outcome"],  # outcome: inserted, unchanged, upserted
    registry=REGISTRY,
)

import_records_written_total = Counter(
    name="stash_import_records_written_total",
    documentation="Content-addressed records newly written by the import engine",
    registry=REGISTRY,
)

import_short_circuits_total = Counter(
    name="stash_import_short_circuits_total",
    documentation="Imports skipped because the input source was unchanged",
    registry=REGISTRY,
)

cached_transformations_total = Counter(
    name="stash_cached_transformations_total",
    documentation="Cacheable transformations by result",
    labelnames=["result"],  # result: hit, computed, failed
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def get_metrics() -> str:
    """Metrics exposition as text."""
    return generate_metrics().decode("utf-8")


def get_content_type() -> str:
    """
    Get content type for Prometheus metrics

    Returns:
        Content type string
    """
    return CONTENT_TYPE_LATEST


class track_duration:
    """
    Context manager for tracking operation duration

    Usage:
        with track_duration(transformation_duration_seconds, language="jmespath"):
            # do work
            pass
    """

    def __init__(self, histogram: Histogram, **labels):
        self.histogram = histogram
        self.labels = labels
        self.timer = None

    def __enter__(self):
        self.timer = self.histogram.labels(**self.labels).time()
        self.timer.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.timer.__exit__(exc_type, exc_val, exc_tb)
        return False


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    if labels:
        counter.labels(**labels).inc(value)
    else:
        counter.inc(value)
