"""
Graph-oriented JSON database.

Records are vertices; relationships are labelled edges:

    SchemaFamily -HAS_VERSION-> Schema
    Payload      -CONFORMS_TO-> Schema
    Transformer  -OUTPUTS-----> SchemaFamily
    Transformer  -ACCEPTS-----> SchemaFamily
    Payload      -DERIVED_FROM {transformer}-> Payload

The graph is held in process memory.
"""

from dataclasses import dataclass, field
from typing import Any

from schemastash.core.models import JsonSchemaRecord, SchemaTaggedPayload, TransformerRecord
from schemastash.observability.logger import get_logger

from .base import JsonDatabase

logger = get_logger(__name__)

SCHEMA_FAMILY = "SchemaFamily"
SCHEMA = "Schema"
TRANSFORMER = "Transformer"
PAYLOAD = "Payload"

HAS_VERSION = "HAS_VERSION"
CONFORMS_TO = "CONFORMS_TO"
OUTPUTS = "OUTPUTS"
ACCEPTS = "ACCEPTS"
DERIVED_FROM = "DERIVED_FROM"

NodeKey = tuple[str, str]


@dataclass(frozen=True)
class Edge:
    source: NodeKey
    label: str
    target: NodeKey
    properties: tuple[tuple[str, Any], ...] = ()

    def property(self, name: str) -> Any:
        return dict(self.properties).get(name)


@dataclass
class Graph:
    """Vertices keyed by (kind, key) plus a set of labelled edges."""

    nodes: dict[NodeKey, Any] = field(default_factory=dict)
    edges: set[Edge] = field(default_factory=set)

    def add_node(self, kind: str, key: str, value: Any = None) -> bool:
        node = (kind, key)
        if node in self.nodes:
            return False
        self.nodes[node] = value
        return True

    def get_node(self, kind: str, key: str) -> Any:
        return self.nodes.get((kind, key))

    def nodes_of(self, kind: str) -> list[Any]:
        return [value for (k, _), value in self.nodes.items() if k == kind]

    def add_edge(self, source: NodeKey, label: str, target: NodeKey, **properties: Any) -> None:
        self.edges.add(Edge(source, label, target, tuple(sorted(properties.items()))))

    def outgoing(self, source: NodeKey, label: str) -> list[Edge]:
        return sorted(
            (e for e in self.edges if e.source == source and e.label == label),
            key=lambda e: e.target,
        )


def _schema_key(title: str, version: str) -> str:
    return f"{title}@{version}"


class GraphJsonDatabase(JsonDatabase):
    """JSON database over an in-memory property graph."""

    backend_name = "graph"

    def __init__(self) -> None:
        self.graph = Graph()

    async def _insert_schema_record(self, record: JsonSchemaRecord) -> bool:
        key = _schema_key(record.title, record.version)
        if not self.graph.add_node(SCHEMA, key, record):
            return False
        self.graph.add_node(SCHEMA_FAMILY, record.title, record.title)
        self.graph.add_edge((SCHEMA_FAMILY, record.title), HAS_VERSION, (SCHEMA, key))
        return True

    async def _list_schema_records(self, title: str) -> list[JsonSchemaRecord]:
        return [
            self.graph.get_node(*edge.target)
            for edge in self.graph.outgoing((SCHEMA_FAMILY, title), HAS_VERSION)
        ]

    async def _insert_transformer_record(self, record: TransformerRecord) -> bool:
        if not self.graph.add_node(TRANSFORMER, record.name, record):
            return False
        if record.output_schema is not None:
            self.graph.add_edge((TRANSFORMER, record.name), OUTPUTS, (SCHEMA_FAMILY, record.output_schema))
        for schema_name in record.supported_input_schemas:
            self.graph.add_edge((TRANSFORMER, record.name), ACCEPTS, (SCHEMA_FAMILY, schema_name))
        return True

    async def get_transformer(self, transformer_name: str) -> TransformerRecord | None:
        return self.graph.get_node(TRANSFORMER, transformer_name)

    async def _insert_payload(self, payload: SchemaTaggedPayload) -> bool:
        if not self.graph.add_node(PAYLOAD, payload.data_checksum, payload):
            return False
        schema_key = _schema_key(payload.schema_name, payload.schema_version)
        if self.graph.get_node(SCHEMA, schema_key) is not None:
            self.graph.add_edge((PAYLOAD, payload.data_checksum), CONFORMS_TO, (SCHEMA, schema_key))
        return True

    async def get_schema_tagged_payload(self, data_checksum: str) -> SchemaTaggedPayload | None:
        return self.graph.get_node(PAYLOAD, data_checksum)

    async def find_schema_tagged_payloads(
        self, schema_name: str, schema_version: str | None = None
    ) -> list[SchemaTaggedPayload]:
        matches = [
            payload for payload in self.graph.nodes_of(PAYLOAD)
            if payload.schema_name == schema_name
            and (schema_version is None or payload.schema_version == str(schema_version))
        ]
        return sorted(matches, key=lambda p: (p.created_at or 0.0, p.data_checksum))

    async def _record_derivation(
        self,
        source: SchemaTaggedPayload,
        derived: SchemaTaggedPayload,
        transformer: TransformerRecord,
    ) -> None:
        if derived.data_checksum == source.data_checksum:
            return
        self.graph.add_edge(
            (PAYLOAD, derived.data_checksum),
            DERIVED_FROM,
            (PAYLOAD, source.data_checksum),
            transformer=transformer.name,
        )
        logger.debug(
            "Recorded derivation",
            extra={"data_checksum": derived.data_checksum, "source_checksum": source.data_checksum,
                   "transformer": transformer.name},
        )

    async def get_lineage(self, data_checksum: str) -> list[dict[str, Any]]:
        """
        Walk DERIVED_FROM edges from a payload back to its origin.

        Returns:
            One entry per payload, starting with data_checksum itself; each
            names the transformer that produced it (None for the origin).
            Empty when the checksum is unknown.
        """
        lineage: list[dict[str, Any]] = []
        seen: set[str] = set()
        current = data_checksum
        while current is not None and current not in seen:
            payload = self.graph.get_node(PAYLOAD, current)
            if payload is None:
                break
            seen.add(current)
            edges = self.graph.outgoing((PAYLOAD, current), DERIVED_FROM)
            edge = edges[0] if edges else None
            lineage.append({
                "dataChecksum": current,
                "schemaName": payload.schema_name,
                "schemaVersion": payload.schema_version,
                "transformer": edge.property("transformer") if edge else None,
            })
            current = edge.target[1] if edge else None
        return lineage
