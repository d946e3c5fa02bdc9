"""Reference graph over parsed objects using NetworkX.

Nodes are object keys ``(kind, id)``. A reference whose target has no id is
resolved by name within its kind; a target that stays unresolved gets a
``(kind, name)`` node so the edge is kept.
"""

from typing import Iterable, Optional, Union

import networkx as nx
from loguru import logger

from calindex.core.enums import ObjectKind
from calindex.core.models import Entity, Reference
from calindex.core.symbol_database import SymbolDatabase

NodeKey = tuple[ObjectKind, Union[int, str]]


class ReferenceGraph:
    def __init__(self, database: SymbolDatabase, references: Iterable[Reference]):
        """
        Args:
            database: Symbol database used to resolve target names and label nodes
            references: Reference edges from every loaded object
        """
        self.database = database
        self.graph = nx.MultiDiGraph()
        self._unresolved = 0

        for entity in database.entities():
            self._add_node(entity.key, entity)
        for reference in references:
            self._add_edge(reference)

        logger.debug(
            f"Reference graph: {self.graph.number_of_nodes()} nodes, "
            f"{self.graph.number_of_edges()} edges ({self._unresolved} unresolved targets)"
        )

    def _add_node(self, key: NodeKey, entity: Optional[Entity] = None, name: Optional[str] = None):
        if key in self.graph:
            return
        self.graph.add_node(
            key,
            kind=key[0].value,
            name=entity.name if entity else name,
            resolved=entity is not None,
        )

    def resolve_target(self, reference: Reference) -> NodeKey:
        """Node key of the reference target."""
        kind = reference.target_kind
        if reference.target_id is not None:
            return (kind, reference.target_id)
        entity = self.database.get(kind, reference.target_name)
        if entity is not None:
            return entity.key
        return (kind, reference.target_name)

    def _add_edge(self, reference: Reference):
        source = reference.source_key
        target = self.resolve_target(reference)
        entity = self.database.get(target[0], target[1]) if isinstance(target[1], int) else None
        if entity is None:
            self._unresolved += 1
        self._add_node(source)
        self._add_node(target, entity, name=reference.target_name)
        self.graph.add_edge(source, target, reference=reference, type=reference.reference_type.value)

    # --- QUERIES ---

    def incoming(self, key: NodeKey) -> list[Reference]:
        """References pointing at ``key``."""
        if key not in self.graph:
            return []
        return [data["reference"] for _, _, data in self.graph.in_edges(key, data=True)]

    def outgoing(self, key: NodeKey) -> list[Reference]:
        """References made by ``key``."""
        if key not in self.graph:
            return []
        return [data["reference"] for _, _, data in self.graph.out_edges(key, data=True)]

    def dependents(self, key: NodeKey) -> set[NodeKey]:
        """Every node that transitively references ``key``."""
        if key not in self.graph:
            return set()
        return nx.ancestors(self.graph, key)

    def dependencies(self, key: NodeKey) -> set[NodeKey]:
        """Every node ``key`` transitively references."""
        if key not in self.graph:
            return set()
        return nx.descendants(self.graph, key)

    def most_referenced(self, n: int = 10) -> list[tuple[NodeKey, int]]:
        """Nodes ordered by in-degree, highest first."""
        ranked = sorted(self.graph.in_degree, key=lambda x: x[1], reverse=True)
        return [(node, degree) for node, degree in ranked[:n] if degree > 0]

    def metrics(self) -> dict:
        """Graph size and the most referenced objects."""
        top = []
        for node, degree in self.most_referenced(10):
            name = self.graph.nodes[node].get("name") or node[1]
            top.append(f"{node[0].value} {name} ({degree} refs)")
        return {
            "total_nodes": self.graph.number_of_nodes(),
            "total_edges": self.graph.number_of_edges(),
            "unresolved_targets": self._unresolved,
            "most_referenced": top,
        }
