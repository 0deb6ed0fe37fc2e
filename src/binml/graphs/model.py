"""Immutable directed graphs and their networkx-compatible serialization."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

import networkx as nx

from binml.analysis.features import FeatureVector, Scheme


class GraphKind(str, Enum):
    CFG = "cfg"
    LOCAL_CALLGRAPH = "local-callgraph"
    ONE_HOP_CALLGRAPH = "one-hop-callgraph"
    LOCAL_CALLGRAPH_WITH_CALLERS = "local-callgraph-with-callers"
    ONE_HOP_CALLGRAPH_WITH_CALLERS = "one-hop-callgraph-with-callers"
    GLOBAL_CALLGRAPH = "global-callgraph"


@dataclass(frozen=True)
class GraphEdge:
    target: int
    weight: int


@dataclass(frozen=True)
class GraphNode:
    id: int
    features: FeatureVector | None = None
    name: str | None = None
    metadata: tuple[tuple[str, int], ...] = ()

    def attributes(self) -> dict[str, Any]:
        attrs: dict[str, Any] = {"id": self.id}
        if self.name is not None:
            attrs["func_name"] = self.name
        if self.features is not None:
            attrs.update(self.features.as_dict())
        attrs.update(self.metadata)
        return attrs


@dataclass(frozen=True)
class Graph:
    """A directed graph whose node ids are exactly ``0..n-1``.

    ``adjacency[i]`` holds node ``i``'s outgoing edges, and every node of a CFG
    carries a FeatureVector of the same scheme.
    """

    kind: GraphKind
    name: str
    nodes: tuple[GraphNode, ...]
    adjacency: tuple[tuple[GraphEdge, ...], ...]
    scheme: Scheme | None = None

    def __post_init__(self) -> None:
        if len(self.adjacency) != len(self.nodes):
            raise ValueError("adjacency must have one entry per node")
        n = len(self.nodes)
        for idx, node in enumerate(self.nodes):
            if node.id != idx:
                raise ValueError(f"node ids must be dense and ordered, got {node.id} at {idx}")
            if self.scheme is not None and (
                node.features is None or node.features.scheme is not self.scheme
            ):
                raise ValueError(f"node {idx} does not carry a {self.scheme.value} vector")
        for edges in self.adjacency:
            for edge in edges:
                if not 0 <= edge.target < n:
                    raise ValueError(f"edge target {edge.target} out of range")

    @property
    def num_nodes(self) -> int:
        return len(self.nodes)

    @property
    def num_edges(self) -> int:
        return sum(len(edges) for edges in self.adjacency)

    def successors(self, node_id: int) -> tuple[int, ...]:
        return tuple(e.target for e in self.adjacency[node_id])

    def out_degree(self, node_id: int) -> int:
        return len(self.adjacency[node_id])

    def to_document(self) -> dict[str, Any]:
        """Serialize in networkx's adjacency-data layout."""
        return {
            "adjacency": [
                [{"id": e.target, "weight": e.weight} for e in edges]
                for edges in self.adjacency
            ],
            "directed": True,
            "graph": [],
            "multigraph": False,
            "nodes": [node.attributes() for node in self.nodes],
        }

    def to_networkx(self) -> nx.DiGraph:
        """Build a DiGraph; parallel edges keep the lower-weight one."""
        g = nx.DiGraph(name=self.name, kind=self.kind.value)
        for node in self.nodes:
            attrs = node.attributes()
            attrs.pop("id")
            g.add_node(node.id, **attrs)
        for src, edges in enumerate(self.adjacency):
            for edge in edges:
                if not g.has_edge(src, edge.target):
                    g.add_edge(src, edge.target, weight=edge.weight)
        return g
