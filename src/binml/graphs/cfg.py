"""Attributed control-flow graph construction."""

from __future__ import annotations

from binml.analysis.classifier import Architecture
from binml.analysis.features import (
    OFFSPRING_FIELD,
    SCHEME_FIELDS,
    FeatureVector,
    Scheme,
    extract,
    resolve_scheme,
)
from binml.graphs.model import Graph, GraphEdge, GraphKind, GraphNode
from binml.records.model import Function


def build_cfg(
    function: Function,
    scheme: Scheme | str,
    architecture: Architecture | str,
    imports: frozenset[str] | set[str] | None = None,
    strings: frozenset[int] | set[int] = frozenset(),
) -> Graph:
    """Build the attributed CFG of one function.

    Node ``i`` is the block with the i-th lowest offset. Edges mirror the
    validated successors (fallthrough weight 1, jump-taken weight 2). A function
    without blocks gives a single zero-vector node and no edges.
    """
    scheme = resolve_scheme(scheme)
    has_offspring = OFFSPRING_FIELD in SCHEME_FIELDS[scheme]

    if not function.blocks:
        return Graph(
            kind=GraphKind.CFG,
            name=function.name,
            nodes=(GraphNode(id=0, features=FeatureVector.zeros(scheme)),),
            adjacency=((),),
            scheme=scheme,
        )

    nodes = []
    adjacency = []
    for block in function.blocks:
        vector = extract(block, scheme, architecture, imports=imports, strings=strings)
        if has_offspring:
            vector = vector.with_value(OFFSPRING_FIELD, len(block.edges))
        nodes.append(GraphNode(id=block.id, features=vector))
        adjacency.append(tuple(GraphEdge(e.target, e.weight) for e in block.edges))

    return Graph(
        kind=GraphKind.CFG,
        name=function.name,
        nodes=tuple(nodes),
        adjacency=tuple(adjacency),
        scheme=scheme,
    )


def build_skeleton(function: Function) -> Graph:
    """The CFG's node and edge structure without feature vectors."""
    if not function.blocks:
        return Graph(kind=GraphKind.CFG, name=function.name, nodes=(GraphNode(id=0),), adjacency=((),))
    return Graph(
        kind=GraphKind.CFG,
        name=function.name,
        nodes=tuple(GraphNode(id=block.id) for block in function.blocks),
        adjacency=tuple(
            tuple(GraphEdge(e.target, e.weight) for e in block.edges) for block in function.blocks
        ),
    )
