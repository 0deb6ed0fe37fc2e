"""Local, one-hop and whole-unit call graphs."""

from __future__ import annotations

from typing import Callable, Iterable, Mapping

from binml.graphs.model import Graph, GraphEdge, GraphKind, GraphNode
from binml.records.model import Function
from binml.utils.logging import get_logger

log = get_logger(__name__)

UNKNOWN_PREFIX = "unk."

METADATA_FIELDS = ("num_blocks", "num_instructions", "num_edges", "num_callees", "num_callers")

_KINDS = {
    (0, False): GraphKind.LOCAL_CALLGRAPH,
    (1, False): GraphKind.ONE_HOP_CALLGRAPH,
    (0, True): GraphKind.LOCAL_CALLGRAPH_WITH_CALLERS,
    (1, True): GraphKind.ONE_HOP_CALLGRAPH_WITH_CALLERS,
}


class _Builder:
    """Insertion-ordered node table with deduplicated edges."""

    def __init__(self, include_unknown: bool) -> None:
        self.include_unknown = include_unknown
        self.ids: dict[str, int] = {}
        self.edges: dict[int, dict[int, None]] = {}

    def node(self, name: str) -> int:
        if name not in self.ids:
            self.ids[name] = len(self.ids)
            self.edges[self.ids[name]] = {}
        return self.ids[name]

    def keep(self, name: str) -> bool:
        return self.include_unknown or not name.startswith(UNKNOWN_PREFIX)

    def edge(self, src: str, dst: str) -> None:
        if not (self.keep(src) and self.keep(dst)):
            return
        s, d = self.node(src), self.node(dst)
        self.edges[s][d] = None


def _metadata(func: Function | None) -> tuple[tuple[str, int], ...]:
    if func is None:
        values = (0, 0, 0, 0, 0)
    else:
        values = (
            len(func.blocks),
            func.num_instructions,
            func.num_edges,
            len(func.callees),
            len(func.callers),
        )
    return tuple(zip(METADATA_FIELDS, values))


def _to_graph(
    builder: _Builder,
    kind: GraphKind,
    name: str,
    functions: Mapping[str, Function],
    with_metadata: bool,
    order: Iterable[str] | None = None,
) -> Graph:
    names = list(order) if order is not None else list(builder.ids)
    remap = {builder.ids[n]: new for new, n in enumerate(names)}
    nodes = tuple(
        GraphNode(
            id=idx,
            name=n,
            metadata=_metadata(functions.get(n)) if with_metadata else (),
        )
        for idx, n in enumerate(names)
    )
    adjacency = tuple(
        tuple(
            GraphEdge(remap[d], 1)
            for d in builder.edges[builder.ids[n]]
            if d in remap
        )
        for n in names
    )
    return Graph(kind=kind, name=name, nodes=nodes, adjacency=adjacency)


def callee_aliases(names: Iterable[str]) -> dict[str, str]:
    """Map a bare name to its qualified ``name@0x<offset>`` form.

    Only names with exactly one qualified variant, and no record of their own,
    get an entry.
    """
    known = set(names)
    variants: dict[str, list[str]] = {}
    for name in known:
        bare, sep, _ = name.rpartition("@0x")
        if sep and bare:
            variants.setdefault(bare, []).append(name)
    return {
        bare: found[0]
        for bare, found in variants.items()
        if len(found) == 1 and bare not in known
    }


def _resolver(
    functions: Mapping[str, Function], aliases: Mapping[str, str] | None
) -> Callable[[str], str]:
    if aliases is None:
        aliases = callee_aliases(functions)

    def resolve(name: str) -> str:
        return name if name in functions else aliases.get(name, name)

    return resolve


def build_callgraph(
    function: Function,
    functions: Mapping[str, Function],
    hop: int = 0,
    include_callers: bool = False,
    with_metadata: bool = False,
    include_unknown: bool = False,
    aliases: Mapping[str, str] | None = None,
) -> Graph:
    """Build the call graph rooted at ``function``.

    ``hop=0`` holds the root and its direct callees; ``hop=1`` also expands each
    callee that has a record in ``functions``. Callees without a record (imports)
    stay leaves. Node 0 is always the root.

    A bare callee name whose record was renamed to ``name@0x<offset>`` resolves
    to that record when the match is unique; pass ``aliases`` from
    callee_aliases to avoid recomputing it per function.
    """
    if hop not in (0, 1):
        raise ValueError(f"hop must be 0 or 1, got {hop}")

    resolve = _resolver(functions, aliases)
    callees = list(dict.fromkeys(resolve(c) for c in function.callees))

    b = _Builder(include_unknown)
    b.node(function.name)
    for callee in callees:
        b.edge(function.name, callee)

    if hop == 1:
        for callee in callees:
            target = functions.get(callee)
            if target is None or not b.keep(callee):
                continue
            for nested in target.callees:
                b.edge(callee, resolve(nested))

    if include_callers:
        for caller in function.callers:
            b.edge(caller, function.name)

    return _to_graph(
        b, _KINDS[(hop, include_callers)], function.name, functions, with_metadata
    )


def build_global_callgraph(
    functions: Iterable[Function],
    name: str = "global",
    include_unknown: bool = False,
    with_metadata: bool = False,
    aliases: Mapping[str, str] | None = None,
) -> Graph:
    """Whole-unit call graph in first-seen order, with orphan nodes removed."""
    funcs = list(functions)
    by_name = {f.name: f for f in funcs}
    resolve = _resolver(by_name, aliases)
    b = _Builder(include_unknown)
    for func in funcs:
        if b.keep(func.name):
            b.node(func.name)
        for callee in func.callees:
            b.edge(func.name, resolve(callee))

    has_in = {d for targets in b.edges.values() for d in targets}
    connected = [n for n, i in b.ids.items() if b.edges[i] or i in has_in]
    pruned = len(b.ids) - len(connected)
    if pruned:
        log.debug("orphans_removed", graph=name, count=pruned)

    return _to_graph(
        b, GraphKind.GLOBAL_CALLGRAPH, name, by_name, with_metadata, order=connected
    )
