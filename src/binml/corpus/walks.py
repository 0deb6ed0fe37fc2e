"""Seeded random walks over control-flow graphs."""

from __future__ import annotations

import hashlib

import numpy as np

from binml.graphs.model import Graph
from binml.records.model import Function


def walk_seed(seed: int, unit: str, function: str) -> int:
    """Derive a per-function seed that does not depend on scheduling order."""
    digest = hashlib.sha256(f"{seed}\x00{unit}\x00{function}".encode()).digest()
    return int.from_bytes(digest[:8], "little")


def walk(
    cfg: Graph,
    walk_length: int,
    walk_count: int,
    seed: int,
    start: int | None = None,
    pad: bool = False,
    pad_value: int = 0,
) -> tuple[tuple[int, ...], ...]:
    """Generate ``walk_count`` walks of at most ``walk_length`` node ids.

    Each step picks uniformly among the current node's successors in adjacency
    order (edge weights are ignored). A walk ends early on a node without
    successors; with ``pad`` it is then filled up to ``walk_length``.
    """
    if walk_length < 1:
        raise ValueError("walk_length must be >= 1")
    if walk_count < 0:
        raise ValueError("walk_count must be >= 0")
    origin = 0 if start is None else start
    if not 0 <= origin < cfg.num_nodes:
        raise ValueError(f"start node {origin} not in graph")

    rng = np.random.default_rng(seed)
    successors = [cfg.successors(i) for i in range(cfg.num_nodes)]
    walks = []
    for _ in range(walk_count):
        current = origin
        path = [current]
        while len(path) < walk_length and successors[current]:
            options = successors[current]
            current = options[int(rng.integers(len(options)))]
            path.append(current)
        walks.append(pad_walk(tuple(path), walk_length, pad_value) if pad else tuple(path))
    return tuple(walks)


def pad_walk(path: tuple[int, ...], walk_length: int, pad_value: int = 0) -> tuple[int, ...]:
    return path + (pad_value,) * (walk_length - len(path))


def render_walk(
    function: Function, path: tuple[int, ...], representation: str = "disasm"
) -> list[str]:
    """Instruction text along a walk, one entry per visited block."""
    lines = []
    for node_id in path:
        if not 0 <= node_id < len(function.blocks):
            continue
        block = function.blocks[node_id]
        text = " ".join(
            r for r in (ins.representation(representation) for ins in block.instructions) if r
        )
        lines.append(text)
    return lines
