"""Frozen dataclasses for functions recovered by an upstream disassembler."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class EdgeKind(str, Enum):
    FALLTHROUGH = "fallthrough"
    JUMP_TAKEN = "jump-taken"

    @property
    def weight(self) -> int:
        return 1 if self is EdgeKind.FALLTHROUGH else 2


# Accepted spellings of successor kinds in raw records.
EDGE_KIND_ALIASES: dict[str, EdgeKind] = {
    "fallthrough": EdgeKind.FALLTHROUGH,
    "fail": EdgeKind.FALLTHROUGH,
    "jump-taken": EdgeKind.JUMP_TAKEN,
    "jump_taken": EdgeKind.JUMP_TAKEN,
    "jump": EdgeKind.JUMP_TAKEN,
}


@dataclass(frozen=True)
class Instruction:
    offset: int
    mnemonic: str
    operands: str = ""
    disasm: str = ""
    ir: str = ""
    esil: str = ""
    op_type: str = ""  # upstream tag, e.g. radare2 "type"

    def representation(self, name: str) -> str:
        return getattr(self, name)

    @property
    def is_invalid(self) -> bool:
        return self.op_type == "invalid"


@dataclass(frozen=True)
class Edge:
    target: int  # block id, not offset
    kind: EdgeKind

    @property
    def weight(self) -> int:
        return self.kind.weight


@dataclass(frozen=True)
class BasicBlock:
    id: int
    offset: int
    instructions: tuple[Instruction, ...] = ()
    edges: tuple[Edge, ...] = ()  # sorted by weight

    @property
    def is_terminal(self) -> bool:
        return not self.edges


@dataclass(frozen=True)
class Function:
    name: str
    offset: int
    blocks: tuple[BasicBlock, ...] = ()
    callees: tuple[str, ...] = ()
    callers: tuple[str, ...] = ()
    entry_id: int = 0

    @property
    def num_instructions(self) -> int:
        return sum(len(b.instructions) for b in self.blocks)

    @property
    def num_edges(self) -> int:
        return sum(len(b.edges) for b in self.blocks)


@dataclass(frozen=True)
class ExtractionUnit:
    """One input file: its architecture tag and raw function records.

    Records stay raw (validated dicts) until a worker builds them, so a single
    malformed function never prevents the rest of the unit from loading.
    ``rejected`` pairs the key of each record whose header could not be read
    with the reason; those become per-function failures.
    """

    path: Path
    architecture: str
    records: tuple[dict[str, Any], ...] = ()
    imports: frozenset[str] = field(default_factory=frozenset)
    strings: frozenset[int] = field(default_factory=frozenset)
    rejected: tuple[tuple[str, str], ...] = ()

    @property
    def function_names(self) -> tuple[str, ...]:
        return tuple(r["name"] for r in self.records)

    @property
    def is_empty(self) -> bool:
        return not self.records and not self.rejected

    def rejection(self, name: str) -> str | None:
        return dict(self.rejected).get(name)
