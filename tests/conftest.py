"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest

from binml.config.models import BinmlConfig, PipelineConfig, WalksConfig
from binml.records.model import ExtractionUnit, Function
from binml.records.parser import build_function

BASE = 0x401000

# (fallthrough target, jump-taken target) per block of the 9-block example.
WORKED_EXAMPLE_EDGES: dict[int, tuple[int | None, int | None]] = {
    0: (1, 2),
    1: (3, None),
    2: (3, None),
    3: (4, 5),
    4: (7, 8),
    5: (6, None),
    6: (None, None),
    7: (6, None),
    8: (6, None),
}

_BODY = {
    1: [("mov", "eax, 1")],
    2: [("xor", "eax, eax")],
    3: [("cmp", "eax, 0x10"), ("jne", "0x401050")],
    4: [("test", "eax, eax"), ("je", "0x401080")],
    5: [("add", "eax, 2")],
    6: [("pop", "rbp"), ("ret", "")],
    7: [("lea", "rdi, str.hello"), ("jmp", "0x401060")],
    8: [("sub", "eax, 1")],
}


def block_offset(idx: int) -> int:
    return BASE + idx * 0x10


def ins(offset: int, mnemonic: str, operands: str = "", **reps: str) -> dict[str, Any]:
    text = f"{mnemonic} {operands}".strip()
    return {
        "offset": offset,
        "mnemonic": mnemonic,
        "operands": operands,
        "representations": {"disasm": text, **reps},
    }


def worked_example_record(name: str = "worked") -> dict[str, Any]:
    blocks = []
    for idx in range(9):
        off = block_offset(idx)
        body = [("call", "sym.helper")] if idx == 0 else _BODY[idx]
        fall, jump = WORKED_EXAMPLE_EDGES[idx]
        successors = []
        if fall is not None:
            successors.append({"target_offset": block_offset(fall), "kind": "fallthrough"})
        if jump is not None:
            successors.append({"target_offset": block_offset(jump), "kind": "jump-taken"})
        blocks.append(
            {
                "offset": off,
                "instructions": [ins(off + i, m, o) for i, (m, o) in enumerate(body)],
                "successors": successors,
            }
        )
    # Declared out of order on purpose: ids must follow offsets.
    blocks.reverse()
    return {"name": name, "offset": BASE, "blocks": blocks, "calls": [{"callee_name": "helper"}]}


def unit_document() -> dict[str, Any]:
    return {
        "architecture": "x86_64",
        "imports": ["printf", "strcpy"],
        "strings": [0x500000],
        "functions": [
            worked_example_record("main"),
            {
                "name": "helper",
                "offset": 0x402000,
                "blocks": [
                    {
                        "offset": 0x402000,
                        "instructions": [
                            ins(0x402000, "push", "rbp"),
                            ins(0x402001, "lea", "rdi, [0x500000]"),
                            ins(0x402008, "mov", "esi, 0x500000"),
                            ins(0x40200d, "call", "sym.imp.printf"),
                            ins(0x402012, "ret"),
                        ],
                        "successors": [],
                    }
                ],
                "calls": [{"callee_name": "printf"}, {"callee_name": "printf"}],
            },
            {
                "name": "broken",
                "offset": 0x403000,
                "blocks": [
                    {
                        "offset": 0x403000,
                        "instructions": [ins(0x403000, "jmp", "0x409999")],
                        "successors": [{"target_offset": 0x409999, "kind": "jump-taken"}],
                    }
                ],
                "calls": [],
            },
            {"name": "thunk", "offset": 0x404000, "blocks": [], "calls": [{"callee_name": "main"}]},
        ],
    }


@pytest.fixture
def sample_config() -> BinmlConfig:
    return BinmlConfig(
        pipeline=PipelineConfig(workers=2, min_blocks=0),
        walks=WalksConfig(length=6, count=3, seed=7),
    )


@pytest.fixture
def worked_example() -> Function:
    """The 9-block function whose node 0 is a lone call with two successors."""
    return build_function(worked_example_record())


@pytest.fixture
def unit_doc() -> dict[str, Any]:
    return unit_document()


@pytest.fixture
def write_unit(tmp_path: Path) -> Callable[..., Path]:
    """Write a unit document to ``tmp_path/<name>`` and return its path."""

    def _write(doc: Any, name: str = "sample.json") -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(doc))
        return path

    return _write


@pytest.fixture
def sample_unit(write_unit) -> ExtractionUnit:
    from binml.records.parser import load_unit

    return load_unit(write_unit(unit_document()))
