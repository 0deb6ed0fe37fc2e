"""Convert radare2 ``agfj`` / ``agcj`` JSON dumps into native unit documents.

``agfj`` output is a list of single-element lists, one per function::

    [[{"name": "main", "offset": 4198400, "blocks": [
        {"offset": 4198400, "jump": 4198432, "fail": 4198410,
         "ops": [{"offset": 4198400, "disasm": "...", "opcode": "...",
                  "esil": "...", "type": "call"}]}]}]]

``agcj`` output is a flat list of ``{"name", "size", "imports"}`` where
``imports`` lists every callee, not only imported symbols.

Both shapes are validated up front; a dump that does not match raises
pydantic's ValidationError, which the unit loader reports against the file.
"""

from __future__ import annotations

import re
from typing import Any, Iterable

from pydantic import BaseModel, Field, TypeAdapter

from binml.utils.logging import get_logger

log = get_logger(__name__)

_CALL_TYPES = frozenset({"call", "ucall", "rcall", "icall", "ircall"})
_IMPORT_TOKEN = re.compile(r"\b(?:sym\.imp\.|imp\.)([\w.@$]+)")


class R2Op(BaseModel):
    offset: int = 0
    disasm: str | None = None
    opcode: str | None = None
    esil: str | None = None
    type: str | None = None


class R2Block(BaseModel):
    # A block without an offset survives conversion and fails per function.
    offset: int | None = None
    jump: int = -1
    fail: int = -1
    ops: list[R2Op] = Field(default_factory=list)


class R2Function(BaseModel):
    name: str
    offset: int = 0
    blocks: list[R2Block] = Field(default_factory=list)


class R2CallEntry(BaseModel):
    name: str
    offset: int = 0
    imports: list[str] | None = None


_AGFJ = TypeAdapter(list[list[R2Function]])
_AGCJ = TypeAdapter(list[R2CallEntry])


def convert_r2(data: list[Any]) -> dict[str, Any]:
    """Dispatch on the shape of a radare2 dump."""
    if data and all(isinstance(item, list) for item in data):
        return convert_agfj(data)
    return convert_agcj(data)


def convert_agfj(data: list[Any]) -> dict[str, Any]:
    functions = []
    imports: set[str] = set()
    for entry in _AGFJ.validate_python(data):
        if not entry:
            continue
        record = _convert_function(entry[0])
        for block in record["blocks"]:
            for ins in block["instructions"]:
                imports.update(_IMPORT_TOKEN.findall(ins["representations"].get("disasm", "")))
        functions.append(record)

    log.debug("agfj_converted", functions=len(functions), imports=len(imports))
    return {"imports": sorted(imports), "functions": functions}


def convert_agcj(data: list[Any]) -> dict[str, Any]:
    functions = []
    imports: set[str] = set()
    for item in _AGCJ.validate_python(data):
        callees = item.imports or []
        for callee in callees:
            imports.update(_IMPORT_TOKEN.findall(callee))
        functions.append(
            {
                "name": item.name,
                "offset": item.offset,
                "calls": [{"callee_name": c} for c in callees],
            }
        )
    return {"imports": sorted(imports), "functions": functions}


def _convert_function(func: R2Function) -> dict[str, Any]:
    known = {b.offset for b in func.blocks if b.offset is not None}

    blocks = []
    callees: list[str] = []
    for rb in func.blocks:
        instructions = []
        for op in rb.ops:
            ins = _convert_op(op)
            instructions.append(ins)
            if op.type in _CALL_TYPES:
                target = _call_target(ins["operands"])
                if target:
                    callees.append(target)

        # Jumps out of the function (tail calls) and switch cases are dropped.
        successors = []
        if rb.fail in known:
            successors.append({"target_offset": rb.fail, "kind": "fallthrough"})
        if rb.jump in known:
            successors.append({"target_offset": rb.jump, "kind": "jump-taken"})

        blocks.append({"offset": rb.offset, "instructions": instructions, "successors": successors})

    return {
        "name": func.name,
        "offset": func.offset,
        "blocks": blocks,
        "calls": [{"callee_name": c} for c in dict.fromkeys(callees)],
    }


def _convert_op(op: R2Op) -> dict[str, Any]:
    disasm = op.disasm or ""
    opcode = op.opcode or disasm
    parts = opcode.split(None, 1)
    mnemonic = parts[0].lower() if parts else ""
    # The symbolic disasm carries flag names (sym.imp.*, str.*) the raw opcode lacks.
    dparts = disasm.split(None, 1)
    operands = dparts[1] if len(dparts) > 1 else (parts[1] if len(parts) > 1 else "")

    representations = {"disasm": disasm}
    if op.esil:
        representations["esil"] = op.esil
    return {
        "offset": op.offset,
        "mnemonic": mnemonic,
        "operands": operands,
        "representations": representations,
        "op_type": op.type or "",
    }


def _call_target(operands: str) -> str | None:
    tokens = _tokens(operands)
    for token in tokens:
        if token.startswith(("sym.", "fcn.", "imp.", "method.", "loc.", "unk.")):
            return token
    return None


def _tokens(text: str) -> Iterable[str]:
    return [t for t in re.split(r"[\s,\[\]]+", text) if t]
