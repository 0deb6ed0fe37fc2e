"""Validate raw JSON function records into the typed record model."""

from __future__ import annotations

import json
from collections import Counter
from pathlib import Path
from typing import Any, Iterable, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from binml.errors import MalformedRecord
from binml.records.model import (
    EDGE_KIND_ALIASES,
    BasicBlock,
    Edge,
    ExtractionUnit,
    Function,
    Instruction,
)
from binml.utils.logging import get_logger

log = get_logger(__name__)


# -- Raw schemas --


class RawInstruction(BaseModel):
    offset: int = 0
    mnemonic: str = ""
    operands: str = ""
    representations: dict[str, str] = Field(default_factory=dict)
    op_type: str = ""


class RawSuccessor(BaseModel):
    target_offset: int
    kind: str


class RawBlock(BaseModel):
    offset: int
    instructions: list[RawInstruction] = Field(default_factory=list)
    successors: list[RawSuccessor] = Field(default_factory=list)


class RawCall(BaseModel):
    callee_name: str


class RawFunction(BaseModel):
    name: str
    offset: int = 0
    blocks: list[RawBlock] = Field(default_factory=list)
    calls: list[RawCall] = Field(default_factory=list)


class RawFunctionHeader(BaseModel):
    """Just enough of a record to key it; the body is validated per worker."""

    model_config = ConfigDict(extra="allow")

    name: str
    offset: int = 0


class RawUnit(BaseModel):
    architecture: str | None = None
    imports: list[str] = Field(default_factory=list)
    strings: list[int] = Field(default_factory=list)
    # Headers are checked one record at a time; see split_headers.
    functions: list[Any] = Field(default_factory=list)


def describe_errors(exc: ValidationError) -> str:
    """Summarize a ValidationError as ``"<n> error(s), first at <loc>: <msg>"``."""
    first = exc.errors()[0]
    loc = ".".join(str(part) for part in first["loc"]) or "<root>"
    return f"{exc.error_count()} error(s), first at {loc}: {first['msg']}"


# -- Record construction --


def split_opcode(text: str) -> tuple[str, str]:
    """Split ``"mov eax, 1"`` into ``("mov", "eax, 1")``."""
    parts = text.strip().split(None, 1)
    if not parts:
        return "", ""
    return parts[0].lower(), parts[1] if len(parts) > 1 else ""


def _build_instruction(raw: RawInstruction) -> Instruction:
    mnemonic, operands = raw.mnemonic.lower(), raw.operands
    disasm = raw.representations.get("disasm", "")
    if not mnemonic and disasm:
        mnemonic, operands = split_opcode(disasm)
    return Instruction(
        offset=raw.offset,
        mnemonic=mnemonic,
        operands=operands,
        disasm=disasm,
        ir=raw.representations.get("ir", ""),
        esil=raw.representations.get("esil", ""),
        op_type=raw.op_type,
    )


def _unique(names: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(names))


def build_function(
    record: Mapping[str, Any] | RawFunction,
    callers: Iterable[str] = (),
) -> Function:
    """Build a validated Function from one raw record.

    Blocks are ordered by offset and numbered ``0..n-1``. Every successor must
    resolve to a declared block, and a block may carry at most one successor of
    each kind. Anything else raises MalformedRecord.
    """
    if isinstance(record, RawFunction):
        raw = record
    else:
        try:
            raw = RawFunction.model_validate(record)
        except ValidationError as exc:
            name = record.get("name") if isinstance(record, Mapping) else None
            raise MalformedRecord(
                str(name or "<unnamed>"),
                f"invalid record ({describe_errors(exc)})",
            ) from exc

    raw_blocks = sorted(raw.blocks, key=lambda b: b.offset)
    ids: dict[int, int] = {}
    for idx, rb in enumerate(raw_blocks):
        if rb.offset in ids:
            raise MalformedRecord(raw.name, f"duplicate block offset {rb.offset:#x}")
        ids[rb.offset] = idx

    blocks = []
    for rb in raw_blocks:
        edges: dict[str, Edge] = {}
        for succ in rb.successors:
            kind = EDGE_KIND_ALIASES.get(succ.kind.lower())
            if kind is None:
                raise MalformedRecord(
                    raw.name, f"unknown successor kind {succ.kind!r} in block {rb.offset:#x}"
                )
            target = ids.get(succ.target_offset)
            if target is None:
                raise MalformedRecord(
                    raw.name,
                    f"successor {succ.target_offset:#x} of block {rb.offset:#x} "
                    "does not resolve to a block",
                )
            if kind.value in edges:
                raise MalformedRecord(
                    raw.name, f"block {rb.offset:#x} has two {kind.value} successors"
                )
            edges[kind.value] = Edge(target=target, kind=kind)

        blocks.append(
            BasicBlock(
                id=ids[rb.offset],
                offset=rb.offset,
                instructions=tuple(_build_instruction(ri) for ri in rb.instructions),
                edges=tuple(sorted(edges.values(), key=lambda e: e.weight)),
            )
        )

    return Function(
        name=raw.name,
        offset=raw.offset,
        blocks=tuple(blocks),
        callees=_unique(c.callee_name for c in raw.calls),
        callers=_unique(callers),
        entry_id=ids.get(raw.offset, 0),
    )


def build_call_index(unit: ExtractionUnit) -> dict[str, tuple[str, ...]]:
    """Map each function name to the names of functions that call it."""
    callers: dict[str, list[str]] = {}
    for record in unit.records:
        for call in _mappings(record.get("calls")):
            callee = call.get("callee_name")
            if isinstance(callee, str):
                callers.setdefault(callee, []).append(record["name"])
    return {name: _unique(names) for name, names in callers.items()}


def qualify_names(records: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Rename every member of a colliding name group to ``name@0x<offset>``.

    Records that still share a name after that (same name, same offset) get a
    ``#<n>`` suffix numbering them in input order, so every name is unique.
    """
    counts = Counter(r["name"] for r in records)
    qualified = [
        {**r, "name": f"{r['name']}@{r.get('offset', 0):#x}"} if counts[r["name"]] > 1 else r
        for r in records
    ]

    remaining = Counter(r["name"] for r in qualified)
    seen: Counter[str] = Counter()
    out = []
    for record in qualified:
        name = record["name"]
        if remaining[name] > 1:
            record = {**record, "name": f"{name}#{seen[name]}"}
            seen[name] += 1
        out.append(record)
    return out


def split_headers(
    items: list[Any],
) -> tuple[list[dict[str, Any]], list[tuple[str, str]]]:
    """Separate records with a readable header from those without one.

    Readable records are returned qualified. Each unreadable one is keyed by
    its name when that is a string no other record uses, else ``<index N>``.
    """
    valid: list[dict[str, Any]] = []
    invalid: list[tuple[int, str | None, str]] = []
    for idx, item in enumerate(items):
        try:
            header = RawFunctionHeader.model_validate(item)
        except ValidationError as exc:
            name = item.get("name") if isinstance(item, Mapping) else None
            reason = f"invalid record header ({describe_errors(exc)})"
            invalid.append((idx, name if isinstance(name, str) and name else None, reason))
            continue
        valid.append(header.model_dump())

    records = qualify_names(valid)
    taken = {r["name"] for r in records}
    rejected = []
    for idx, name, reason in invalid:
        key = name if name is not None and name not in taken else f"<index {idx}>"
        taken.add(key)
        rejected.append((key, reason))
    return records, rejected


# -- Unit loading --


def parse_unit(
    data: Any, path: Path, architecture: str | None = None
) -> ExtractionUnit:
    """Turn decoded JSON into an ExtractionUnit.

    Native documents are objects with a ``functions`` list. Lists are treated
    as radare2 ``agfj``/``agcj`` output. A record whose header is unreadable
    is kept in ``rejected`` instead of failing the unit.
    """
    if isinstance(data, list):
        from binml.records.r2_adapter import convert_r2

        try:
            data = convert_r2(data)
        except ValidationError as exc:
            raise MalformedRecord(
                str(path), f"invalid radare2 dump ({describe_errors(exc)})"
            ) from exc

    try:
        raw = RawUnit.model_validate(data)
    except ValidationError as exc:
        raise MalformedRecord(str(path), f"invalid unit ({describe_errors(exc)})") from exc

    records, rejected = split_headers(raw.functions)
    for name, reason in rejected:
        log.warning("record_rejected", path=str(path), function=name, reason=reason)
    arch = architecture or raw.architecture
    if not arch:
        from binml.analysis.classifier import detect_architecture

        detected = detect_architecture(_iter_mnemonics(records))
        arch = detected.value if detected is not None else "unknown"
        log.debug("architecture_detected", path=str(path), architecture=arch)

    return ExtractionUnit(
        path=path,
        architecture=arch,
        records=tuple(records),
        imports=frozenset(raw.imports),
        strings=frozenset(raw.strings),
        rejected=tuple(rejected),
    )


def load_unit(path: str | Path, architecture: str | None = None) -> ExtractionUnit:
    """Read one JSON extraction unit from disk.

    Undecodable bytes and invalid JSON raise MalformedRecord keyed by the path.
    """
    path = Path(path)
    try:
        text = path.read_bytes().decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise MalformedRecord(
            str(path), f"not UTF-8 text (byte {exc.start}: {exc.reason})"
        ) from exc
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedRecord(str(path), f"invalid JSON: {exc.msg}") from exc

    unit = parse_unit(data, path, architecture=architecture)
    log.info(
        "unit_loaded",
        path=str(path),
        architecture=unit.architecture,
        functions=len(unit.records),
        rejected=len(unit.rejected),
    )
    return unit


def _iter_mnemonics(records: Iterable[Mapping[str, Any]]) -> Iterable[str]:
    for record in records:
        for block in _mappings(record.get("blocks")):
            for ins in _mappings(block.get("instructions")):
                mnemonic = ins.get("mnemonic")
                if not mnemonic:
                    reps = ins.get("representations")
                    disasm = reps.get("disasm", "") if isinstance(reps, Mapping) else ""
                    mnemonic = split_opcode(str(disasm))[0]
                if isinstance(mnemonic, str) and mnemonic:
                    yield mnemonic.lower()


def _mappings(value: Any) -> Iterable[Mapping[str, Any]]:
    if isinstance(value, list):
        return [v for v in value if isinstance(v, Mapping)]
    return ()
