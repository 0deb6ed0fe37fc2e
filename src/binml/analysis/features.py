"""Per-block feature vectors for the gemini, discovre, dgis and tiknib schemes."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from binml.analysis.classifier import (
    CONTROL_TRANSFER,
    Architecture,
    Category,
    classify,
    is_float,
    is_return,
    is_shift,
    resolve_architecture,
)
from binml.records.model import BasicBlock, Instruction


class Scheme(str, Enum):
    GEMINI = "gemini"
    DISCOVRE = "discovre"
    DGIS = "dgis"
    TIKNIB = "tiknib"


SCHEME_FIELDS: dict[Scheme, tuple[str, ...]] = {
    Scheme.GEMINI: (
        "num_calls",
        "num_transfer",
        "num_arith",
        "num_ins",
        "numeric_consts",
        "string_consts",
        "num_offspring",
    ),
    Scheme.DISCOVRE: (
        "num_calls",
        "num_transfer",
        "num_arith",
        "num_ins",
        "numeric_consts",
        "string_consts",
    ),
    Scheme.DGIS: (
        "num_stack_ops",
        "num_arith_ops",
        "num_logic_ops",
        "num_cmp_ops",
        "num_lib_calls",
        "num_uncon_jumps",
        "num_con_jumps",
        "num_generic_ins",
    ),
    Scheme.TIKNIB: (
        "arithshift",
        "compare",
        "ctransfer",
        "ctransfercond",
        "dtransfer",
        "float",
        "total",
    ),
}

_GEMINI_CATEGORIES = {
    Category.CALL: "num_calls",
    Category.LIBRARY_CALL: "num_calls",
    Category.TRANSFER: "num_transfer",
    Category.STACK: "num_transfer",
    Category.ARITHMETIC: "num_arith",
    Category.LOGIC: "num_arith",
}

# Each category feeds at most one field, so no instruction is counted twice.
# tiknib groups overlap, so _tiknib_fields counts those instead.
CATEGORY_FIELDS: dict[Scheme, dict[Category, str]] = {
    Scheme.GEMINI: _GEMINI_CATEGORIES,
    Scheme.DISCOVRE: _GEMINI_CATEGORIES,
    Scheme.DGIS: {
        Category.STACK: "num_stack_ops",
        Category.ARITHMETIC: "num_arith_ops",
        Category.LOGIC: "num_logic_ops",
        Category.COMPARE: "num_cmp_ops",
        Category.LIBRARY_CALL: "num_lib_calls",
        Category.UNCONDITIONAL_JUMP: "num_uncon_jumps",
        Category.CONDITIONAL_JUMP: "num_con_jumps",
        Category.GENERIC: "num_generic_ins",
        Category.TRANSFER: "num_generic_ins",
        Category.CALL: "num_generic_ins",
    },
}

OFFSPRING_FIELD = "num_offspring"

_NUMERIC_OPERAND = re.compile(r"^[#$]?-?(?:0x[0-9a-f]+|\d+)$", re.IGNORECASE)
_STRING_FLAG = re.compile(r"(?:^|[^\w.])str\.")


def resolve_scheme(name: str | Scheme) -> Scheme:
    if isinstance(name, Scheme):
        return name
    try:
        return Scheme(str(name).lower())
    except ValueError:
        known = ", ".join(s.value for s in Scheme)
        raise ValueError(f"unknown feature scheme {name!r} (expected one of: {known})") from None


@dataclass(frozen=True)
class FeatureVector:
    scheme: Scheme
    values: tuple[float, ...]

    @property
    def fields(self) -> tuple[str, ...]:
        return SCHEME_FIELDS[self.scheme]

    def __len__(self) -> int:
        return len(self.values)

    def __getitem__(self, field: str) -> float:
        return self.values[self.fields.index(field)]

    def as_dict(self) -> dict[str, float]:
        return dict(zip(self.fields, self.values))

    def with_value(self, field: str, value: float) -> FeatureVector:
        idx = self.fields.index(field)
        values = list(self.values)
        values[idx] = float(value)
        return FeatureVector(self.scheme, tuple(values))

    @classmethod
    def zeros(cls, scheme: Scheme) -> FeatureVector:
        return cls(scheme, (0.0,) * len(SCHEME_FIELDS[scheme]))


def _operand_pieces(operands: str) -> list[str]:
    return [p.strip() for p in operands.split(",") if p.strip()]


def _literal(piece: str) -> int | None:
    if not _NUMERIC_OPERAND.match(piece):
        return None
    text = piece.lstrip("#$").lower()
    sign = -1 if text.startswith("-") else 1
    text = text.lstrip("-")
    if text.startswith("0x"):
        return sign * int(text, 16)
    return sign * int(text, 10)


def constant_kinds(
    ins: Instruction,
    category: Category,
    strings: frozenset[int] | set[int] = frozenset(),
) -> tuple[bool, bool]:
    """Return ``(has_numeric, has_string)`` for one instruction's operands.

    A literal whose value is a known string address, or a radare2 ``str.``
    flag, is a string reference. Any other whole-operand literal is a numeric
    constant, except on control transfers where it is a branch target.
    """
    has_numeric = has_string = False
    if _STRING_FLAG.search(ins.operands):
        has_string = True
    for piece in _operand_pieces(ins.operands):
        value = _literal(piece)
        if value is None:
            continue
        if value in strings:
            has_string = True
        elif category not in CONTROL_TRANSFER:
            has_numeric = True
    return has_numeric, has_string


def extract(
    block: BasicBlock,
    scheme: Scheme | str,
    architecture: Architecture | str,
    imports: frozenset[str] | set[str] | None = None,
    strings: frozenset[int] | set[int] = frozenset(),
) -> FeatureVector:
    """Compute the scheme's vector from block content.

    ``num_offspring`` needs the edge structure and stays 0 here; the CFG
    builder fills it in with the node's out-degree.
    """
    scheme = resolve_scheme(scheme)
    arch = resolve_architecture(architecture)
    fields = SCHEME_FIELDS[scheme]
    by_category = CATEGORY_FIELDS.get(scheme, {})
    tiknib = scheme is Scheme.TIKNIB
    counts = dict.fromkeys(fields, 0.0)
    wants_consts = "numeric_consts" in counts

    for ins in block.instructions:
        if ins.is_invalid:
            continue
        category = classify(ins.mnemonic, ins.operands, arch, imports)
        if tiknib:
            for name in _tiknib_fields(ins, category, arch):
                counts[name] += 1
            continue
        field = by_category.get(category)
        if field is not None:
            counts[field] += 1
        if "num_ins" in counts:
            counts["num_ins"] += 1
        if wants_consts:
            numeric, string = constant_kinds(ins, category, strings)
            counts["numeric_consts"] += numeric
            counts["string_consts"] += string

    return FeatureVector(scheme, tuple(counts[f] for f in fields))


_CTRANSFER = frozenset({Category.CALL, Category.LIBRARY_CALL, Category.UNCONDITIONAL_JUMP})
_DTRANSFER = frozenset({Category.TRANSFER, Category.STACK})


def _tiknib_fields(ins: Instruction, category: Category, arch: Architecture) -> list[str]:
    """The tiknib groups one instruction counts towards; groups overlap."""
    fields = ["total"]
    if category is Category.ARITHMETIC or is_shift(ins.mnemonic, arch):
        fields.append("arithshift")
    if category is Category.COMPARE:
        fields.append("compare")
    ctransfer = category in _CTRANSFER or is_return(ins.mnemonic, arch)
    if ctransfer:
        fields.append("ctransfer")
    if ctransfer or category is Category.CONDITIONAL_JUMP:
        fields.append("ctransfercond")
    if category in _DTRANSFER:
        fields.append("dtransfer")
    if is_float(ins.mnemonic, ins.operands, arch):
        fields.append("float")
    return fields
