"""Cross-architecture instruction text normalisation for NLP corpora.

Disassembly and ESIL strings are rewritten so that addresses, immediates and
symbol names collapse into a small set of placeholder tokens (``IMM``,
``MEM``, ``STR``, ``FUNC``, ``DATA``). Register normalisation optionally
replaces general-purpose registers with ``reg32`` / ``reg64`` and frame
pointers with ``fp``.
"""

from __future__ import annotations

import re

from binml.analysis.classifier import Architecture, resolve_architecture

_I = re.IGNORECASE

_DISASM_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"0xffff[0-9a-f]+", _I), "IMM"),
    # immediates used as memory offsets (x86)
    (re.compile(r"0x[0-9a-f]{1,3}\]", _I), "IMM]"),
    # offsets used in MIPS
    (re.compile(r"0x[0-9a-f]{1,4}\(", _I), "IMM("),
    # anything wider than 0x + 2 digits is taken to be an address
    (re.compile(r"(?:case\.|aav\.|0x)?0x[0-9a-f]{3,}(?:\.[0-9]+)*", _I), "MEM"),
    (re.compile(r"\bstr\.\S*"), "STR"),
    (re.compile(r"\bmethod\b.*"), "FUNC"),
    (re.compile(r"\b(?:fcn|sym)\.[^\s\]]*"), "FUNC"),
    (re.compile(r"-?\[?\bobj\.\S*"), "DATA"),
    (re.compile(r"\[reloc\S*\]"), "FUNC"),
    (re.compile(r"\bloc\.[a-z]+\.[a-z_]+"), "FUNC"),
    (re.compile(r"\bnop.*"), "nop"),
)

_ESIL_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(?<![\w.])0xffff[0-9a-f]+,", _I), "IMM,"),
    (re.compile(r"(?<![\w.])0x[0-9a-f]{1,3},", _I), "IMM,"),
    (re.compile(r"(?<![\w.])0x[0-9a-f]{4,},", _I), "MEM,"),
)
_ESIL_DECIMAL_ADDR = re.compile(r"(?<![\w.])\d{4,},")


def _regs(pattern: str, start: int, stop: int) -> set[str]:
    return {pattern.format(i) for i in range(start, stop)}


_X86_32 = {"eax", "ebx", "ecx", "edx", "esi", "edi"} | _regs("r{}d", 8, 16)
_X86_64 = {"rax", "rbx", "rcx", "rdx", "rsi", "rdi"}
_X86_64_NUMBERED = _regs("r{}", 8, 16)
_ARM32 = _regs("r{}", 0, 16)
_ARM64_32 = _regs("w{}", 0, 31)
_ARM64_64 = _regs("x{}", 0, 29)
_MIPS = (
    {"at", "v0", "v1", "k0", "k1"}
    | _regs("a{}", 0, 8)
    | _regs("t{}", 0, 10)
    | _regs("s{}", 0, 8)
)

_FRAME_POINTERS = frozenset({"rbp", "ebp", "x29", "fp", "s8"})


def register_sets(
    architecture: Architecture | str | None = None,
) -> tuple[frozenset[str], frozenset[str]]:
    """Return ``(reg32, reg64)`` register name sets.

    Without an architecture the sets are the union across families, with
    ``r0``..``r15`` read as ARM 32-bit registers.
    """
    if architecture is None:
        return (
            frozenset(_X86_32 | _ARM32 | _ARM64_32 | _MIPS),
            frozenset(_X86_64 | _ARM64_64),
        )
    arch = resolve_architecture(architecture)
    if arch is Architecture.X86_64:
        return frozenset(_X86_32), frozenset(_X86_64 | _X86_64_NUMBERED)
    if arch is Architecture.X86:
        return frozenset(_X86_32), frozenset()
    if arch is Architecture.ARM32:
        return frozenset(_ARM32), frozenset()
    if arch is Architecture.ARM64:
        return frozenset(_ARM64_32), frozenset(_ARM64_64)
    return frozenset(_MIPS), frozenset()


def _norm_register_token(token: str, reg32: frozenset[str], reg64: frozenset[str]) -> str:
    if token in _FRAME_POINTERS:
        return "fp"
    if token in reg32:
        return "reg32"
    if token in reg64:
        return "reg64"
    if token.startswith("["):
        closed = token.endswith("]") and len(token) > 1
        inner = token[1:-1] if closed else token[1:]
        tail = "]" if closed else ""
        if inner in reg32:
            return f"[reg32{tail}"
        if inner in reg64:
            return f"[reg64{tail}"
        return token
    if "*" in token:
        return "*".join("reg64" if part in reg64 else part for part in token.split("*"))
    return token


def normalise_disasm(
    text: str,
    reg_norm: bool = False,
    architecture: Architecture | str | None = None,
) -> str:
    out = text.replace(",", " ").replace("  ", " ")
    for pattern, repl in _DISASM_RULES:
        out = pattern.sub(repl, out)
    if not reg_norm:
        return out
    reg32, reg64 = register_sets(architecture)
    return " ".join(
        _norm_register_token(tok, reg32, reg64) for tok in out.split(" ") if tok
    )


def normalise_esil(
    text: str,
    op_type: str = "",
    reg_norm: bool = False,
    architecture: Architecture | str | None = None,
) -> str:
    """Normalise an ESIL string.

    Decimal literals of four or more digits are addresses: ``FUNC`` when the
    instruction is a call, ``DATA`` otherwise.
    """
    out = text
    for pattern, repl in _ESIL_RULES:
        out = pattern.sub(repl, out)
    out = _ESIL_DECIMAL_ADDR.sub("FUNC," if op_type == "call" else "DATA,", out)
    if not reg_norm:
        return out
    reg32, reg64 = register_sets(architecture)
    parts = []
    for tok in out.split(","):
        if not tok:
            continue
        if tok in reg32:
            tok = "reg32"
        elif tok in reg64:
            tok = "reg64"
        parts.append(tok)
    return " ".join(parts)
