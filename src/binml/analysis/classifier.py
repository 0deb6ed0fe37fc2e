"""Architecture-aware instruction classification.

Every (architecture, mnemonic) pair maps to exactly one Category through a flat
lookup table; anything missing from the table is Generic. Suffix handling (ARM
condition codes, x86 condition-code families, AT&T operand-size suffixes) is
applied only when the literal mnemonic is not in the table.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Iterable

from binml.errors import UnsupportedArchitecture


class Architecture(str, Enum):
    X86 = "x86"
    X86_64 = "x86_64"
    ARM32 = "arm32"
    ARM64 = "arm64"
    MIPS32 = "mips32"
    MIPS64 = "mips64"


class Category(str, Enum):
    CALL = "call"
    TRANSFER = "transfer"
    ARITHMETIC = "arithmetic"
    STACK = "stack"
    LOGIC = "logic"
    COMPARE = "compare"
    UNCONDITIONAL_JUMP = "unconditional_jump"
    CONDITIONAL_JUMP = "conditional_jump"
    LIBRARY_CALL = "library_call"
    GENERIC = "generic"


CONTROL_TRANSFER = frozenset(
    {
        Category.CALL,
        Category.LIBRARY_CALL,
        Category.UNCONDITIONAL_JUMP,
        Category.CONDITIONAL_JUMP,
    }
)

_ALIASES: dict[str, Architecture] = {
    "x86": Architecture.X86,
    "x86_32": Architecture.X86,
    "x86-32": Architecture.X86,
    "i386": Architecture.X86,
    "i686": Architecture.X86,
    "ia32": Architecture.X86,
    "x86_64": Architecture.X86_64,
    "x86-64": Architecture.X86_64,
    "amd64": Architecture.X86_64,
    "x64": Architecture.X86_64,
    "arm": Architecture.ARM32,
    "arm32": Architecture.ARM32,
    "armv7": Architecture.ARM32,
    "armel": Architecture.ARM32,
    "armhf": Architecture.ARM32,
    "thumb": Architecture.ARM32,
    "arm64": Architecture.ARM64,
    "aarch64": Architecture.ARM64,
    "armv8": Architecture.ARM64,
    "mips": Architecture.MIPS32,
    "mips32": Architecture.MIPS32,
    "mipsel": Architecture.MIPS32,
    "mipseb": Architecture.MIPS32,
    "mips64": Architecture.MIPS64,
    "mips64el": Architecture.MIPS64,
}

X86_FAMILY = (Architecture.X86, Architecture.X86_64)
MIPS_FAMILY = (Architecture.MIPS32, Architecture.MIPS64)


def resolve_architecture(tag: str | Architecture) -> Architecture:
    """Map an architecture tag (case-insensitive, many aliases) to the enum."""
    if isinstance(tag, Architecture):
        return tag
    arch = _ALIASES.get(str(tag).strip().lower())
    if arch is None:
        raise UnsupportedArchitecture(str(tag))
    return arch


# -- Tables --

_TABLE: dict[tuple[Architecture, str], Category] = {}


def _register(
    archs: Iterable[Architecture], category: Category, mnemonics: str
) -> None:
    for arch in archs:
        for mnemonic in mnemonics.split():
            _TABLE[(arch, mnemonic)] = category


_register(X86_FAMILY, Category.CALL, "call callq calll lcall")
_register(
    X86_FAMILY,
    Category.STACK,
    "push pop pushq popq pushl popl pushw popw pushf popf pushfd popfd pushfq popfq "
    "pusha popa pushad popad enter leave leaveq",
)
_register(
    X86_FAMILY,
    Category.TRANSFER,
    "mov movabs movzx movsx movsxd movzb movzw movsb movsw movsd movsq movs "
    "movaps movups movapd movupd movdqa movdqu movd movq movss movhps movlps "
    "movntdq movnti lea xchg cmpxchg cmpxchg8b cmpxchg16b bswap cbw cwde cdqe "
    "cwd cdq cqo cltq cltd cqto lods lodsb lodsw lodsd lodsq stos stosb stosw "
    "stosd stosq xlat xlatb in out",
)
_register(
    X86_FAMILY,
    Category.ARITHMETIC,
    "add sub mul imul div idiv inc dec neg adc sbb xadd addsd subsd mulsd divsd "
    "addss subss mulss divss addps subps mulps divps paddd paddq psubd psubq "
    "fadd fsub fmul fdiv sqrtsd sqrtss",
)
_register(
    X86_FAMILY,
    Category.LOGIC,
    "and or xor not shl shr sal sar rol ror rcl rcr shld shrd bt bts btr btc "
    "bsf bsr pxor pand pandn por andps andnps orps xorps andpd xorpd",
)
_register(
    X86_FAMILY,
    Category.COMPARE,
    "cmp test cmps cmpsb cmpsw cmpsd cmpsq scas scasb scasw scasd scasq "
    "ucomisd ucomiss comisd comiss pcmpeqb pcmpeqd fcom fcomp fucomi fucomip",
)
_register(X86_FAMILY, Category.UNCONDITIONAL_JUMP, "jmp jmpq ljmp")
_register(
    X86_FAMILY,
    Category.CONDITIONAL_JUMP,
    "ja jae jb jbe jc jcxz jecxz jrcxz je jg jge jl jle jna jnae jnb jnbe jnc "
    "jne jng jnge jnl jnle jno jnp jns jnz jo jp jpe jpo js jz loop loope loopz "
    "loopne loopnz",
)

_ARM32 = (Architecture.ARM32,)
_register(_ARM32, Category.CALL, "bl blx")
_register(_ARM32, Category.UNCONDITIONAL_JUMP, "b bx bxj")
_register(_ARM32, Category.CONDITIONAL_JUMP, "cbz cbnz")
_register(_ARM32, Category.STACK, "push pop vpush vpop")
_register(
    _ARM32,
    Category.TRANSFER,
    "mov movw movt ldr ldrb ldrh ldrsb ldrsh ldrd ldrex ldrexb ldrexh str strb "
    "strh strd strex strexb strexh ldm ldmia ldmib ldmda ldmdb ldmfd ldmfa "
    "ldmed ldmea stm stmia stmib stmda stmdb stmfd stmfa stmed stmea adr vmov "
    "vldr vstr vldm vstm sxtb sxth uxtb uxth",
)
_register(
    _ARM32,
    Category.ARITHMETIC,
    "add adc sub sbc rsb rsc mul mla mls umull umlal smull smlal sdiv udiv "
    "qadd qsub addw subw vadd vsub vmul vdiv vneg vsqrt",
)
_register(
    _ARM32,
    Category.LOGIC,
    "and orr eor bic mvn orn lsl lsr asr ror rrx ubfx sbfx bfi bfc clz rbit rev",
)
_register(_ARM32, Category.COMPARE, "cmp cmn tst teq vcmp vcmpe")

_ARM64 = (Architecture.ARM64,)
_register(_ARM64, Category.CALL, "bl blr blraa blrab")
_register(_ARM64, Category.UNCONDITIONAL_JUMP, "b br braa brab")
_register(_ARM64, Category.CONDITIONAL_JUMP, "cbz cbnz tbz tbnz")
_register(
    _ARM64,
    Category.TRANSFER,
    "mov movz movk movn ldr ldrb ldrh ldrsb ldrsh ldrsw ldur ldurb ldurh "
    "ldursw str strb strh stur sturb sturh ldp ldpsw stp ldnp stnp adr adrp "
    "fmov ldxr stxr ldaxr stlxr ldar stlr sxtb sxth sxtw uxtb uxth uxtw",
)
_register(
    _ARM64,
    Category.ARITHMETIC,
    "add adds sub subs mul madd msub mneg smull umull smulh umulh sdiv udiv "
    "neg negs adc adcs sbc sbcs fadd fsub fmul fdiv fneg fsqrt fmadd fmsub",
)
_register(
    _ARM64,
    Category.LOGIC,
    "and ands orr eor eon bic bics orn mvn lsl lsr asr ror ubfx sbfx ubfiz "
    "sbfiz bfi bfxil extr clz rbit rev",
)
_register(_ARM64, Category.COMPARE, "cmp cmn tst ccmp ccmn fcmp fcmpe")

_register(MIPS_FAMILY, Category.CALL, "jal jalr jalx bal bgezal bltzal jalrc")
_register(MIPS_FAMILY, Category.UNCONDITIONAL_JUMP, "j jr b jrc")
_register(
    MIPS_FAMILY,
    Category.CONDITIONAL_JUMP,
    "beq bne bgez bgtz blez bltz beqz bnez beql bnel bgezl bgtzl blezl bltzl "
    "bc1t bc1f bc1tl bc1fl",
)
_register(
    MIPS_FAMILY,
    Category.TRANSFER,
    "lw sw lb lbu lh lhu sb sh ld sd lwu lwl lwr swl swr ldl ldr sdl sdr ll sc "
    "move li lui la dla mfhi mflo mthi mtlo lwc1 swc1 ldc1 sdc1 mfc0 mtc0 mfc1 "
    "mtc1 dmfc1 dmtc1 movn movz mov",
)
_register(
    MIPS_FAMILY,
    Category.ARITHMETIC,
    "add addu addi addiu sub subu mult multu div divu mul madd maddu msub msubu "
    "dadd daddu daddi daddiu dsub dsubu dmult dmultu ddiv ddivu neg negu",
)
_register(
    MIPS_FAMILY,
    Category.LOGIC,
    "and andi or ori xor xori nor not sll srl sra sllv srlv srav dsll dsrl "
    "dsra dsll32 dsrl32 dsra32 dsllv dsrlv dsrav ext ins seb seh wsbh",
)
_register(MIPS_FAMILY, Category.COMPARE, "slt sltu slti sltiu c")

_X86_PREFIXES = frozenset({"rep", "repe", "repz", "repne", "repnz", "lock", "bnd", "notrack"})
_ARM_CONDITIONS = (
    "eq ne cs hs cc lo mi pl vs vc hi ls ge lt gt le al".split()
)
_SP_BASE = re.compile(r"(?:\[\s*sp\b|^\s*sp!?\s*,|\(\s*\$?sp\s*\))")
# Loads/stores that are stack traffic when sp is the base register.
_STACK_IF_SP = frozenset(
    "ldm ldmia ldmfd ldmdb stm stmia stmdb stmfd ldp stp lw sw ld sd".split()
)

_IMPORT_PREFIXES = ("sym.imp.", "imp.", "sym.", "reloc.", "plt.")
_IMPORT_SUFFIXES = ("@plt", "@PLT")
_TOKEN_SPLIT = re.compile(r"[\s,\[\]<>()]+")


def _x86_lookup(arch: Architecture, m: str) -> Category | None:
    if m.startswith("cmov"):
        return Category.TRANSFER
    if m.startswith("set") and len(m) > 3:
        return Category.LOGIC
    if m.startswith("jmp"):
        return Category.UNCONDITIONAL_JUMP
    if m.startswith("j"):
        return Category.CONDITIONAL_JUMP
    # AT&T operand-size suffixes (movl, addq, ...)
    if len(m) > 2 and m[-1] in "bwlq":
        return _TABLE.get((arch, m[:-1]))
    return None


def _arm32_lookup(arch: Architecture, m: str) -> Category | None:
    m = m.split(".", 1)[0]  # .w / .n / .f32 qualifiers
    category = _TABLE.get((arch, m))
    if category is not None:
        return category
    candidates: list[tuple[str, bool]] = []
    for cond in _ARM_CONDITIONS:
        if m.endswith(cond) and len(m) > len(cond):
            base = m[: -len(cond)]
            conditional = cond != "al"
            candidates.append((base, conditional))
            if base.endswith("s"):
                candidates.append((base[:-1], conditional))
    if m.endswith("s"):
        candidates.append((m[:-1], False))
        for cond in _ARM_CONDITIONS:
            if m[:-1].endswith(cond):
                candidates.append((m[: -1 - len(cond)], cond != "al"))
    for base, conditional in candidates:
        category = _TABLE.get((arch, base))
        if category is None:
            continue
        if conditional and category is Category.UNCONDITIONAL_JUMP:
            return Category.CONDITIONAL_JUMP
        return category
    return None


def _arm64_lookup(arch: Architecture, m: str) -> Category | None:
    if m.startswith("b.") or m.startswith("bc."):
        return Category.CONDITIONAL_JUMP
    return None


def _mips_lookup(arch: Architecture, m: str) -> Category | None:
    # add.s, c.eq.d, ...
    if "." in m:
        return _TABLE.get((arch, m.split(".", 1)[0]))
    return None


_FALLBACKS = {
    Architecture.X86: _x86_lookup,
    Architecture.X86_64: _x86_lookup,
    Architecture.ARM32: _arm32_lookup,
    Architecture.ARM64: _arm64_lookup,
    Architecture.MIPS32: _mips_lookup,
    Architecture.MIPS64: _mips_lookup,
}


def operand_tokens(operands: str) -> list[str]:
    return [t for t in _TOKEN_SPLIT.split(operands) if t]


def strip_symbol(token: str) -> str:
    """Reduce ``sym.imp.printf`` / ``printf@plt`` style names to ``printf``."""
    for prefix in _IMPORT_PREFIXES:
        if token.startswith(prefix):
            token = token[len(prefix):]
            break
    for suffix in _IMPORT_SUFFIXES:
        if token.endswith(suffix):
            token = token[: -len(suffix)]
    return token


def _names_import(operands: str, imports: frozenset[str] | set[str]) -> bool:
    for token in operand_tokens(operands):
        if token.startswith(("sym.imp.", "imp.")) or strip_symbol(token) in imports:
            return True
    return False


def classify(
    mnemonic: str,
    operands: str,
    architecture: Architecture | str,
    imports: frozenset[str] | set[str] | None = None,
) -> Category:
    """Classify one instruction.

    Calls become LibraryCall only when an import hint is supplied and the call
    operand names an imported symbol.
    """
    arch = resolve_architecture(architecture)
    m = mnemonic.strip().lower()

    if arch in X86_FAMILY and m in _X86_PREFIXES and operands.strip():
        inner, _, rest = operands.strip().partition(" ")
        return classify(inner, rest, arch, imports)

    category = _TABLE.get((arch, m))
    if category is None:
        category = _FALLBACKS[arch](arch, m) or Category.GENERIC

    if category is Category.TRANSFER and m in _STACK_IF_SP and _SP_BASE.search(operands):
        category = Category.STACK
    elif category is Category.CALL and imports is not None and _names_import(operands, imports):
        category = Category.LIBRARY_CALL
    return category


_CALL_HINTS: tuple[tuple[str, Architecture], ...] = (
    ("call", Architecture.X86_64),
    ("callq", Architecture.X86_64),
    ("calll", Architecture.X86),
    ("blr", Architecture.ARM64),
    ("blx", Architecture.ARM32),
    ("bl", Architecture.ARM32),
    ("jal", Architecture.MIPS32),
    ("jalr", Architecture.MIPS32),
    ("bal", Architecture.MIPS32),
)
_ARM64_ONLY = frozenset({"adrp", "ldp", "stp", "blr", "movk", "ldur", "stur"})


def detect_architecture(mnemonics: Iterable[str]) -> Architecture | None:
    """Guess the architecture family from the first recognised call mnemonic.

    ``bl`` is shared by ARM32 and ARM64; AArch64-only mnemonics anywhere in the
    stream (``adrp``, ``ldp``, ``b.<cond>``, ...) settle it as ARM64.
    """
    hints = dict(_CALL_HINTS)
    found: Architecture | None = None
    arm64_seen = False
    for m in mnemonics:
        m = m.lower()
        if m in _ARM64_ONLY or m.startswith("b."):
            arm64_seen = True
        if found is None and m in hints:
            found = hints[m]
        if found is not None and (found is not Architecture.ARM32 or arm64_seen):
            break
    if found is Architecture.ARM32 and arm64_seen:
        return Architecture.ARM64
    return found


# -- Families that cut across categories --

_SHIFTS = {
    "x86": frozenset("shl shr sal sar rol ror rcl rcr shld shrd".split()),
    "arm": ("lsl", "lsr", "asr", "ror", "rrx"),
    "mips": frozenset(
        "sll srl sra sllv srlv srav rotr rotrv dsll dsrl dsra dsll32 dsrl32 dsra32 "
        "dsllv dsrlv dsrav drotr drotr32 drotrv".split()
    ),
}
_RETURNS = {
    "x86": frozenset("ret retq retn retf retl iret iretd iretq".split()),
    "arm": frozenset("ret retaa retab eret".split()),
    "mips": frozenset("eret deret".split()),
}
_X86_FLOAT = frozenset(
    f"{op}{kind}"
    for op in (
        "add sub mul div sqrt min max mov comi ucomi cmp and andn or xor rcp "
        "rsqrt unpckl unpckh shuf round blend hadd hsub"
    ).split()
    for kind in ("ss", "sd", "ps", "pd")
)
_ARM32_FLOAT_BASES = frozenset("vldr vstr vldm vstm vpush vpop vmrs vmsr vcmp vcmpe".split())
_ARM64_FLOAT_MEMORY = frozenset("ldr str ldp stp ldur stur ldnp stnp".split())
_ARM64_FLOAT_REG = re.compile(r"^\s*[sdhq]\d+\b")
_MIPS_FLOAT_MOVES = frozenset(
    "lwc1 swc1 ldc1 sdc1 lwxc1 swxc1 ldxc1 sdxc1 mfc1 mtc1 dmfc1 dmtc1 mfhc1 mthc1 "
    "cfc1 ctc1".split()
)


def _family(arch: Architecture) -> str:
    if arch in X86_FAMILY:
        return "x86"
    if arch in MIPS_FAMILY:
        return "mips"
    return "arm"


def is_shift(mnemonic: str, architecture: Architecture | str) -> bool:
    arch = resolve_architecture(architecture)
    m = mnemonic.strip().lower()
    family = _family(arch)
    if family == "arm":
        # Condition and flag-setting suffixes (lsls, asreq, ...) keep the prefix.
        return m.startswith(_SHIFTS["arm"])
    shifts = _SHIFTS[family]
    if m in shifts:
        return True
    return family == "x86" and len(m) > 3 and m[-1] in "bwlq" and m[:-1] in shifts


def is_return(mnemonic: str, architecture: Architecture | str) -> bool:
    arch = resolve_architecture(architecture)
    return mnemonic.strip().lower() in _RETURNS[_family(arch)]


def is_float(mnemonic: str, operands: str, architecture: Architecture | str) -> bool:
    """True for floating-point arithmetic, compares and FP register transfers."""
    arch = resolve_architecture(architecture)
    m = mnemonic.strip().lower()
    if arch in X86_FAMILY:
        if m.startswith("f"):
            return True
        core = m[1:] if m.startswith("v") else m
        return core.startswith("cvt") or core in _X86_FLOAT
    if arch is Architecture.ARM32:
        return m.startswith("v") and (".f" in m or m.split(".", 1)[0] in _ARM32_FLOAT_BASES)
    if arch is Architecture.ARM64:
        if m.startswith("f") or m in ("scvtf", "ucvtf"):
            return True
        return m in _ARM64_FLOAT_MEMORY and bool(_ARM64_FLOAT_REG.match(operands))
    # MIPS: add.s, c.eq.d, cvt.s.w, ...
    if m in _MIPS_FLOAT_MOVES:
        return True
    return any(part in ("s", "d", "ps") for part in m.split(".")[1:])
