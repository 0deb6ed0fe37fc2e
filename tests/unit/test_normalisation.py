"""Tests for disassembly and ESIL normalisation."""

import pytest

from binml.analysis.normalisation import normalise_disasm, normalise_esil, register_sets


@pytest.mark.parametrize(
    "text,expected",
    [
        ("add byte [rax + 0x3d], bh", "add byte [rax + IMM] bh"),
        ("je 0x11b9", "je MEM"),
        ("je 0x121b9", "je MEM"),
        ("add byte [rax + 0x4532522d], bh", "add byte [rax + MEM] bh"),
        ("lea rdi, str.This_is_a_very_silly_program_", "lea rdi STR"),
        ("str.This_is_a_very_silly_program_ something", "STR something"),
        ("sw fp 0x60(sp)", "sw fp IMM(sp)"),
        ("sw fp 0x60c(sp)", "sw fp IMM(sp)"),
        ("jal fcn.001f79f0", "jal FUNC"),
        ("jal sym.safe_zalloc", "jal FUNC"),
        ("jal method std::__cxx11::basic_STRtraits<char>", "jal FUNC"),
        ("lw reg32 -obj.__DTOR_END__(gp)", "lw reg32 DATA"),
        ("ja case.0x74543.3", "ja MEM"),
    ],
)
def test_disasm(text, expected):
    assert normalise_disasm(text) == expected


@pytest.mark.parametrize(
    "text,expected",
    [
        ("add byte [rax + 0x3d], bh", "add byte [reg64 + IMM] bh"),
        ("mov eax str.AnotherOne", "mov reg32 STR"),
        ("movzx ecx word [obj.DNS::Factory::progressiveId]", "movzx reg32 word DATA"),
        ("mov reg64 qword [reloc.stderr]", "mov reg64 qword FUNC"),
        ("cmp qword [reloc.__cxa_finalize] 0", "cmp qword FUNC 0"),
        ("addiu a2 reg32 obj.__func__.6741", "addiu reg32 reg32 DATA"),
        ("ldr x8 [r2]", "ldr reg64 [reg32]"),
        ("ldr x2 [x4]", "ldr reg64 [reg64]"),
        ("ldr x8 r2", "ldr reg64 reg32"),
        ("ldr w12 w21", "ldr reg32 reg32"),
        ("mov x0 w20", "mov reg64 reg32"),
    ],
)
def test_disasm_register_normalisation(text, expected):
    assert normalise_disasm(text, reg_norm=True) == expected


def test_disasm_frame_pointer():
    assert normalise_disasm("mov rbp, rsp", reg_norm=True) == "mov fp rsp"


def test_x86_64_numbered_registers_are_64_bit():
    assert normalise_disasm("mov r8, r9d", reg_norm=True, architecture="x86_64") == "mov reg64 reg32"
    assert normalise_disasm("mov r8, r9d", reg_norm=True) == "mov reg32 reg32"


@pytest.mark.parametrize(
    "text,expected",
    [
        ("0x30,rbp,-,[8],rax,=", "IMM,rbp,-,[8],rax,="),
        ("0x74,rcx,+,[4],rdx,=", "IMM,rcx,+,[4],rdx,="),
        ("0x70d388,rcx,8,*,+,[8],rcx,=", "MEM,rcx,8,*,+,[8],rcx,="),
        ("0x2e822a,rip,+,[8],rax,=", "MEM,rip,+,[8],rax,="),
        (
            "eax,rax,^,0xffffffff,&,rax,=,$z,zf,:=,$p,pf,:=,31,$s,sf,:=,0,cf,:=,0,of,:=",
            "eax,rax,^,IMM,&,rax,=,$z,zf,:=,$p,pf,:=,31,$s,sf,:=,0,cf,:=,0,of,:=",
        ),
        (
            "rcx,rax,-=,rcx,0x8000000000000000,-,!,63,$o,^,of,:=",
            "rcx,rax,-=,rcx,MEM,-,!,63,$o,^,of,:=",
        ),
    ],
)
def test_esil(text, expected):
    assert normalise_esil(text) == expected


def test_esil_decimal_address_depends_on_call():
    text = "4269168,rip,8,rsp,-=,rsp,=[8],rip,="
    assert normalise_esil(text, op_type="call") == "FUNC,rip,8,rsp,-=,rsp,=[8],rip,="
    assert normalise_esil(text) == "DATA,rip,8,rsp,-=,rsp,=[8],rip,="


def test_esil_register_normalisation():
    assert (
        normalise_esil("r4,r5,=,DATA,pc,:=,IMM,fp,-,IMM,&,[4],IMM,&,r0,=,r0,sb,|", reg_norm=True)
        == "reg32 reg32 = DATA pc := IMM fp - IMM & [4] IMM & reg32 = reg32 sb |"
    )
    assert (
        normalise_esil("924,r4,+,IMM,&,[4],IMM,&,r8,=,0,r4,+,IMM,&,[4],IMM,&", reg_norm=True)
        == "924 reg32 + IMM & [4] IMM & reg32 = 0 reg32 + IMM & [4] IMM &"
    )
    assert (
        normalise_esil("0,MEM,w8,&,==,31,$s,nf,:=,xzr,16,sp,+,DUP,tmp,=,=[8],DATA", reg_norm=True)
        == "0 MEM reg32 & == 31 $s nf := xzr 16 sp + DUP tmp = =[8] DATA"
    )
    assert (
        normalise_esil("a0,4,+,[4],a3,=,0,a4,=,a0,a5,=,0,ra,==,$z,,!,?{,MEM,pc,:=,}", reg_norm=True)
        == "reg32 4 + [4] reg32 = 0 reg32 = reg32 reg32 = 0 ra == $z ! ?{ MEM pc := }"
    )


def test_register_sets():
    reg32, reg64 = register_sets("arm64")
    assert "w0" in reg32 and "x0" in reg64
    assert "x29" not in reg64
    reg32, reg64 = register_sets("mips32")
    assert reg64 == frozenset()
    assert {"a0", "t9", "s7", "v0"} <= reg32
