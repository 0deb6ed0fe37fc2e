"""Tests for corpus assembly."""

import pytest

from binml.corpus.assembler import Granularity, Representation, assemble
from binml.records.parser import build_function


@pytest.fixture
def esil_function():
    return build_function(
        {
            "name": "f",
            "blocks": [
                {
                    "offset": 0x20,
                    "instructions": [
                        {
                            "offset": 0x20,
                            "mnemonic": "call",
                            "operands": "0x401000",
                            "representations": {
                                "disasm": "call sym.helper",
                                "esil": "4198400,rip,8,rsp,-=,rsp,=[8],rip,=",
                            },
                        },
                        {
                            "offset": 0x25,
                            "mnemonic": "ret",
                            "representations": {"disasm": "ret", "esil": "rsp,[8],rip,=,8,rsp,+="},
                        },
                    ],
                },
                {
                    "offset": 0x10,
                    "instructions": [
                        {
                            "offset": 0x10,
                            "mnemonic": "mov",
                            "operands": "eax, 0x30",
                            "representations": {"disasm": "mov eax, 0x30", "esil": "0x30,eax,="},
                        },
                        {
                            "offset": 0x15,
                            "mnemonic": "mov",
                            "operands": "eax, 0x30",
                            "representations": {"disasm": "mov eax, 0x30"},
                        },
                    ],
                },
            ],
        }
    )


def test_instruction_granularity_preserves_order(esil_function):
    text = assemble(esil_function, "disasm", "instruction")
    assert text.splitlines() == ["mov eax, 0x30", "mov eax, 0x30", "call sym.helper", "ret"]


def test_missing_representation_is_skipped(esil_function):
    text = assemble(esil_function, Representation.ESIL, Granularity.INSTRUCTION)
    assert text.splitlines() == [
        "0x30,eax,=",
        "4198400,rip,8,rsp,-=,rsp,=[8],rip,=",
        "rsp,[8],rip,=,8,rsp,+=",
    ]


def test_function_granularity_replaces_esil_commas(esil_function):
    text = assemble(esil_function, "esil", "function")
    assert "," not in text
    assert text.startswith("0x30 eax = 4198400 rip")


def test_function_granularity_disasm(esil_function):
    text = assemble(esil_function, "disasm", "function")
    assert text == "mov eax, 0x30 mov eax, 0x30 call sym.helper ret"


def test_normalised_disasm(esil_function):
    text = assemble(esil_function, "disasm", "instruction", normalise=True)
    assert text.splitlines()[2] == "call FUNC"


def test_normalised_esil_uses_call_classification(esil_function):
    text = assemble(esil_function, "esil", "instruction", normalise=True, architecture="x86_64")
    lines = text.splitlines()
    assert lines[0] == "IMM,eax,="
    assert lines[1].startswith("FUNC,rip")


def test_normalised_esil_without_architecture(esil_function):
    text = assemble(esil_function, "esil", "instruction", normalise=True)
    assert text.splitlines()[1].startswith("DATA,rip")


def test_ir_representation_empty(esil_function):
    assert assemble(esil_function, "ir", "instruction") == ""


def test_unknown_representation():
    with pytest.raises(ValueError):
        assemble(build_function({"name": "f"}), "pcode", "instruction")
