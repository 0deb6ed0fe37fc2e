"""Flatten function instructions into text corpora."""

from __future__ import annotations

from enum import Enum

from binml.analysis.classifier import Architecture, Category, classify
from binml.analysis.normalisation import normalise_disasm, normalise_esil
from binml.records.model import Function, Instruction


class Representation(str, Enum):
    DISASM = "disasm"
    IR = "ir"
    ESIL = "esil"


class Granularity(str, Enum):
    INSTRUCTION = "instruction"
    FUNCTION = "function"


def _op_type(ins: Instruction, architecture: Architecture | str | None) -> str:
    if ins.op_type or architecture is None:
        return ins.op_type
    category = classify(ins.mnemonic, ins.operands, architecture)
    return "call" if category in (Category.CALL, Category.LIBRARY_CALL) else ""


def instruction_text(
    ins: Instruction,
    representation: Representation,
    normalise: bool = False,
    reg_norm: bool = False,
    architecture: Architecture | str | None = None,
) -> str:
    text = ins.representation(representation.value)
    if not text or not normalise:
        return text
    if representation is Representation.ESIL:
        return normalise_esil(text, _op_type(ins, architecture), reg_norm, architecture)
    if representation is Representation.DISASM:
        return normalise_disasm(text, reg_norm, architecture)
    return text


def assemble(
    function: Function,
    representation: Representation | str,
    granularity: Granularity | str,
    normalise: bool = False,
    reg_norm: bool = False,
    architecture: Architecture | str | None = None,
) -> str:
    """Render a function's instructions as text.

    Blocks are visited in ascending id and instructions in their recorded order;
    nothing is reordered or deduplicated. Instructions without the requested
    representation are left out. ``instruction`` granularity gives one line per
    instruction, ``function`` gives a single space-joined line in which ESIL
    commas become spaces.
    """
    representation = Representation(representation)
    granularity = Granularity(granularity)

    texts = []
    for block in function.blocks:
        for ins in block.instructions:
            text = instruction_text(ins, representation, normalise, reg_norm, architecture)
            if text:
                texts.append(text)

    if granularity is Granularity.INSTRUCTION:
        return "\n".join(texts)
    if representation is Representation.ESIL:
        texts = [t.replace(",", " ") for t in texts]
    return " ".join(texts)
