from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

U32_MAX = 2**32 - 1
I32_MIN = -(2**31)
I32_MAX = 2**31 - 1


class Instruction:
    pass


@dataclass(frozen=True)
class Input(Instruction):
    pass


@dataclass(frozen=True)
class Print(Instruction):
    pass


@dataclass(frozen=True)
class Write(Instruction):
    value: int


@dataclass(frozen=True)
class Move(Instruction):
    offset: int


@dataclass(frozen=True)
class MoveValue(Instruction):
    offset: int


@dataclass(frozen=True)
class CopyValue(Instruction):
    to: int
    tmp: int


Program = List[Instruction]


def format_instruction(instruction: Instruction) -> str:
    """Render an instruction in the form the parser reads back unchanged."""
    if isinstance(instruction, Input):
        return "INPUT"
    if isinstance(instruction, Print):
        return "PRINT"
    if isinstance(instruction, Write):
        return f"WRITE {instruction.value}"
    if isinstance(instruction, Move):
        return f"MOVE {instruction.offset}"
    if isinstance(instruction, MoveValue):
        return f"MOVEVAL {instruction.offset}"
    if isinstance(instruction, CopyValue):
        return f"COPY {instruction.to}, {instruction.tmp}"
    raise TypeError(f"Unsupported instruction {instruction!r}")


def format_program(program: Iterable[Instruction]) -> str:
    return "".join(format_instruction(instruction) + "\n" for instruction in program)


__all__ = [
    "CopyValue",
    "Input",
    "Instruction",
    "Move",
    "MoveValue",
    "Print",
    "Program",
    "Write",
    "format_instruction",
    "format_program",
]
