from __future__ import annotations

import logging as lg
from typing import Iterable, List, Tuple

from .instructions import (
    CopyValue,
    Input,
    Instruction,
    Move,
    MoveValue,
    Print,
    Write,
    format_instruction,
)
from .parser import Parser

CLEAR_CELL = "[-]"
LINE_SEPARATOR = "\n"

# Offsets below are relative to the cell the pointer occupied when the
# instruction started. Every helper takes the current offset and returns the
# offset it leaves the pointer on.


def _shift(out: List[str], pointer: int, target: int) -> int:
    delta = target - pointer
    if delta > 0:
        out.append(">" * delta)
    elif delta < 0:
        out.append("<" * (-delta))
    return target


def _clear(out: List[str], pointer: int, cell: int) -> int:
    pointer = _shift(out, pointer, cell)
    out.append(CLEAR_CELL)
    return pointer


def _drain_into(out: List[str], pointer: int, source: int, *destinations: int) -> int:
    """Add ``source`` into every destination cell and leave ``source`` at zero.

    One loop iteration per unit of the source value: decrement the source,
    visit each destination and increment it, come back. Ends on ``source``.
    """
    pointer = _shift(out, pointer, source)
    out.append("[-")
    for destination in destinations:
        pointer = _shift(out, pointer, destination)
        out.append("+")
    pointer = _shift(out, pointer, source)
    out.append("]")
    return pointer


def _emit_write(out: List[str], pointer: int, instruction: Write) -> int:
    out.append(CLEAR_CELL)
    out.append("+" * instruction.value)
    return pointer


def _emit_move_value(out: List[str], pointer: int, instruction: MoveValue) -> int:
    origin = pointer
    target = origin + instruction.offset
    # The transfer loop only adds, so the destination is cleared first.
    pointer = _clear(out, pointer, target)
    pointer = _shift(out, pointer, origin)
    return _drain_into(out, pointer, origin, target)


def _emit_copy_value(out: List[str], pointer: int, instruction: CopyValue) -> int:
    origin = pointer
    to = origin + instruction.to
    tmp = origin + instruction.tmp
    pointer = _clear(out, pointer, to)
    pointer = _clear(out, pointer, tmp)
    pointer = _shift(out, pointer, origin)
    pointer = _drain_into(out, pointer, origin, to, tmp)
    pointer = _drain_into(out, pointer, tmp, origin)
    return _shift(out, pointer, origin)


def emit(instruction: Instruction, pointer: int = 0) -> Tuple[str, int]:
    """Emit the Brainfuck fragment for one instruction.

    Returns the fragment and the pointer offset it ends on, given that it
    starts on ``pointer``.
    """
    out: List[str] = []
    if isinstance(instruction, Input):
        out.append(",")
    elif isinstance(instruction, Print):
        out.append(".")
    elif isinstance(instruction, Write):
        pointer = _emit_write(out, pointer, instruction)
    elif isinstance(instruction, Move):
        pointer = _shift(out, pointer, pointer + instruction.offset)
    elif isinstance(instruction, MoveValue):
        pointer = _emit_move_value(out, pointer, instruction)
    elif isinstance(instruction, CopyValue):
        pointer = _emit_copy_value(out, pointer, instruction)
    else:
        raise TypeError(f"Unsupported instruction {instruction!r}")
    return "".join(out), pointer


def expected_displacement(instruction: Instruction) -> int:
    if isinstance(instruction, Move):
        return instruction.offset
    return 0


def _touched_offsets(instruction: Instruction) -> Tuple[int, ...]:
    if isinstance(instruction, (Move, MoveValue)):
        return (instruction.offset,)
    if isinstance(instruction, CopyValue):
        return (instruction.to, instruction.tmp)
    return ()


def _check_operands(index: int, instruction: Instruction) -> None:
    text = format_instruction(instruction)
    if isinstance(instruction, MoveValue) and instruction.offset == 0:
        lg.warning(f"Instruction {index} ({text}) moves a register onto itself; it only clears it")
    if isinstance(instruction, CopyValue):
        if 0 in (instruction.to, instruction.tmp) or instruction.to == instruction.tmp:
            lg.warning(
                f"Instruction {index} ({text}) uses overlapping registers; "
                "the copy will not preserve the current register"
            )


class CodeGenerator:
    def fragments(self, program: Iterable[Instruction]) -> List[str]:
        fragments: List[str] = []
        position = 0
        for index, instruction in enumerate(program):
            _check_operands(index, instruction)
            for offset in _touched_offsets(instruction):
                if position + offset < 0:
                    lg.warning(
                        f"Instruction {index} ({format_instruction(instruction)}) reaches "
                        f"cell {position + offset}, left of the starting cell"
                    )
            fragment, end = emit(instruction)
            expected = expected_displacement(instruction)
            assert end == expected, f"{instruction!r} left the pointer at {end}, expected {expected}"
            position += end
            lg.debug(f"Instruction {index}: {len(fragment)} primitives, pointer at {position}")
            fragments.append(fragment)
        return fragments

    def generate(self, program: Iterable[Instruction]) -> str:
        return "".join(fragment + LINE_SEPARATOR for fragment in self.fragments(program))


class BasmCompiler:
    def __init__(self) -> None:
        self.parser = Parser()
        self.generator = CodeGenerator()

    def parse(self, source: str) -> List[Instruction]:
        return self.parser.parse(source)

    def compile(self, source: str) -> str:
        program = self.parser.parse(source)
        lg.debug(f"Parsed {len(program)} instructions")
        return self.generator.generate(program)


__all__ = [
    "BasmCompiler",
    "CLEAR_CELL",
    "CodeGenerator",
    "emit",
    "expected_displacement",
]
