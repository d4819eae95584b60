from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

COMMANDS = "<>+-.,[]"


class ExecutionError(RuntimeError):
    """Base class for failures while running a Brainfuck program."""


class StepLimitExceeded(ExecutionError):
    """Raised when Brainfuck execution exceeds the configured step limit."""


class InputExhausted(ExecutionError):
    """Raised when ``,`` executes after every input unit has been consumed."""


@dataclass
class ExecutionState:
    step: int
    pc: int
    command: Optional[str]
    pointer: int
    tape_start: int
    tape: List[int]
    output: str
    code_length: int


def next_command(code: Sequence[str], pc: int) -> int:
    """Position of the first command at or after ``pc``; other characters are comments."""
    while pc < len(code) and code[pc] not in COMMANDS:
        pc += 1
    return pc


def render_cell(value: int) -> str:
    """Text written by ``.`` for a cell value."""
    if value > 0x10FFFF or 0xD800 <= value <= 0xDFFF:
        return f"r({value})"
    return chr(value)


@dataclass
class BrainfuckInterpreter:
    """Tape machine the basm compiler targets.

    Cells hold unsigned values up to ``cell_max``; ``+`` and ``-`` saturate
    unless ``wrap`` is set. The tape starts with ``initial_tape_length`` cells
    and grows to the right on demand. ``<`` on cell 0 stays on cell 0 unless
    ``strict_bounds`` is set, in which case it raises ``IndexError``.
    """

    initial_tape_length: int = 32
    cell_max: int = 2**32 - 1
    wrap: bool = False
    strict_bounds: bool = False

    tape: List[int] = field(init=False, repr=False)
    pointer: int = field(init=False, repr=False)
    output_buffer: List[str] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.tape = [0] * max(1, self.initial_tape_length)
        self.pointer = 0
        self.output_buffer = []

    def run(
        self,
        code: str,
        input_data: Optional[Iterable[int]] = None,
        max_steps: Optional[int] = None,
    ) -> str:
        for _ in self.step(code, input_data=input_data, max_steps=max_steps):
            pass
        return "".join(self.output_buffer)

    def step(
        self,
        code: str,
        input_data: Optional[Iterable[int]] = None,
        max_steps: Optional[int] = None,
        tape_window: int = 10,
    ) -> Iterator[ExecutionState]:
        self.reset()
        code_chars = list(code)
        input_iter = iter(list(input_data or []))
        jump_map = self._build_jump_map(code_chars)
        code_length = len(code_chars)
        pc = next_command(code_chars, 0)
        steps = 0

        while pc < code_length:
            if max_steps is not None and steps >= max_steps:
                raise StepLimitExceeded(f"Brainfuck program exceeded {max_steps} steps")

            command = code_chars[pc]
            pc = self._execute_instruction(command, pc, jump_map, input_iter)
            pc = next_command(code_chars, pc)
            steps += 1
            yield self._snapshot(pc, command, steps, code_length, tape_window)

        yield self._snapshot(pc, None, steps, code_length, tape_window)

    def _execute_instruction(
        self,
        command: str,
        pc: int,
        jump_map: Dict[int, int],
        input_iter: Iterator[int],
    ) -> int:
        new_pc = pc + 1
        if command == ">":
            self.pointer += 1
            if self.pointer >= len(self.tape):
                self.tape.append(0)
        elif command == "<":
            if self.pointer == 0:
                if self.strict_bounds:
                    raise IndexError("Pointer moved before start of tape.")
            else:
                self.pointer -= 1
        elif command == "+":
            self.tape[self.pointer] = self._adjust(self.tape[self.pointer], 1)
        elif command == "-":
            self.tape[self.pointer] = self._adjust(self.tape[self.pointer], -1)
        elif command == ".":
            self.output_buffer.append(render_cell(self.tape[self.pointer]))
        elif command == ",":
            try:
                self.tape[self.pointer] = next(input_iter)
            except StopIteration:
                raise InputExhausted("Program requested input but none is left") from None
        elif command == "[":
            if self.tape[self.pointer] == 0:
                new_pc = jump_map[pc] + 1
        elif command == "]":
            if self.tape[self.pointer] != 0:
                new_pc = jump_map[pc] + 1
        return new_pc

    def _adjust(self, value: int, delta: int) -> int:
        value += delta
        if self.wrap:
            return value % (self.cell_max + 1)
        return min(max(value, 0), self.cell_max)

    def _snapshot(
        self,
        pc: int,
        command: Optional[str],
        step: int,
        code_length: int,
        tape_window: int,
    ) -> ExecutionState:
        start = max(0, self.pointer - tape_window)
        end = min(len(self.tape), self.pointer + tape_window + 1)
        return ExecutionState(
            step=step,
            pc=pc,
            command=command,
            pointer=self.pointer,
            tape_start=start,
            tape=self.tape[start:end].copy(),
            output="".join(self.output_buffer),
            code_length=code_length,
        )

    def _build_jump_map(self, code_chars: List[str]) -> Dict[int, int]:
        jump_map: Dict[int, int] = {}
        stack: List[int] = []
        for index, char in enumerate(code_chars):
            if char == "[":
                stack.append(index)
            elif char == "]":
                if not stack:
                    raise ValueError("Unmatched ']' at position {}".format(index))
                start = stack.pop()
                jump_map[start] = index
                jump_map[index] = start
        if stack:
            raise ValueError("Unmatched '[' at position {}".format(stack.pop()))
        return jump_map


__all__ = [
    "BrainfuckInterpreter",
    "ExecutionError",
    "ExecutionState",
    "InputExhausted",
    "StepLimitExceeded",
    "next_command",
    "render_cell",
]
