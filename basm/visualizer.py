from __future__ import annotations

import argparse
import bisect
import shlex
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from .bf_interpreter import BrainfuckInterpreter, ExecutionError, ExecutionState, next_command
from .cli import configure_logging
from .compiler import BasmCompiler
from .instructions import Instruction, format_instruction
from .parser import ParseError


def _to_input_bytes(data: str) -> List[int]:
    return [ord(ch) for ch in data]


def fragment_starts(code: str) -> List[int]:
    """Offset of every line of ``code``; line ``i`` holds instruction ``i``'s fragment."""
    starts = [0]
    for index, ch in enumerate(code):
        if ch == "\n" and index + 1 < len(code):
            starts.append(index + 1)
    return starts


@dataclass
class VisualizerSession:
    code: str
    input_template: List[int]
    tape_window: int = 10
    max_steps: Optional[int] = None
    history_limit: int = 200
    source: Optional[str] = None
    instructions: Optional[List[Instruction]] = None
    source_lines: Optional[List[int]] = None

    @classmethod
    def from_source(cls, source: str, input_template: List[int], **options) -> "VisualizerSession":
        """Compile basm ``source`` and open a session on the result.

        Raises ``ParseError`` when the source does not compile.
        """
        compiler = BasmCompiler()
        program = compiler.parse(source)
        code = compiler.generator.generate(program)
        return cls(
            code,
            input_template=input_template,
            source=source,
            instructions=program,
            source_lines=list(compiler.parser.instruction_lines),
            **options,
        )

    def __post_init__(self) -> None:
        self.breakpoints: set[int] = set()
        self.history: List[ExecutionState] = []
        self.hit_breakpoint: Optional[int] = None
        self._starts = fragment_starts(self.code)
        self._init_interpreter()

    def _init_interpreter(self) -> None:
        self.interpreter = BrainfuckInterpreter()
        self.step_iter = self.interpreter.step(
            self.code,
            input_data=list(self.input_template),
            max_steps=self.max_steps,
            tape_window=self.tape_window,
        )
        self.finished = False
        self._record_state(self._initial_state())

    def restart(self) -> None:
        self.history.clear()
        self.hit_breakpoint = None
        self._init_interpreter()

    def _initial_state(self) -> ExecutionState:
        pointer = self.interpreter.pointer
        end = min(len(self.interpreter.tape), pointer + self.tape_window + 1)
        return ExecutionState(
            step=0,
            pc=next_command(self.code, 0),
            command=None,
            pointer=pointer,
            tape_start=0,
            tape=self.interpreter.tape[:end].copy(),
            output="",
            code_length=len(self.code),
        )

    def _record_state(self, state: ExecutionState) -> None:
        self.history.append(state)
        if len(self.history) > self.history_limit:
            self.history.pop(0)
        self.last_state = state

    def step_forward(self, count: int = 1) -> Sequence[ExecutionState]:
        states: List[ExecutionState] = []
        if count <= 0:
            return states
        self.hit_breakpoint = None
        for _ in range(count):
            if self.finished:
                break
            try:
                state = next(self.step_iter)
            except StopIteration:
                self.finished = True
                break
            except ExecutionError:
                self.finished = True
                raise
            self._record_state(state)
            states.append(state)
            if state.command is None:
                self.finished = True
                break
            if state.pc in self.breakpoints:
                self.hit_breakpoint = state.pc
                break
        return states

    def run_until_break(self, limit: Optional[int] = None) -> Sequence[ExecutionState]:
        states: List[ExecutionState] = []
        while limit is None or len(states) < limit:
            step_states = self.step_forward(1)
            if not step_states:
                break
            states.extend(step_states)
            if self.hit_breakpoint is not None:
                break
        return states

    def current_state(self) -> ExecutionState:
        return self.last_state

    def is_finished(self) -> bool:
        return self.finished

    # --- Instruction mapping ---

    def instruction_count(self) -> int:
        return self.code.count("\n")

    def instruction_at(self, pc: int) -> Optional[int]:
        """Index of the instruction whose fragment holds ``pc``."""
        if pc >= len(self.code) or not self.instruction_count():
            return None
        return bisect.bisect_right(self._starts, pc) - 1

    def instruction_pc(self, index: int) -> int:
        """First command executed for instruction ``index``."""
        if not 0 <= index < len(self._starts):
            raise IndexError(f"No instruction {index}")
        return next_command(self.code, self._starts[index])

    def describe_instruction(self, pc: int) -> Optional[str]:
        index = self.instruction_at(pc)
        if index is None:
            return None
        if self.instructions is None or index >= len(self.instructions):
            return f"#{index}"
        text = f"#{index} {format_instruction(self.instructions[index])}"
        if self.source_lines is not None:
            text += f" (line {self.source_lines[index]})"
        return text

    # --- Breakpoints ---

    def add_breakpoint(self, pc: int) -> None:
        self.breakpoints.add(pc)

    def add_instruction_breakpoint(self, index: int) -> int:
        pc = self.instruction_pc(index)
        self.add_breakpoint(pc)
        return pc

    def remove_breakpoint(self, pc: int) -> bool:
        if pc in self.breakpoints:
            self.breakpoints.remove(pc)
            return True
        return False

    def clear_breakpoints(self) -> None:
        self.breakpoints.clear()

    def list_breakpoints(self) -> List[int]:
        return sorted(self.breakpoints)


def format_state(state: ExecutionState, code: str, instruction: Optional[str] = None) -> str:
    lines: List[str] = []
    cmd_display = state.command if state.command is not None else "(init)"
    lines.append(
        f"step={state.step} pc={state.pc}/{state.code_length} command={cmd_display!r} pointer={state.pointer}"
    )
    if instruction is not None:
        lines.append(f"instruction={instruction}")
    if state.output:
        lines.append(f"output={state.output!r}")
    tape_parts: List[str] = []
    for idx, value in enumerate(state.tape):
        absolute = state.tape_start + idx
        cell_repr = f"{absolute}:{value:03}"
        if absolute == state.pointer:
            tape_parts.append(f"[{cell_repr}]")
        else:
            tape_parts.append(f" {cell_repr} ")
    lines.append("tape=" + " ".join(tape_parts))
    lines.append(f"code={_format_code_window(code, state.pc)}")
    return "\n".join(lines)


def _format_code_window(code: str, pc: int, window: int = 16) -> str:
    if not code:
        return "(empty)"
    start = max(0, pc - window)
    end = min(len(code), pc + window + 1)
    pieces: List[str] = []
    for index in range(start, end):
        ch = "\\n" if code[index] == "\n" else code[index]
        if index == pc:
            pieces.append(f"[{ch}]")
        else:
            pieces.append(ch)
    if pc >= len(code):
        pieces.append("[END]")
    return "".join(pieces)


def _print_state(state: ExecutionState, session: VisualizerSession) -> None:
    print("-" * 40)
    print(format_state(state, session.code, session.describe_instruction(state.pc)))


HELP_TEXT = (
    "Commands:\n"
    "  next [N]     : execute N steps (default 1)\n"
    "  run [N]      : run until a breakpoint, the end, or N steps\n"
    "  state        : show the current state\n"
    "  where        : show the basm instruction being executed\n"
    "  history [N]  : show the last N states\n"
    "  break PC     : set a breakpoint at a Brainfuck position\n"
    "  ibreak IDX   : set a breakpoint at the start of basm instruction IDX\n"
    "  breaks       : list breakpoints\n"
    "  clear [PC]   : remove one breakpoint, or all of them\n"
    "  restart      : start over\n"
    "  quit/exit    : leave\n"
)


def run_repl(session: VisualizerSession) -> None:
    print("basm visualizer (type 'help' for commands)")
    _print_state(session.current_state(), session)
    while True:
        try:
            line = input("(basm) ").strip()
        except EOFError:
            print()
            break
        if not line:
            continue
        parts = shlex.split(line)
        command = parts[0].lower()
        args = parts[1:]
        try:
            if command in {"n", "next"}:
                count = max(1, int(args[0])) if args else 1
                states = session.step_forward(count)
                if states:
                    _print_state(states[-1], session)
                elif session.is_finished():
                    print("Program has finished.")
            elif command in {"r", "run"}:
                limit = int(args[0]) if args else None
                states = session.run_until_break(limit)
                if states:
                    _print_state(states[-1], session)
                    if session.hit_breakpoint is not None:
                        print(f"Stopped at breakpoint {session.hit_breakpoint}.")
                        session.hit_breakpoint = None
                elif session.is_finished():
                    print("Program has finished.")
            elif command == "state":
                _print_state(session.current_state(), session)
            elif command == "where":
                described = session.describe_instruction(session.current_state().pc)
                print(described or "(no instruction)")
            elif command == "history":
                count = int(args[0]) if args else 10
                for state in session.history[-count:]:
                    _print_state(state, session)
            elif command == "break":
                if not args:
                    print("Usage: break PC")
                    continue
                session.add_breakpoint(int(args[0]))
                print(f"Breakpoint set at {int(args[0])}.")
            elif command == "ibreak":
                if not args:
                    print("Usage: ibreak IDX")
                    continue
                pc = session.add_instruction_breakpoint(int(args[0]))
                print(f"Breakpoint set at {pc} (instruction {int(args[0])}).")
            elif command == "breaks":
                points = session.list_breakpoints()
                print("Breakpoints: " + ", ".join(map(str, points)) if points else "No breakpoints.")
            elif command == "clear":
                if not args:
                    session.clear_breakpoints()
                    print("All breakpoints removed.")
                elif session.remove_breakpoint(int(args[0])):
                    print(f"Breakpoint {int(args[0])} removed.")
                else:
                    print(f"No breakpoint at {int(args[0])}.")
            elif command == "restart":
                session.restart()
                _print_state(session.current_state(), session)
            elif command in {"quit", "exit"}:
                break
            elif command == "help":
                print(HELP_TEXT)
            else:
                print("Unknown command; see 'help'.")
        except ExecutionError as exc:
            print(f"Execution stopped: {exc}", file=sys.stderr)
        except (ValueError, IndexError) as exc:
            print(f"Invalid argument: {exc}", file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Step through a compiled basm program")
    parser.add_argument("source", help="Path to basm source file")
    parser.add_argument("--input", default="", help="Input string supplied to the program")
    parser.add_argument(
        "--brainfuck",
        action="store_true",
        help="Treat the source file as Brainfuck instead of basm",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=5_000_000,
        help="Step limit (default: 5,000,000)",
    )
    parser.add_argument("--tape-window", type=int, default=10, help="Cells shown on each side of the pointer")
    parser.add_argument("--history-limit", type=int, default=200, help="Number of states kept in history")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log compiler progress to stderr")
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        source_text = Path(args.source).read_text(encoding="utf-8")
    except OSError as exc:
        print(f"Cannot open source file: {exc}", file=sys.stderr)
        return 1

    options = dict(
        tape_window=args.tape_window,
        max_steps=args.max_steps,
        history_limit=args.history_limit,
    )
    input_bytes = _to_input_bytes(args.input)
    if args.brainfuck:
        session = VisualizerSession(source_text, input_template=input_bytes, **options)
    else:
        try:
            session = VisualizerSession.from_source(source_text, input_bytes, **options)
        except ParseError as exc:
            print(f"Compilation failed: {exc}", file=sys.stderr)
            return 1

    run_repl(session)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
