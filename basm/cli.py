from __future__ import annotations

import argparse
import logging as lg
import sys
from pathlib import Path
from typing import List, Optional

from .bf_interpreter import BrainfuckInterpreter, ExecutionError
from .compiler import BasmCompiler
from .parser import ParseError

EXIT_OK = 0
EXIT_READ_ERROR = 101
EXIT_PARSE_ERROR = 102
EXIT_EMIT_ERROR = 103
EXIT_RUN_ERROR = 104


def _read_source(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    source_path = Path(path)
    if not source_path.exists():
        raise FileNotFoundError(f"Source file not found: {path}")
    return source_path.read_text(encoding="utf-8")


def _write_output(path: str, data: str) -> None:
    output_path = Path(path)
    output_path.write_text(data, encoding="utf-8")


def _to_input_units(data: str) -> List[int]:
    return [ord(ch) for ch in data]


def configure_logging(verbose: bool) -> None:
    lg.basicConfig(
        level=lg.DEBUG if verbose else lg.WARNING,
        stream=sys.stderr,
        format="%(levelname)s: %(message)s",
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Compile basm assembly to Brainfuck")
    parser.add_argument(
        "source",
        nargs="?",
        default="-",
        help="Path to basm source file (default: read standard input)",
    )
    parser.add_argument(
        "-o",
        "--emit",
        help="Destination file for emitted Brainfuck (default: print to stdout)",
    )
    parser.add_argument(
        "--run",
        action="store_true",
        help="Execute the Brainfuck program after compilation",
    )
    parser.add_argument(
        "--input",
        help="Input string supplied to the Brainfuck program when running",
        default="",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help="Abort --run after this many Brainfuck steps",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log compiler progress to stderr")
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        source_text = _read_source(args.source)
    except (OSError, UnicodeDecodeError) as exc:
        print(f"Error reading source: {exc}", file=sys.stderr)
        return EXIT_READ_ERROR

    compiler = BasmCompiler()
    try:
        brainfuck_code = compiler.compile(source_text)
    except ParseError as exc:
        print(f"Error parsing input: {exc}", file=sys.stderr)
        return EXIT_PARSE_ERROR

    try:
        if args.emit:
            _write_output(args.emit, brainfuck_code)
        elif not args.run:
            sys.stdout.write(brainfuck_code)
            sys.stdout.flush()
    except OSError as exc:
        print(f"Error writing output: {exc}", file=sys.stderr)
        return EXIT_EMIT_ERROR

    if args.run:
        interpreter = BrainfuckInterpreter()
        try:
            output = interpreter.run(
                brainfuck_code,
                input_data=_to_input_units(args.input),
                max_steps=args.max_steps,
            )
        except ExecutionError as exc:
            print(f"Error running program: {exc}", file=sys.stderr)
            return EXIT_RUN_ERROR
        sys.stdout.write(output)

    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
