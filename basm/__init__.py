from .bf_interpreter import (
    BrainfuckInterpreter,
    ExecutionError,
    ExecutionState,
    InputExhausted,
    StepLimitExceeded,
)
from .compiler import BasmCompiler, CodeGenerator
from .instructions import CopyValue, Input, Instruction, Move, MoveValue, Print, Write, format_instruction
from .parser import MalformedOperandError, ParseError, Parser, TruncatedInputError, UnknownMnemonicError
from .visualizer import VisualizerSession

__all__ = [
    "BasmCompiler",
    "BrainfuckInterpreter",
    "CodeGenerator",
    "CopyValue",
    "ExecutionError",
    "ExecutionState",
    "Input",
    "InputExhausted",
    "Instruction",
    "MalformedOperandError",
    "Move",
    "MoveValue",
    "ParseError",
    "Parser",
    "Print",
    "StepLimitExceeded",
    "TruncatedInputError",
    "UnknownMnemonicError",
    "VisualizerSession",
    "Write",
    "format_instruction",
]
