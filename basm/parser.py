from __future__ import annotations

import logging as lg
from typing import Dict, List, Optional, Tuple

from .instructions import (
    I32_MAX,
    I32_MIN,
    U32_MAX,
    CopyValue,
    Input,
    Instruction,
    Move,
    MoveValue,
    Print,
    Write,
    format_instruction,
)

COMMENT_MARKER = ";"
WHITESPACE = " \t\r\n"
DIGITS = "0123456789"

# Only the escapes listed here are accepted inside a character literal.
ESCAPES: Dict[str, int] = {
    "n": ord("\n"),
}


class ParseError(Exception):
    def __init__(self, message: str, line: int, column: int) -> None:
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column

    def __str__(self) -> str:
        return f"line {self.line}, column {self.column}: {self.message}"


class UnknownMnemonicError(ParseError):
    def __init__(self, word: str, line: int, column: int) -> None:
        super().__init__(f"Unrecognized instruction '{word}'", line, column)
        self.word = word


class MalformedOperandError(ParseError):
    pass


class TruncatedInputError(ParseError):
    pass


def _is_letter(ch: str) -> bool:
    return ch.isascii() and ch.isalpha()


class Parser:
    """Recursive-descent reader for basm source text.

    ``parse`` drives ``parse_instruction`` until the input is exhausted and
    returns the instructions in source order. ``instruction_lines`` holds the
    1-based source line of each returned instruction.
    """

    def reset(self, source: str) -> None:
        self.source = source
        self.pos = 0
        self.instruction_lines: List[int] = []

    def parse(self, source: str) -> List[Instruction]:
        self.reset(source)
        instructions: List[Instruction] = []
        while True:
            self._skip_whitespace()
            if self._at_end():
                break
            line, _ = self._location(self.pos)
            instruction = self.parse_instruction()
            if instruction is None:
                continue
            lg.debug(f"Line {line}: {format_instruction(instruction)}")
            instructions.append(instruction)
            self.instruction_lines.append(line)
        return instructions

    def parse_instruction(self) -> Optional[Instruction]:
        start = self._skip_whitespace()
        word = self._parse_word()
        if word == COMMENT_MARKER:
            self._skip_line()
            return None
        self._skip_whitespace()
        if word == "INPUT":
            return Input()
        if word == "PRINT":
            return Print()
        if word == "WRITE":
            return Write(self._parse_u32_param(word))
        if word == "MOVE":
            return Move(self._parse_i32_param(word))
        if word == "MOVEVAL":
            return MoveValue(self._parse_i32_param(word))
        if word == "COPY":
            to = self._parse_i32_param(word)
            self._skip_whitespace()
            self._expect(",", "Expected ',' between COPY operands")
            self._skip_whitespace()
            tmp = self._parse_i32_param(word)
            return CopyValue(to, tmp)
        raise UnknownMnemonicError(word, *self._location(start))

    # --- Words ---

    def _parse_word(self) -> str:
        if self._at_end():
            raise self._error(TruncatedInputError, "Expected an instruction")
        start = self.pos
        if self.source[start] == COMMENT_MARKER:
            self.pos += 1
            return COMMENT_MARKER
        while not self._at_end() and _is_letter(self.source[self.pos]):
            self.pos += 1
        if self.pos == start:
            # Report the whole offending token rather than its first character.
            end = start
            while end < len(self.source) and self.source[end] not in WHITESPACE:
                end += 1
            raise UnknownMnemonicError(self.source[start:end], *self._location(start))
        return self.source[start : self.pos]

    def _skip_line(self) -> None:
        end = self.source.find("\n", self.pos)
        self.pos = len(self.source) if end == -1 else end

    # --- Operands ---

    def _parse_u32_param(self, word: str) -> int:
        if self._at_end():
            raise self._error(TruncatedInputError, f"Missing operand for {word}")
        if self.source[self.pos] == "'":
            return self._parse_char_literal()
        if self.source[self.pos] in DIGITS:
            start = self.pos
            value = int(self._take_digits())
            if value > U32_MAX:
                raise self._error(
                    MalformedOperandError,
                    f"Value {value} does not fit in an unsigned 32-bit operand",
                    start,
                )
            return value
        raise self._error(
            MalformedOperandError,
            f"Expected an unsigned integer or character literal after {word}",
        )

    def _parse_char_literal(self) -> int:
        start = self.pos
        text = self.source
        if start + 2 < len(text) and text[start + 2] == "'":
            self.pos = start + 3
            return ord(text[start + 1])
        if text.startswith("'\\", start):
            if start + 3 >= len(text):
                raise self._error(TruncatedInputError, "Unterminated character literal", start)
            if text[start + 3] != "'":
                raise self._error(MalformedOperandError, "Unterminated character literal", start)
            escape = text[start + 2]
            if escape not in ESCAPES:
                raise self._error(
                    MalformedOperandError,
                    f"Unsupported escape sequence '\\{escape}'",
                    start,
                )
            self.pos = start + 4
            return ESCAPES[escape]
        if start + 2 >= len(text):
            raise self._error(TruncatedInputError, "Unterminated character literal", start)
        raise self._error(MalformedOperandError, "Unterminated character literal", start)

    def _parse_i32_param(self, word: str) -> int:
        start = self.pos
        sign = 1
        if not self._at_end() and self.source[self.pos] in "+-":
            sign = -1 if self.source[self.pos] == "-" else 1
            self.pos += 1
        if self._at_end():
            raise self._error(TruncatedInputError, f"Missing operand for {word}")
        if self.source[self.pos] not in DIGITS:
            raise self._error(MalformedOperandError, f"Expected a signed integer after {word}")
        value = sign * int(self._take_digits())
        if not (I32_MIN <= value <= I32_MAX):
            raise self._error(
                MalformedOperandError,
                f"Value {value} does not fit in a signed 32-bit operand",
                start,
            )
        return value

    def _take_digits(self) -> str:
        start = self.pos
        while not self._at_end() and self.source[self.pos] in DIGITS:
            self.pos += 1
        return self.source[start : self.pos]

    def _expect(self, token: str, message: str) -> None:
        if self._at_end():
            raise self._error(TruncatedInputError, message)
        if not self.source.startswith(token, self.pos):
            raise self._error(MalformedOperandError, message)
        self.pos += len(token)

    # --- Helpers ---

    def _at_end(self) -> bool:
        return self.pos >= len(self.source)

    def _skip_whitespace(self) -> int:
        while not self._at_end() and self.source[self.pos] in WHITESPACE:
            self.pos += 1
        return self.pos

    def _location(self, pos: int) -> Tuple[int, int]:
        line = self.source.count("\n", 0, pos) + 1
        column = pos - (self.source.rfind("\n", 0, pos) + 1) + 1
        return line, column

    def _error(self, kind: type, message: str, pos: Optional[int] = None) -> ParseError:
        line, column = self._location(self.pos if pos is None else pos)
        return kind(message, line, column)


def parse(source: str) -> List[Instruction]:
    return Parser().parse(source)


__all__ = [
    "ESCAPES",
    "MalformedOperandError",
    "ParseError",
    "Parser",
    "TruncatedInputError",
    "UnknownMnemonicError",
    "parse",
]
