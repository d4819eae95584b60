import unittest

from basm import (
    BasmCompiler,
    CopyValue,
    Input,
    MalformedOperandError,
    Move,
    MoveValue,
    ParseError,
    Parser,
    Print,
    TruncatedInputError,
    UnknownMnemonicError,
    Write,
)
from basm.instructions import format_instruction, format_program
from basm.parser import parse


class InstructionParsingTests(unittest.TestCase):
    def test_instructions_without_operands(self) -> None:
        self.assertEqual(parse("INPUT\nPRINT\n"), [Input(), Print()])

    def test_write_decimal(self) -> None:
        self.assertEqual(parse("WRITE 42"), [Write(42)])

    def test_write_largest_value(self) -> None:
        self.assertEqual(parse("WRITE 4294967295"), [Write(2**32 - 1)])

    def test_write_character_literal(self) -> None:
        self.assertEqual(parse("WRITE 'A'"), [Write(65)])

    def test_write_quote_character(self) -> None:
        self.assertEqual(parse("WRITE '''"), [Write(39)])

    def test_write_newline_escape(self) -> None:
        self.assertEqual(parse("WRITE '\\n'"), [Write(10)])

    def test_quoted_backslash_is_a_plain_character(self) -> None:
        self.assertEqual(parse("WRITE '\\'"), [Write(92)])

    def test_move_accepts_signs(self) -> None:
        self.assertEqual(parse("MOVE -3\nMOVE +2\nMOVE 0"), [Move(-3), Move(2), Move(0)])

    def test_move_value(self) -> None:
        self.assertEqual(parse("MOVEVAL -1\nMOVEVAL 4"), [MoveValue(-1), MoveValue(4)])

    def test_copy_whitespace_around_comma(self) -> None:
        source = "COPY 1,2\nCOPY -1 , 3\nCOPY\t4,\n5"
        self.assertEqual(
            parse(source),
            [CopyValue(1, 2), CopyValue(-1, 3), CopyValue(4, 5)],
        )

    def test_operand_may_follow_mnemonic_directly(self) -> None:
        self.assertEqual(parse("WRITE5"), [Write(5)])

    def test_instructions_may_share_a_line(self) -> None:
        self.assertEqual(parse("WRITE 1 PRINT MOVE 2"), [Write(1), Print(), Move(2)])

    def test_smallest_signed_operand(self) -> None:
        self.assertEqual(parse("MOVE -2147483648"), [Move(-(2**31))])


class CommentTests(unittest.TestCase):
    def test_comment_lines_are_skipped(self) -> None:
        self.assertEqual(parse("; set up\nWRITE 5\n; done"), [Write(5)])

    def test_comment_after_instruction(self) -> None:
        self.assertEqual(parse("PRINT ; show it\nINPUT"), [Print(), Input()])

    def test_comment_at_end_without_newline(self) -> None:
        self.assertEqual(parse("PRINT ;tail"), [Print()])

    def test_empty_comment_keeps_next_line(self) -> None:
        self.assertEqual(parse(";\nPRINT\n"), [Print()])

    def test_comment_can_hold_unknown_words(self) -> None:
        self.assertEqual(parse("; FOO 'x\nINPUT"), [Input()])

    def test_comments_do_not_change_output(self) -> None:
        compiler = BasmCompiler()
        with_comments = compiler.compile("; hello\nWRITE 2\n; bye\nPRINT\n")
        without_comments = compiler.compile("WRITE 2\nPRINT\n")
        self.assertEqual(with_comments, without_comments)


class AssemblerTests(unittest.TestCase):
    def test_empty_input(self) -> None:
        self.assertEqual(parse(""), [])

    def test_whitespace_and_comments_only(self) -> None:
        self.assertEqual(parse("  \n\t; nothing here\n\r\n"), [])

    def test_records_source_lines(self) -> None:
        parser = Parser()
        parser.parse("; c\nWRITE 1\n\n  PRINT\n")
        self.assertEqual(parser.instruction_lines, [2, 4])

    def test_parse_instruction_one_at_a_time(self) -> None:
        parser = Parser()
        parser.reset("; note\nPRINT")
        self.assertIsNone(parser.parse_instruction())
        self.assertEqual(parser.parse_instruction(), Print())

    def test_parse_resets_between_calls(self) -> None:
        parser = Parser()
        parser.parse("PRINT\nPRINT")
        self.assertEqual(parser.parse("INPUT"), [Input()])
        self.assertEqual(parser.instruction_lines, [1])


class ParseErrorTests(unittest.TestCase):
    def test_unknown_mnemonic(self) -> None:
        with self.assertRaises(UnknownMnemonicError) as ctx:
            parse("WRITE 1\nFOO 3")
        self.assertEqual(ctx.exception.word, "FOO")
        self.assertEqual((ctx.exception.line, ctx.exception.column), (2, 1))
        self.assertTrue(str(ctx.exception).startswith("line 2, column 1:"))
        self.assertIn("FOO", str(ctx.exception))

    def test_mnemonics_are_case_sensitive(self) -> None:
        with self.assertRaises(UnknownMnemonicError):
            parse("print")

    def test_stray_token(self) -> None:
        with self.assertRaises(UnknownMnemonicError) as ctx:
            parse("PRINT\n  42")
        self.assertEqual(ctx.exception.word, "42")
        self.assertEqual((ctx.exception.line, ctx.exception.column), (2, 3))

    def test_unsupported_escape(self) -> None:
        with self.assertRaises(MalformedOperandError) as ctx:
            parse("WRITE '\\t'")
        self.assertIn("'\\t'", str(ctx.exception))

    def test_unterminated_character_literal(self) -> None:
        with self.assertRaises(MalformedOperandError):
            parse("WRITE 'ab")

    def test_write_rejects_negative_values(self) -> None:
        with self.assertRaises(MalformedOperandError):
            parse("WRITE -1")

    def test_write_rejects_out_of_range(self) -> None:
        with self.assertRaises(MalformedOperandError):
            parse("WRITE 4294967296")

    def test_move_rejects_out_of_range(self) -> None:
        with self.assertRaises(MalformedOperandError):
            parse("MOVE 2147483648")

    def test_move_rejects_non_integer(self) -> None:
        with self.assertRaises(MalformedOperandError) as ctx:
            parse("MOVE x")
        self.assertEqual((ctx.exception.line, ctx.exception.column), (1, 6))

    def test_copy_requires_comma(self) -> None:
        with self.assertRaises(MalformedOperandError):
            parse("COPY 1 2")

    def test_truncated_operands(self) -> None:
        for source in ("WRITE", "WRITE ", "WRITE '", "MOVE -", "MOVEVAL", "COPY 1", "COPY 1,"):
            with self.subTest(source=source):
                with self.assertRaises(TruncatedInputError):
                    parse(source)

    def test_errors_share_a_base_class(self) -> None:
        for source in ("FOO", "MOVE x", "COPY 1,"):
            with self.subTest(source=source):
                with self.assertRaises(ParseError):
                    parse(source)


class CanonicalFormTests(unittest.TestCase):
    INSTRUCTIONS = [
        Input(),
        Print(),
        Write(0),
        Write(2**32 - 1),
        Move(-(2**31)),
        Move(2**31 - 1),
        MoveValue(-4),
        CopyValue(-1, 5),
    ]

    def test_each_instruction_reparses_to_itself(self) -> None:
        for instruction in self.INSTRUCTIONS:
            with self.subTest(instruction=instruction):
                self.assertEqual(parse(format_instruction(instruction)), [instruction])

    def test_program_reparses_to_itself(self) -> None:
        self.assertEqual(parse(format_program(self.INSTRUCTIONS)), self.INSTRUCTIONS)

    def test_canonical_text(self) -> None:
        self.assertEqual(format_instruction(CopyValue(1, -2)), "COPY 1, -2")
        self.assertEqual(format_instruction(MoveValue(3)), "MOVEVAL 3")


if __name__ == "__main__":
    unittest.main()
