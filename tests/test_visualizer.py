import unittest

from basm import ExecutionState, ParseError, Print, StepLimitExceeded, VisualizerSession, Write
from basm.visualizer import _format_code_window, _to_input_bytes, format_state, fragment_starts


class VisualizerSessionTests(unittest.TestCase):
    def test_basic_stepping(self) -> None:
        session = VisualizerSession("+++.", input_template=[], tape_window=2, max_steps=100)
        initial = session.current_state()
        self.assertIsNone(initial.command)
        states = session.step_forward(2)
        self.assertEqual(len(states), 2)
        self.assertEqual(states[-1].step, 2)
        self.assertFalse(session.is_finished())

    def test_breakpoint(self) -> None:
        session = VisualizerSession("+++.", input_template=[], tape_window=2, max_steps=100)
        session.add_breakpoint(2)
        session.run_until_break()
        self.assertEqual(session.hit_breakpoint, 2)
        self.assertEqual(session.current_state().pc, 2)

    def test_restart(self) -> None:
        session = VisualizerSession("+.", input_template=[], tape_window=2, max_steps=100)
        session.step_forward(3)
        self.assertTrue(session.is_finished())
        session.restart()
        self.assertFalse(session.is_finished())
        self.assertEqual(session.current_state().step, 0)
        self.assertEqual(len(session.history), 1)

    def test_step_forward_zero_count_keeps_state(self) -> None:
        session = VisualizerSession("++", input_template=[], history_limit=5)
        initial_state = session.current_state()
        self.assertEqual(session.step_forward(0), [])
        self.assertIs(session.current_state(), initial_state)
        self.assertFalse(session.is_finished())

    def test_run_until_break_limit(self) -> None:
        session = VisualizerSession("+++++.", input_template=[], max_steps=100)
        session.add_breakpoint(5)
        states = session.run_until_break(limit=2)
        self.assertEqual(len(states), 2)
        self.assertIsNone(session.hit_breakpoint)
        self.assertEqual(session.current_state(), states[-1])

    def test_run_until_break_propagates_step_limit(self) -> None:
        session = VisualizerSession("+[]", input_template=[], max_steps=2)
        with self.assertRaises(StepLimitExceeded):
            session.run_until_break()
        self.assertTrue(session.is_finished())

    def test_history_limit_discards_old_entries(self) -> None:
        session = VisualizerSession("+++++.", input_template=[], history_limit=3, max_steps=100)
        session.step_forward(5)
        self.assertEqual(len(session.history), 3)
        self.assertGreater(session.history[0].step, 0)
        self.assertEqual(session.history[-1], session.current_state())

    def test_breakpoint_management_helpers(self) -> None:
        session = VisualizerSession("+++.", input_template=[])
        session.add_breakpoint(3)
        session.add_breakpoint(1)
        self.assertEqual(session.list_breakpoints(), [1, 3])
        self.assertTrue(session.remove_breakpoint(1))
        self.assertFalse(session.remove_breakpoint(99))
        session.clear_breakpoints()
        self.assertEqual(session.list_breakpoints(), [])


class BasmSessionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session = VisualizerSession.from_source("; two\nWRITE 2\nPRINT\n", input_template=[])

    def test_compiles_source(self) -> None:
        self.assertEqual(self.session.code, "[-]++\n.\n")
        self.assertEqual(self.session.instructions, [Write(2), Print()])
        self.assertEqual(self.session.source_lines, [2, 3])
        self.assertEqual(self.session.instruction_count(), 2)

    def test_parse_errors_propagate(self) -> None:
        with self.assertRaises(ParseError):
            VisualizerSession.from_source("WRITE", input_template=[])

    def test_instruction_at(self) -> None:
        self.assertEqual(self.session.instruction_at(0), 0)
        self.assertEqual(self.session.instruction_at(5), 0)
        self.assertEqual(self.session.instruction_at(6), 1)
        self.assertIsNone(self.session.instruction_at(8))

    def test_instruction_breakpoint(self) -> None:
        pc = self.session.add_instruction_breakpoint(1)
        self.assertEqual(pc, 6)
        self.session.run_until_break()
        self.assertEqual(self.session.hit_breakpoint, 6)
        state = self.session.current_state()
        self.assertEqual(state.tape[0], 2)
        self.assertEqual(state.output, "")

    def test_instruction_breakpoint_out_of_range(self) -> None:
        with self.assertRaises(IndexError):
            self.session.add_instruction_breakpoint(2)

    def test_describe_instruction(self) -> None:
        self.assertEqual(self.session.describe_instruction(6), "#1 PRINT (line 3)")
        self.assertIsNone(self.session.describe_instruction(8))

    def test_empty_fragment_breakpoint_lands_on_next_command(self) -> None:
        session = VisualizerSession.from_source("MOVE 0\nPRINT\n", input_template=[])
        self.assertEqual(session.code, "\n.\n")
        self.assertEqual(session.instruction_pc(0), 1)

    def test_runs_to_completion(self) -> None:
        self.session.run_until_break()
        self.assertTrue(self.session.is_finished())
        self.assertEqual(self.session.current_state().output, "\x02")


class VisualizerUtilityTests(unittest.TestCase):
    def test_to_input_bytes(self) -> None:
        self.assertEqual(_to_input_bytes("Az0"), [65, 122, 48])

    def test_fragment_starts(self) -> None:
        self.assertEqual(fragment_starts("[-]++\n.\n"), [0, 6])
        self.assertEqual(fragment_starts(".\n\n+\n"), [0, 2, 3])

    def test_format_code_window_marks_end(self) -> None:
        self.assertEqual(_format_code_window("+", 5), "+[END]")

    def test_format_code_window_shows_newlines(self) -> None:
        self.assertEqual(_format_code_window("+\n.", 1), "+[\\n].")

    def test_format_state_renders_core_sections(self) -> None:
        state = ExecutionState(
            step=3,
            pc=1,
            command="+",
            pointer=1,
            tape_start=0,
            tape=[1, 2, 3],
            output="A",
            code_length=3,
        )
        rendered = format_state(state, "++.", instruction="#0 WRITE 2 (line 1)")
        self.assertIn("step=3 pc=1/3 command='+' pointer=1", rendered)
        self.assertIn("instruction=#0 WRITE 2 (line 1)", rendered)
        self.assertIn("output='A'", rendered)
        self.assertIn("[1:002]", rendered)
        self.assertIn("code=+[+].", rendered)


if __name__ == "__main__":
    unittest.main()
