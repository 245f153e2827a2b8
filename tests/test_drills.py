import random
import unittest

from multdrill.drills import (
    CellState,
    Operation,
    OperationFeed,
    OperationGrid,
    evaluate,
    parse_answer,
    timeout_metric,
)
from multdrill.util.tables import ALL_TABLES, parse_tables, toggle_table


class EvaluatorTests(unittest.TestCase):
    def test_parse_answer(self) -> None:
        self.assertEqual(parse_answer("42"), 42)
        self.assertEqual(parse_answer(" 7 "), 7)
        self.assertEqual(parse_answer("-3"), -3)
        self.assertEqual(parse_answer(12), 12)
        for bad in ("", "  ", "abc", "4.5", "12abc", None, True):
            self.assertIsNone(parse_answer(bad), bad)
        self.assertEqual(parse_answer(str(2**63 - 1)), 2**63 - 1)
        self.assertIsNone(parse_answer("9" * 25))
        self.assertIsNone(parse_answer(-(2**63) - 1))

    def test_evaluate(self) -> None:
        op = Operation(7, 8, serial=3)
        right = evaluate(op, 56, 1234)
        self.assertTrue(right.is_correct)
        self.assertEqual(right.response_time_ms, 1234)
        self.assertEqual(right.user_input, 56)
        wrong = evaluate(op, 54, 900)
        self.assertFalse(wrong.is_correct)
        self.assertFalse(wrong.is_timeout)

    def test_timeout_metric(self) -> None:
        m = timeout_metric(Operation(3, 4), 30000)
        self.assertFalse(m.is_correct)
        self.assertTrue(m.is_timeout)
        self.assertEqual(m.response_time_ms, 30000)
        self.assertIsNone(m.user_input)


class GridTests(unittest.TestCase):
    def setUp(self) -> None:
        self.grid = OperationGrid(factor_max=5, rng=random.Random(1))

    def test_initialize_and_exhaust(self) -> None:
        self.grid.initialize([2, 3])
        self.assertEqual(len(self.grid.pending), 10)
        seen = set()
        while True:
            op = self.grid.next_operation()
            if op is None:
                break
            self.assertNotIn(op.pair, seen)
            seen.add(op.pair)
            self.grid.mark_correct(op)
        self.assertEqual(len(seen), 10)
        self.assertTrue(self.grid.is_complete())
        self.assertEqual(self.grid.progress(), (10, 10))

    def test_wrong_outside_training_retires_pair(self) -> None:
        self.grid.initialize([2])
        op = self.grid.next_operation()
        self.grid.mark_wrong(op)
        self.assertNotIn(op.pair, self.grid.pending)
        self.assertIs(self.grid.cells[op.pair], CellState.WRONG)

    def test_training_filter_keeps_wrong_pending(self) -> None:
        self.grid.initialize([2, 3])
        self.grid.filter_for([(2, 4), (3, 5)])
        self.assertEqual(self.grid.pending, {(2, 4), (3, 5)})
        self.assertIs(self.grid.cells[(2, 1)], CellState.HIDDEN)
        op = self.grid.next_operation()
        self.grid.mark_wrong(op)
        self.assertIn(op.pair, self.grid.pending)
        self.grid.mark_mastered(op)
        self.assertNotIn(op.pair, self.grid.pending)
        self.assertEqual(self.grid.progress(), (1, 2))

    def test_no_immediate_repeat_when_alternative_exists(self) -> None:
        self.grid.initialize([2])
        self.grid.filter_for([(2, 1), (2, 2)])
        last = None
        for _ in range(20):
            op = self.grid.next_operation()
            self.assertNotEqual(op.pair, last)
            last = op.pair
            self.grid.mark_wrong(op)

    def test_reveal_and_hide(self) -> None:
        self.grid.initialize([4])
        self.grid.reveal_answer((4, 4), 16)
        self.assertEqual(self.grid.revealed, {(4, 4): 16})
        self.grid.hide_answer((4, 4))
        self.grid.hide_answer((4, 4))
        self.assertEqual(self.grid.revealed, {})


class FeedTests(unittest.TestCase):
    def test_serials_distinguish_reissues(self) -> None:
        grid = OperationGrid(factor_max=1, rng=random.Random(0))
        grid.initialize([6])
        grid.filter_for([(6, 1)])
        feed = OperationFeed(grid)
        first = feed.next()
        grid.mark_wrong(first)
        second = feed.next()
        self.assertEqual(first.pair, second.pair)
        self.assertNotEqual(first.serial, second.serial)
        grid.mark_mastered(second)
        self.assertIsNone(feed.next())


class TableSelectionTests(unittest.TestCase):
    def test_parse_tables(self) -> None:
        self.assertEqual(parse_tables("1,2,5-7"), (1, 2, 5, 6, 7))
        self.assertEqual(parse_tables("9-7, 8, x, 0, 16"), (7, 8, 9))
        self.assertEqual(parse_tables(""), ())
        self.assertEqual(parse_tables("1-99"), ALL_TABLES)

    def test_toggle_table(self) -> None:
        self.assertEqual(toggle_table((1,), 3), (1, 3))
        self.assertEqual(toggle_table((1, 3), 1), (3,))


if __name__ == "__main__":
    unittest.main()
