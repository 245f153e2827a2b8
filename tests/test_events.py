import io
import unittest
from contextlib import redirect_stdout

from multdrill.app import explain
from multdrill.app.events import EventBus


class EventBusTests(unittest.TestCase):
    def tearDown(self) -> None:
        explain.enable(False)

    def test_failing_observer_is_isolated(self) -> None:
        bus = EventBus()
        seen = []

        def broken(_payload):
            raise RuntimeError("boom")

        bus.subscribe("x", broken)
        bus.subscribe("x", seen.append)
        explain.enable(True)
        buf = io.StringIO()
        with redirect_stdout(buf):
            bus.emit("x", 1)
        self.assertEqual(seen, [1])
        self.assertIn("[EXPLAIN] observer_error", buf.getvalue())

    def test_unsubscribe(self) -> None:
        bus = EventBus()
        seen = []
        bus.subscribe("x", seen.append)
        bus.unsubscribe("x", seen.append)
        bus.unsubscribe("x", seen.append)
        bus.emit("x", 1)
        self.assertEqual(seen, [])

    def test_trace_silent_unless_enabled(self) -> None:
        buf = io.StringIO()
        with redirect_stdout(buf):
            explain.trace("quiet", {"a": 1})
            explain.enable(True)
            explain.trace("loud", {"a": 1})
        self.assertEqual(buf.getvalue().strip(), '[EXPLAIN] loud :: {"a":1}')

    def test_format_line(self) -> None:
        self.assertEqual(explain.format_line("session_reset"), "[EXPLAIN] session_reset")
        self.assertEqual(explain.format_line("tick", {"ms": 5}), '[EXPLAIN] tick :: {"ms":5}')


if __name__ == "__main__":
    unittest.main()
