import io
import random
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest import mock

import matplotlib

matplotlib.use("Agg")

from multdrill.app.cli import TerminalRunner, main
from multdrill.app.session_manager import AdaptivePhase, Mode, Phase, SessionConfig, SessionManager
from multdrill.config.config import TimingConfig
from multdrill.drills.grid import OperationGrid
from multdrill.timing import FakeClock, Scheduler
from storage.store import TelemetryStore


class TerminalRunnerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.sched = Scheduler(FakeClock())
        self.store = TelemetryStore()
        self.sm = SessionManager(
            OperationGrid(factor_max=2, rng=random.Random(3)),
            self.store,
            timing=TimingConfig(),
            scheduler=self.sched,
        )
        self.out = []

    def runner(self, text: str = "") -> TerminalRunner:
        return TerminalRunner(self.sm, stream_in=io.StringIO(text), out=self.out.append)

    def test_lines_drive_the_session(self) -> None:
        runner = self.runner()
        self.sm.start(SessionConfig(nickname="ana", mode=Mode.FREE, tables=(3,)))
        self.assertTrue(self.out[-1].endswith("= ?"))
        runner.handle_line("abc")
        self.assertEqual(self.out[-1], "Enter a whole number (q to finish).")
        while self.sm.phase is Phase.PLAYING:
            runner.handle_line(str(self.sm.current_operation.answer))
        self.assertIn("Accuracy: 100%", self.out)

    def test_enter_advances_adaptive_pauses(self) -> None:
        runner = self.runner()
        self.sm.start(SessionConfig(nickname="ana", mode=Mode.ADAPTIVE, tables=(3,)))
        runner.handle_line(str(self.sm.current_operation.answer + 1))
        runner.handle_line(str(self.sm.current_operation.answer))
        self.assertIs(self.sm.adaptive_phase, AdaptivePhase.TRANSITION)
        runner.handle_line("")
        self.assertIs(self.sm.adaptive_phase, AdaptivePhase.TRAINING)
        runner.handle_line(str(self.sm.current_operation.answer))
        self.assertIs(self.sm.adaptive_phase, AdaptivePhase.VICTORY)
        runner.handle_line("")
        self.assertIs(self.sm.phase, Phase.DASHBOARD)

    def test_quit_from_stdin_ends_session(self) -> None:
        summary = self.runner("q\n").run(SessionConfig(nickname="ana", mode=Mode.FREE, tables=(3,)))
        self.assertIsNotNone(summary)
        self.assertEqual(summary.total, 0)
        self.assertIs(self.sm.phase, Phase.DASHBOARD)

    def test_eof_ends_session(self) -> None:
        summary = self.runner("").run(SessionConfig(nickname="ana", mode=Mode.FREE, tables=(3,)))
        self.assertIsNotNone(summary)


class MainTests(unittest.TestCase):
    def test_show_config(self) -> None:
        buf = io.StringIO()
        with redirect_stdout(buf):
            self.assertEqual(main(["show-config"]), 0)
        self.assertIn("operation_time_limit_ms: 30000", buf.getvalue())

    def test_analyze_renders_charts(self) -> None:
        store = TelemetryStore()
        store.start_session("ana")
        store.record_attempt(2, 3, 6, True, 1000, "free")
        store.record_attempt(4, 4, 15, False, 2500, "free")
        with tempfile.TemporaryDirectory() as tmp:
            csv = store.to_csv(Path(tmp) / "log.csv")
            out = Path(tmp) / "charts"
            buf = io.StringIO()
            with mock.patch("matplotlib.pyplot.savefig") as savefig, redirect_stdout(buf):
                self.assertEqual(main(["analyze", str(csv), "--out", str(out)]), 0)
            self.assertEqual(savefig.call_count, 3)
            self.assertTrue((out / "table_summary.csv").exists())

    def test_analyze_missing_log(self) -> None:
        with redirect_stdout(io.StringIO()):
            self.assertEqual(main(["analyze", "/nonexistent/log.csv"]), 2)


if __name__ == "__main__":
    unittest.main()
