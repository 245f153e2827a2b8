from __future__ import annotations

"""CLI for multdrill using SessionManager and the terminal runner."""

import argparse
import queue
import sys
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Optional, TextIO

import yaml

from analytics.prepare import load_and_prepare
from analytics.render import render_all
from storage.store import TelemetryStore, records, stats_from_frame

from .. import __version__
from ..config.config import load_config, validate_config
from ..report.client import ReportClient
from ..report.service import ReportService, ReportState
from ..util.tables import parse_tables
from . import events as ev
from .explain import enable as explain_enable
from .session_manager import (
    AdaptivePhase,
    Phase,
    SessionConfig,
    SessionManager,
    SessionValidationError,
    build_manager,
)

_EOF = object()
QUIT_WORDS = {"q", "quit", "end"}


class TerminalRunner:
    """Plays one session in the terminal.

    A reader thread only moves stdin lines into a queue; the main thread
    pumps the scheduler every ``tick_ms`` and is the only one touching the
    manager.
    """

    def __init__(
        self,
        sm: SessionManager,
        *,
        stream_in: TextIO = sys.stdin,
        out: Callable[[str], None] = print,
    ) -> None:
        self.sm = sm
        self.stream_in = stream_in
        self.out = out
        self.lines: "queue.Queue[Any]" = queue.Queue()
        self._tick_s = sm.timing.tick_ms / 1000.0
        self._subscribe()

    def _subscribe(self) -> None:
        bus = self.sm.bus
        bus.subscribe(ev.OPERATION_LOADED, self._on_operation)
        bus.subscribe(ev.ATTEMPT_RECORDED, self._on_attempt)
        bus.subscribe(ev.HINT_SHOWN, lambda h: self.out(f"Hint: {h.operation} = {h.value}"))
        bus.subscribe(ev.INACTIVITY, lambda _r: self.out("Are you still there? Press Enter to return to the menu."))
        bus.subscribe(ev.TRANSITION_READY, self._on_transition)
        bus.subscribe(ev.VICTORY, self._on_victory)
        bus.subscribe(ev.SESSION_ENDED, self._on_summary)

    def _on_operation(self, loaded: ev.OperationLoaded) -> None:
        reading = self.sm.session_timer.reading()
        clock = f"[{reading.display}{'!' if reading.warning else ''}] " if self.sm.session_timer.running else ""
        self.out(f"{clock}{loaded.operation} = ?")

    def _on_attempt(self, recorded: ev.AttemptRecorded) -> None:
        m = recorded.metric
        if m.is_correct:
            self.out(f"Correct ({m.response_time_ms} ms)")
        elif m.is_timeout:
            self.out(f"Time's up: {m.row} x {m.col} = {m.row * m.col}")
        else:
            self.out(f"Wrong: {m.row} x {m.col} = {m.row * m.col}")

    def _on_transition(self, t: ev.TransitionReady) -> None:
        self.out(
            f"\nDiagnosis complete. Average {t.avg_response_ms:.0f} ms, "
            f"{t.weakness_count} operation(s) to train."
        )
        self.out("Press Enter to start training.")

    def _on_victory(self, v: ev.VictoryStats) -> None:
        self.out("\nAll weaknesses mastered!")
        self.out(f"Initial weaknesses: {v.initial_weaknesses}")
        self.out(f"Training rounds: {v.training_rounds}")
        self.out(f"Hints used: {v.hints_used}")
        self.out("Press Enter to see the summary.")

    def _on_summary(self, s: ev.SessionSummary) -> None:
        self.out("\nSession Summary:")
        self.out(f"Total: {s.total}")
        self.out(f"Correct: {s.correct}")
        self.out(f"Average time: {s.avg_time_ms}ms")
        self.out(f"Accuracy: {s.accuracy}%")

    def _read(self) -> None:
        for line in self.stream_in:
            self.lines.put(line.rstrip("\r\n"))
        self.lines.put(_EOF)

    def handle_line(self, line: str) -> None:
        sm = self.sm
        session = sm.session
        cmd = line.strip().lower()
        sm.note_activity()
        if session.inactive:
            sm.acknowledge_inactivity()
        elif cmd in QUIT_WORDS:
            sm.end_session()
        elif session.adaptive_phase is AdaptivePhase.TRANSITION:
            sm.begin_training()
        elif session.adaptive_phase is AdaptivePhase.VICTORY:
            sm.finish_adaptive()
        elif sm.submit(line) is None and cmd:
            self.out("Enter a whole number (q to finish).")

    def run(self, config: SessionConfig) -> Optional[ev.SessionSummary]:
        """Play until the dashboard; ``None`` when the session was abandoned."""
        self.sm.start(config)
        reader = threading.Thread(target=self._read, daemon=True)
        reader.start()
        while self.sm.phase is Phase.PLAYING:
            try:
                line = self.lines.get(timeout=self._tick_s)
            except queue.Empty:
                line = None
            self.sm.scheduler.run_due()
            if line is _EOF:
                self.sm.end_session()
            elif line is not None and self.sm.phase is Phase.PLAYING:
                self.handle_line(line)
        return self.sm.session.summary if self.sm.phase is Phase.DASHBOARD else None


def _session_config(cfg: Dict[str, Any], args: argparse.Namespace) -> SessionConfig:
    tables = parse_tables(args.tables, hi=int(cfg["session"]["factor_max"])) if args.tables else None
    return SessionConfig.from_settings(
        cfg,
        nickname=args.nickname,
        mode=args.mode,
        tables=tables,
        minutes=args.minutes,
    )


def _report(service: ReportService, rows: Any, stats: Dict[str, int]) -> int:
    print("\nAnalysing session...")
    state = service.analyze_rows(rows, stats)
    if state is ReportState.ERROR:
        print(f"Could not reach the virtual coach: {service.error}")
        return 1
    if service.report is not None:
        r = service.report
        for title, text in (
            ("Summary", r.resumen_general),
            ("Error pattern", r.patron_errores),
            ("Action plan", r.plan_accion),
            ("Training suggestion", r.sugerencia_entrenamiento),
        ):
            print(f"\n{title}:\n{text}")
    else:
        print(f"\n{service.text}")
    return 0


def _report_service(cfg: Dict[str, Any], structured: Optional[bool]) -> ReportService:
    use_structured = bool(cfg["report"].get("structured", False)) if structured is None else structured
    return ReportService(ReportClient.from_config(cfg), structured=use_structured)


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="multdrill")
    p.add_argument("--version", action="version", version=f"multdrill {__version__}")
    sub = p.add_subparsers(dest="cmd", required=True)

    rp = sub.add_parser("run", help="Play a session in the terminal")
    rp.add_argument("--config", default=None)
    rp.add_argument("--nickname", required=True)
    rp.add_argument("--mode", choices=["timer", "free", "adaptive"], default=None)
    rp.add_argument("--tables", default=None, help="Tables to practise, e.g. 2,3,7-9")
    rp.add_argument("--minutes", type=int, default=None, help="Time limit for timer mode")
    rp.add_argument("--seed", type=int, default=None)
    rp.add_argument("--explain", action="store_true")
    rp.add_argument("--no-export", dest="export", action="store_false", help="Do not append to the CSV log")
    rp.add_argument("--charts", action="store_true", help="Render charts for the session")
    rp.add_argument("--report", action="store_true", help="Ask the virtual coach for a report")
    rp.add_argument("--structured", dest="structured", action="store_true", default=None)

    gp = sub.add_parser("gui", help="Open the Tkinter window")
    gp.add_argument("--config", default=None)
    gp.add_argument("--explain", action="store_true")

    sc = sub.add_parser("show-config", help="Print the effective configuration")
    sc.add_argument("--config", default=None)

    ap = sub.add_parser("analyze", help="Charts (and optional report) for an exported CSV log")
    ap.add_argument("csv")
    ap.add_argument("--config", default=None)
    ap.add_argument("--out", default=None, help="Directory for the PNG charts")
    ap.add_argument("--report", action="store_true")
    ap.add_argument("--structured", dest="structured", action="store_true", default=None)

    args = p.parse_args(argv)
    cfg = validate_config(load_config(args.config))
    if getattr(args, "explain", False) or cfg["ui"].get("explain", False):
        explain_enable(True)

    if args.cmd == "show-config":
        print(yaml.safe_dump(cfg, sort_keys=False))
        return 0

    if args.cmd == "gui":
        from .gui import App

        App(cfg).mainloop()
        return 0

    if args.cmd == "analyze":
        df = load_and_prepare(Path(args.csv))
        if df.empty:
            print(f"No attempts found in {args.csv}")
            return 2
        outdir = Path(args.out or cfg["export"]["charts_dir"])
        for path in render_all(df, outdir):
            print(f"Wrote {path}")
        if args.report:
            return _report(_report_service(cfg, args.structured), records(df), stats_from_frame(df))
        return 0

    if args.cmd == "run":
        if args.seed is not None:
            cfg["session"]["seed"] = args.seed
        telemetry = TelemetryStore()
        sm = build_manager(cfg, telemetry=telemetry)
        try:
            config = _session_config(cfg, args)
            summary = TerminalRunner(sm).run(config)
        except SessionValidationError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 2
        if summary is None:
            print("Session abandoned.")
            return 0
        if args.export and telemetry.history:
            path = telemetry.to_csv(Path(cfg["export"]["csv_path"]))
            print(f"Attempts appended to {path}")
        if args.charts:
            for path in render_all(telemetry.session_frame(), Path(cfg["export"]["charts_dir"])):
                print(f"Wrote {path}")
        if args.report:
            return _report(
                _report_service(cfg, args.structured),
                [r.model_dump() for r in telemetry.session_rows],
                telemetry.get_session_stats(),
            )
        return 0

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
