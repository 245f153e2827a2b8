from __future__ import annotations

"""Tkinter window over the session manager.

The Tk event loop pumps the scheduler with ``after(tick_ms)``; every widget
update happens on that thread. Only the coach report runs in a worker
thread, and its result is picked up by the pump.
"""

import threading
import tkinter as tk
from pathlib import Path
from tkinter import messagebox, ttk
from typing import Any, Dict, Optional

from storage.store import TelemetryStore

from ..config.config import load_config, validate_config
from ..report.client import ReportClient
from ..report.service import ReportService, ReportState
from ..util.tables import ALL_TABLES, toggle_table
from . import events as ev
from .session_manager import (
    AdaptivePhase,
    Phase,
    SessionConfig,
    SessionValidationError,
    build_manager,
)

MODES = ["timer", "free", "adaptive"]


class App(tk.Tk):
    def __init__(self, cfg: Optional[Dict[str, Any]] = None) -> None:
        super().__init__()
        self.cfg = cfg or validate_config(load_config())
        self.title("multdrill")
        self.geometry("640x480")

        self.telemetry = TelemetryStore()
        self.sm = build_manager(self.cfg, telemetry=self.telemetry)
        self.report = ReportService(
            ReportClient.from_config(self.cfg),
            structured=bool(self.cfg["report"].get("structured", False)),
        )
        self._report_thread: Optional[threading.Thread] = None
        self._tick_ms = self.sm.timing.tick_ms

        session = self.cfg["session"]
        self.nickname_var = tk.StringVar(value="")
        self.mode_var = tk.StringVar(value=session["mode"])
        self.minutes_var = tk.IntVar(value=int(session["time_limit_min"]))
        self.selected = tuple(session["tables"])
        self.table_vars: Dict[int, tk.BooleanVar] = {}

        self.timer_var = tk.StringVar(value="00:00")
        self.op_var = tk.StringVar(value="")
        self.score_var = tk.StringVar(value="")
        self.message_var = tk.StringVar(value="")

        self._build_config_view()
        self._build_play_view()
        self._build_dashboard_view()
        self._subscribe()
        self._show("config")

        self.bind_all("<Key>", lambda _e: self.sm.note_activity())
        self.after(self._tick_ms, self._pump)

    # --- layout -------------------------------------------------------

    def _build_config_view(self) -> None:
        frm = self.config_view = ttk.Frame(self)
        pad = {"padx": 6, "pady": 4}
        ttk.Label(frm, text="Nickname:").grid(row=0, column=0, sticky=tk.W, **pad)
        ttk.Entry(frm, textvariable=self.nickname_var, width=24).grid(row=0, column=1, columnspan=5, sticky=tk.W, **pad)

        ttk.Label(frm, text="Mode:").grid(row=1, column=0, sticky=tk.W, **pad)
        for i, m in enumerate(MODES):
            ttk.Radiobutton(frm, text=m.capitalize(), variable=self.mode_var, value=m).grid(row=1, column=1 + i, sticky=tk.W)

        ttk.Label(frm, text="Minutes:").grid(row=2, column=0, sticky=tk.W, **pad)
        ttk.Spinbox(frm, from_=1, to=60, textvariable=self.minutes_var, width=5).grid(row=2, column=1, sticky=tk.W, **pad)

        ttk.Label(frm, text="Tables:").grid(row=3, column=0, sticky=tk.NW, **pad)
        grid = ttk.Frame(frm)
        grid.grid(row=3, column=1, columnspan=5, sticky=tk.W)
        for i, t in enumerate(ALL_TABLES):
            var = tk.BooleanVar(value=t in self.selected)
            self.table_vars[t] = var
            ttk.Checkbutton(grid, text=str(t), variable=var, command=lambda t=t: self._toggle(t)).grid(
                row=i // 5, column=i % 5, sticky=tk.W, padx=4
            )
        ttk.Button(frm, text="Start", command=self.start_session).grid(row=4, column=1, sticky=tk.W, **pad)

    def _build_play_view(self) -> None:
        frm = self.play_view = ttk.Frame(self)
        top = ttk.Frame(frm)
        top.pack(side=tk.TOP, fill=tk.X)
        self.timer_label = tk.Label(top, textvariable=self.timer_var, font=("TkFixedFont", 18))
        self.timer_label.pack(side=tk.LEFT)
        ttk.Label(top, textvariable=self.score_var).pack(side=tk.RIGHT)

        tk.Label(frm, textvariable=self.op_var, font=("TkDefaultFont", 32)).pack(side=tk.TOP, pady=24)
        self.entry = tk.Entry(frm, font=("TkDefaultFont", 20), width=8, justify=tk.CENTER)
        self.entry.pack(side=tk.TOP)
        self.entry.bind("<Return>", lambda _e: self._on_submit())
        ttk.Label(frm, textvariable=self.message_var).pack(side=tk.TOP, pady=12)

        bar = ttk.Frame(frm)
        bar.pack(side=tk.BOTTOM, fill=tk.X)
        self.continue_btn = ttk.Button(bar, text="Continue", command=self._on_continue)
        ttk.Button(bar, text="End", command=self.sm.end_session).pack(side=tk.RIGHT, padx=8)

    def _build_dashboard_view(self) -> None:
        frm = self.dashboard_view = ttk.Frame(self)
        self.summary_var = tk.StringVar(value="")
        ttk.Label(frm, textvariable=self.summary_var, justify=tk.LEFT).pack(side=tk.TOP, anchor=tk.W, pady=6)
        self.report_text = tk.Text(frm, height=12, wrap=tk.WORD)
        self.report_text.pack(side=tk.TOP, fill=tk.BOTH, expand=True)
        bar = ttk.Frame(frm)
        bar.pack(side=tk.BOTTOM, fill=tk.X)
        self.analyze_btn = ttk.Button(bar, text="Analyze", command=self.request_report)
        self.analyze_btn.pack(side=tk.LEFT)
        ttk.Button(bar, text="Export CSV", command=self.export_csv).pack(side=tk.LEFT, padx=8)
        ttk.Button(bar, text="Play again", command=self.sm.reset).pack(side=tk.RIGHT)

    def _show(self, view: str) -> None:
        for name, frm in (("config", self.config_view), ("play", self.play_view), ("dashboard", self.dashboard_view)):
            if name == view:
                frm.pack(side=tk.TOP, fill=tk.BOTH, expand=True, padx=10, pady=10)
            else:
                frm.pack_forget()

    # --- events -------------------------------------------------------

    def _subscribe(self) -> None:
        bus = self.sm.bus
        bus.subscribe(ev.PHASE_CHANGED, self._on_phase)
        bus.subscribe(ev.OPERATION_LOADED, self._on_operation)
        bus.subscribe(ev.STATS_UPDATED, self._on_stats)
        bus.subscribe(ev.TIMER_TICK, self._on_tick)
        bus.subscribe(ev.ATTEMPT_RECORDED, self._on_attempt)
        bus.subscribe(ev.HINT_SHOWN, lambda h: self.op_var.set(f"{h.operation} = {h.value}"))
        bus.subscribe(ev.HINT_HIDDEN, lambda h: self.op_var.set(f"{h.operation} = ?"))
        bus.subscribe(ev.INACTIVITY, lambda _r: self._pause("Are you still there? Press Continue to return to the menu."))
        bus.subscribe(ev.TRANSITION_READY, self._on_transition)
        bus.subscribe(ev.VICTORY, self._on_victory)
        bus.subscribe(ev.SESSION_ENDED, self._on_summary)

    def _on_phase(self, change: ev.PhaseChanged) -> None:
        if change.phase == Phase.CONFIG.value:
            self.report.reset()
            self.report_text.delete("1.0", tk.END)
            self._show("config")
        elif change.phase == Phase.DASHBOARD.value:
            self._show("dashboard")
        else:
            self._show("play")

    def _on_operation(self, loaded: ev.OperationLoaded) -> None:
        self.continue_btn.pack_forget()
        self.op_var.set(f"{loaded.operation} = ?")
        self.message_var.set("")
        self.entry.delete(0, tk.END)
        self.entry.focus_set()

    def _on_stats(self, stats: ev.StatsUpdated) -> None:
        text = f"Correct: {stats.correct}  Wrong: {stats.wrong}"
        if stats.remaining_weaknesses is not None:
            text += f"  Remaining: {stats.remaining_weaknesses}"
        self.score_var.set(text)

    def _on_tick(self, tick: ev.TimerTick) -> None:
        self.timer_var.set(tick.reading.display)
        self.timer_label.configure(foreground="#c0392b" if tick.reading.warning else "black")

    def _on_attempt(self, recorded: ev.AttemptRecorded) -> None:
        m = recorded.metric
        if not m.is_correct:
            self.message_var.set(f"{m.row} x {m.col} = {m.row * m.col}")

    def _pause(self, message: str) -> None:
        self.op_var.set("")
        self.message_var.set(message)
        self.continue_btn.pack(side=tk.LEFT)

    def _on_transition(self, t: ev.TransitionReady) -> None:
        self._pause(f"Diagnosis complete: {t.weakness_count} operation(s) to train.")

    def _on_victory(self, v: ev.VictoryStats) -> None:
        self._pause(
            f"All weaknesses mastered! Initial: {v.initial_weaknesses}, "
            f"rounds: {v.training_rounds}, hints: {v.hints_used}"
        )

    def _on_summary(self, s: ev.SessionSummary) -> None:
        self.summary_var.set(
            f"Total: {s.total}\nCorrect: {s.correct}\nAverage time: {s.avg_time_ms}ms\nAccuracy: {s.accuracy}%"
        )

    # --- commands -----------------------------------------------------

    def _toggle(self, table: int) -> None:
        self.selected = toggle_table(self.selected, table)

    def start_session(self) -> None:
        try:
            config = SessionConfig.from_settings(
                self.cfg,
                nickname=self.nickname_var.get(),
                mode=self.mode_var.get(),
                tables=self.selected,
                minutes=int(self.minutes_var.get()),
            )
            self.sm.start(config)
        except (SessionValidationError, tk.TclError) as e:
            messagebox.showwarning("multdrill", str(e))

    def _on_submit(self) -> None:
        raw = self.entry.get()
        if self.sm.submit(raw) is None and raw.strip():
            self.entry.delete(0, tk.END)

    def _on_continue(self) -> None:
        session = self.sm.session
        if session.inactive:
            self.sm.acknowledge_inactivity()
        elif session.adaptive_phase is AdaptivePhase.TRANSITION:
            self.sm.begin_training()
        elif session.adaptive_phase is AdaptivePhase.VICTORY:
            self.sm.finish_adaptive()

    def export_csv(self) -> None:
        path = self.telemetry.to_csv(Path(self.cfg["export"]["csv_path"]))
        messagebox.showinfo("multdrill", f"Attempts appended to {path}")

    def request_report(self) -> None:
        if self._report_thread is not None and self._report_thread.is_alive():
            return
        rows = [r.model_dump() for r in self.telemetry.session_rows]
        stats = self.telemetry.get_session_stats()
        self.report_text.delete("1.0", tk.END)
        self.report_text.insert(tk.END, "Analysing...")
        self._report_thread = threading.Thread(target=self.report.analyze_rows, args=(rows, stats), daemon=True)
        self._report_thread.start()

    def _show_report(self) -> None:
        self.report_text.delete("1.0", tk.END)
        if self.report.state is ReportState.ERROR:
            self.report_text.insert(tk.END, f"Could not reach the virtual coach.\n{self.report.error}\nPress Analyze to retry.")
        elif self.report.report is not None:
            r = self.report.report
            self.report_text.insert(
                tk.END,
                "\n\n".join([r.resumen_general, r.patron_errores, r.plan_accion, r.sugerencia_entrenamiento]),
            )
        else:
            self.report_text.insert(tk.END, self.report.text or "")

    def _pump(self) -> None:
        self.sm.scheduler.run_due()
        if self._report_thread is not None and not self._report_thread.is_alive():
            self._report_thread = None
            self._show_report()
        self.after(self._tick_ms, self._pump)


def main() -> int:
    app = App()
    app.mainloop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
