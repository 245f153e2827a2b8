from __future__ import annotations

"""Session Manager: the state machine behind a drilling session.

Owns the phase, the counters, the diagnosis metrics and the training queue.
Drives the timer set, pulls items from the operation feed, grades through
the evaluator and hands diagnosis results to the weakness policy. Observers
learn about every change through the event bus; nothing outside this class
mutates session state.

Phases::

    CONFIG -> PLAYING -> DASHBOARD
              PLAYING(adaptive): DIAGNOSIS -> TRANSITION -> TRAINING -> VICTORY

All entry points run on the thread that pumps the scheduler.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Set, Tuple

from storage.store import TelemetryStore

from ..config.config import TimingConfig, timing_from_config
from ..drills.feed import OperationFeed
from ..drills.grid import OperationGrid
from ..drills.operation import AttemptMetric, Operation, evaluate, parse_answer, timeout_metric
from ..policy.weakness import analyze_weaknesses
from ..timing.clock import Clock, SystemClock
from ..timing.scheduler import Scheduler
from ..timing.timers import HintCycle, InactivityWatchdog, OperationCountdown, SessionTimer, TimerReading
from ..util.randomness import make_rng
from ..util.tables import ALL_TABLES
from . import events as ev
from .collaborators import GridCollaborator, TelemetryCollaborator
from .explain import trace as xtrace

Pair = Tuple[int, int]


class Mode(str, Enum):
    TIMER = "timer"
    FREE = "free"
    ADAPTIVE = "adaptive"


class Phase(str, Enum):
    CONFIG = "config"
    PLAYING = "playing"
    DASHBOARD = "dashboard"


class AdaptivePhase(str, Enum):
    DIAGNOSIS = "diagnosis"
    TRANSITION = "transition"
    TRAINING = "training"
    VICTORY = "victory"


class SessionValidationError(ValueError):
    """Start request rejected before any state changed."""


class SessionStateError(RuntimeError):
    """Command issued from a phase that does not accept it."""


@dataclass(frozen=True)
class SessionConfig:
    nickname: str
    mode: Mode = Mode.TIMER
    tables: Tuple[int, ...] = (1,)
    time_limit_ms: Optional[int] = None

    @classmethod
    def from_settings(
        cls,
        cfg: Mapping[str, Any],
        *,
        nickname: str,
        mode: Optional[str] = None,
        tables: Optional[Tuple[int, ...]] = None,
        minutes: Optional[int] = None,
    ) -> "SessionConfig":
        """Merge explicit choices over the ``session`` config section."""
        session = cfg.get("session", {})
        mode_value = str(mode or session.get("mode", "timer")).lower()
        chosen = tuple(tables) if tables is not None else tuple(session.get("tables", (1,)))
        # Adaptive play from the untouched default selection covers every table.
        if mode_value == Mode.ADAPTIVE.value and chosen == (1,) and session.get("adaptive_selects_all", True):
            chosen = ALL_TABLES
        limit_min = minutes if minutes is not None else session.get("time_limit_min", 1)
        try:
            mode_enum = Mode(mode_value)
        except ValueError:
            raise SessionValidationError(f"Unknown mode: {mode_value}") from None
        return cls(
            nickname=nickname,
            mode=mode_enum,
            tables=chosen,
            time_limit_ms=int(limit_min) * 60 * 1000 if mode_enum is Mode.TIMER else None,
        )


def validate_start(config: SessionConfig | Mapping[str, Any]) -> SessionConfig:
    """Normalise and check a start request, raising ``SessionValidationError``."""
    if isinstance(config, Mapping):
        data = dict(config)
    else:
        data = {
            "nickname": config.nickname,
            "mode": config.mode,
            "tables": config.tables,
            "time_limit_ms": config.time_limit_ms,
        }
    nickname = str(data.get("nickname") or "").strip()
    if not nickname:
        raise SessionValidationError("Please enter a nickname")
    try:
        mode = Mode(str(getattr(data.get("mode"), "value", data.get("mode")) or "timer").lower())
    except ValueError:
        raise SessionValidationError(f"Unknown mode: {data.get('mode')}") from None
    try:
        tables = tuple(sorted({int(t) for t in (data.get("tables") or ())}))
    except (TypeError, ValueError):
        raise SessionValidationError("Tables must be integers") from None
    if not tables:
        raise SessionValidationError("Please select at least one table to practice")
    if tables[0] <= 0:
        raise SessionValidationError("Tables must be positive")
    limit = data.get("time_limit_ms")
    if mode is Mode.TIMER:
        try:
            limit = int(limit) if limit is not None else 0
        except (TypeError, ValueError):
            limit = 0
        if limit <= 0:
            raise SessionValidationError("Timer mode needs a positive time limit")
    else:
        limit = None
    return SessionConfig(nickname=nickname, mode=mode, tables=tables, time_limit_ms=limit)


@dataclass
class Session:
    nickname: str = ""
    mode: Optional[Mode] = None
    tables: Tuple[int, ...] = ()
    time_limit_ms: Optional[int] = None
    phase: Phase = Phase.CONFIG
    adaptive_phase: Optional[AdaptivePhase] = None
    correct_count: int = 0
    wrong_count: int = 0
    issued_count: int = 0
    resolved_count: int = 0
    metrics: List[AttemptMetric] = field(default_factory=list)
    training_queue: List[Pair] = field(default_factory=list)
    initial_weakness_count: int = 0
    training_rounds: int = 0
    avg_diagnosis_ms: float = 0.0
    inactive: bool = False
    started_at_ms: int = 0
    summary: Optional[ev.SessionSummary] = None


@dataclass(frozen=True)
class SessionSnapshot:
    phase: Phase
    adaptive_phase: Optional[AdaptivePhase]
    mode: Optional[Mode]
    nickname: str
    tables: Tuple[int, ...]
    correct_count: int
    wrong_count: int
    issued_count: int
    resolved_count: int
    metrics: Tuple[AttemptMetric, ...]
    training_queue: Tuple[Pair, ...]
    initial_weakness_count: int
    training_rounds: int
    hints_used: int
    avg_diagnosis_ms: float
    inactive: bool
    current: Optional[Operation]
    timer: TimerReading
    summary: Optional[ev.SessionSummary]


class SessionManager:
    def __init__(
        self,
        grid: Optional[GridCollaborator] = None,
        telemetry: Optional[TelemetryCollaborator] = None,
        *,
        timing: Optional[TimingConfig] = None,
        clock: Optional[Clock] = None,
        scheduler: Optional[Scheduler] = None,
        bus: Optional[ev.EventBus] = None,
        factor_max: int = 15,
    ) -> None:
        self.timing = timing or TimingConfig()
        self.scheduler = scheduler or Scheduler(clock or SystemClock())
        self.clock = self.scheduler.clock
        self.grid = grid if grid is not None else OperationGrid(factor_max)
        self.telemetry = telemetry if telemetry is not None else TelemetryStore()
        self.bus = bus or ev.EventBus()
        self.feed = OperationFeed(self.grid)

        t = self.timing
        self.session_timer = SessionTimer(self.scheduler, t.tick_ms)
        self.op_countdown = OperationCountdown(self.scheduler, t.operation_time_limit_ms)
        self.watchdog = InactivityWatchdog(self.scheduler, t.inactivity_limit_ms)
        self.hint = HintCycle(
            self.scheduler,
            poll_ms=t.hint_poll_ms,
            display_ms=t.hint_display_ms,
            cooldown_ms=t.hint_cooldown_ms,
        )

        self.session = Session()
        self._current: Optional[Operation] = None
        self._op_started_at = 0
        self._round_seen: Set[Pair] = set()

    # ------------------------------------------------------------------
    # Read-only views

    @property
    def phase(self) -> Phase:
        return self.session.phase

    @property
    def adaptive_phase(self) -> Optional[AdaptivePhase]:
        return self.session.adaptive_phase

    @property
    def current_operation(self) -> Optional[Operation]:
        return self._current

    @property
    def hints_used(self) -> int:
        return self.hint.hints_used

    def snapshot(self) -> SessionSnapshot:
        s = self.session
        return SessionSnapshot(
            phase=s.phase,
            adaptive_phase=s.adaptive_phase,
            mode=s.mode,
            nickname=s.nickname,
            tables=s.tables,
            correct_count=s.correct_count,
            wrong_count=s.wrong_count,
            issued_count=s.issued_count,
            resolved_count=s.resolved_count,
            metrics=tuple(s.metrics),
            training_queue=tuple(s.training_queue),
            initial_weakness_count=s.initial_weakness_count,
            training_rounds=s.training_rounds,
            hints_used=self.hint.hints_used,
            avg_diagnosis_ms=s.avg_diagnosis_ms,
            inactive=s.inactive,
            current=self._current,
            timer=self.session_timer.reading(),
            summary=s.summary,
        )

    # ------------------------------------------------------------------
    # Commands

    def start(self, config: SessionConfig | Mapping[str, Any]) -> None:
        if self.session.phase is not Phase.CONFIG:
            raise SessionStateError(f"Cannot start a session from {self.session.phase.value}")
        cfg = validate_start(config)

        self._safe("start_session", self.telemetry.start_session, cfg.nickname)
        self.grid.initialize(cfg.tables)
        self.session = Session(
            nickname=cfg.nickname,
            mode=cfg.mode,
            tables=cfg.tables,
            time_limit_ms=cfg.time_limit_ms,
            phase=Phase.PLAYING,
            adaptive_phase=AdaptivePhase.DIAGNOSIS if cfg.mode is Mode.ADAPTIVE else None,
            started_at_ms=self.clock.now_ms(),
        )
        self.hint.reset_count()
        self.watchdog.enable()
        self._round_seen = set()

        if cfg.mode is Mode.TIMER:
            self.session_timer.start_countdown(
                cfg.time_limit_ms,
                on_expire=self._on_session_expired,
                on_tick=self._emit_tick,
                warning_ms=self.timing.timer_warning_ms,
            )
        elif cfg.mode is Mode.FREE:
            self.session_timer.start_stopwatch(on_tick=self._emit_tick)
        # Adaptive diagnosis runs its countdown per operation.

        xtrace("session_started", {"nickname": cfg.nickname, "mode": cfg.mode.value, "tables": list(cfg.tables)})
        self._emit_phase()
        self.watchdog.arm(self._on_idle)
        self._load_next_operation()

    def submit(self, raw_input: Any) -> Optional[AttemptMetric]:
        """Grade ``raw_input`` against the current operation.

        Returns the recorded metric, or ``None`` when the input is not an
        integer or nothing is awaiting an answer.
        """
        if not self._accepting():
            return None
        value = parse_answer(raw_input)
        if value is None:
            return None
        self.note_activity()
        op = self._current
        metric = evaluate(op, value, self.clock.now_ms() - self._op_started_at)
        xtrace("attempt_evaluated", {"op": str(op), "input": value, "correct": metric.is_correct, "ms": metric.response_time_ms})
        self._resolve(op, metric)
        return metric

    def note_activity(self) -> None:
        """Keystroke from the learner: push back the inactivity watchdog."""
        s = self.session
        if s.phase is Phase.PLAYING and not s.inactive and s.adaptive_phase is not AdaptivePhase.TRAINING:
            self.watchdog.poke()

    def end_session(self) -> None:
        """Stop everything and publish the dashboard summary."""
        s = self.session
        if s.phase is not Phase.PLAYING:
            return
        self._stop_all_timers()
        self._current = None
        stats = self._safe("get_session_stats", self.telemetry.get_session_stats) or {}
        s.summary = ev.SessionSummary(
            mode=s.mode.value if s.mode else "",
            total=int(stats.get("total", 0)),
            correct=int(stats.get("correct", 0)),
            avg_time_ms=int(stats.get("avgTime", 0)),
            accuracy=int(stats.get("accuracy", 0)),
            correct_count=s.correct_count,
            wrong_count=s.wrong_count,
            elapsed_ms=max(0, self.clock.now_ms() - s.started_at_ms),
            extras={
                "initial_weaknesses": s.initial_weakness_count,
                "training_rounds": s.training_rounds,
                "hints_used": self.hint.hints_used,
            },
        )
        s.phase = Phase.DASHBOARD
        xtrace("session_ended", {"total": s.summary.total, "correct": s.summary.correct, "accuracy": s.summary.accuracy})
        self._emit_phase()
        self.bus.emit(ev.SESSION_ENDED, s.summary)

    def reset(self) -> None:
        """Back to CONFIG from anywhere; calling it again is harmless."""
        self._stop_all_timers()
        self._current = None
        if self.session.phase is Phase.CONFIG and self.session.mode is None:
            return
        self._safe("reset_session", self.telemetry.reset_session)
        self.session = Session()
        self.watchdog.enable()
        self._round_seen = set()
        xtrace("session_reset")
        self._emit_phase()

    def acknowledge_inactivity(self) -> None:
        if self.session.inactive:
            self.reset()

    def begin_training(self) -> None:
        """Leave TRANSITION once the learner has seen the weakness count."""
        s = self.session
        if s.phase is not Phase.PLAYING or s.adaptive_phase is not AdaptivePhase.TRANSITION:
            raise SessionStateError("Training can only start after the diagnosis transition")
        s.adaptive_phase = AdaptivePhase.TRAINING
        s.training_rounds = 1
        self._round_seen = set()
        self.grid.filter_for(s.training_queue)
        s.correct_count = 0
        s.wrong_count = 0
        s.issued_count = 0
        s.resolved_count = 0
        # Training has no time pressure; idle time is expected.
        self.watchdog.disable()
        self.session_timer.start_stopwatch(on_tick=self._emit_tick)
        xtrace("training_started", {"queue": len(s.training_queue)})
        self._emit_phase()
        self._emit_stats()
        self._load_next_operation()

    def finish_adaptive(self) -> None:
        """Acknowledge VICTORY and move to the dashboard."""
        if self.session.adaptive_phase is not AdaptivePhase.VICTORY or self.session.phase is not Phase.PLAYING:
            raise SessionStateError("No adaptive victory to acknowledge")
        self.end_session()

    # ------------------------------------------------------------------
    # Internals

    def _accepting(self) -> bool:
        s = self.session
        return (
            s.phase is Phase.PLAYING
            and not s.inactive
            and self._current is not None
            and s.adaptive_phase not in (AdaptivePhase.TRANSITION, AdaptivePhase.VICTORY)
        )

    def _load_next_operation(self) -> None:
        self.hint.stop()
        self.op_countdown.stop()
        s = self.session
        op = self.feed.next()
        if op is None:
            self._current = None
            self._on_grid_exhausted()
            return

        self._current = op
        self._op_started_at = self.clock.now_ms()
        s.issued_count += 1

        if s.adaptive_phase is AdaptivePhase.DIAGNOSIS:
            # The operation countdown owns the timeout; the session timer only displays it.
            self.op_countdown.arm(lambda: self._on_operation_timeout(op))
            self.session_timer.start_countdown(
                self.timing.operation_time_limit_ms,
                on_tick=self._emit_tick,
                warning_ms=self.timing.diagnosis_warning_ms,
            )
        elif s.adaptive_phase is AdaptivePhase.TRAINING:
            self._track_round(op)
            self.hint.start(op, s.avg_diagnosis_ms, on_show=self._show_hint, on_hide=self._hide_hint)

        xtrace("operation_loaded", {"op": str(op), "serial": op.serial})
        self.bus.emit(ev.OPERATION_LOADED, ev.OperationLoaded(operation=op, issued=s.issued_count))

    def _resolve(self, op: Operation, metric: AttemptMetric) -> None:
        # Clearing the current operation first makes any late timeout stale.
        self._current = None
        self.op_countdown.stop()
        s = self.session

        self._safe(
            "record_attempt",
            self.telemetry.record_attempt,
            op.row,
            op.col,
            metric.user_input,
            metric.is_correct,
            metric.response_time_ms,
            s.mode.value,
        )
        if metric.is_correct:
            self.grid.mark_correct(op)
            s.correct_count += 1
        else:
            self.grid.mark_wrong(op)
            s.wrong_count += 1
        s.resolved_count += 1

        if s.adaptive_phase is AdaptivePhase.DIAGNOSIS:
            s.metrics.append(metric)
        elif s.adaptive_phase is AdaptivePhase.TRAINING and metric.is_correct:
            s.training_queue = [p for p in s.training_queue if p != op.pair]
            self.grid.mark_mastered(op)

        self.bus.emit(ev.ATTEMPT_RECORDED, ev.AttemptRecorded(metric=metric))
        self._emit_stats()

        if s.adaptive_phase is AdaptivePhase.DIAGNOSIS and self.grid.is_complete():
            self._enter_transition()
            return
        if s.adaptive_phase is AdaptivePhase.TRAINING and not s.training_queue:
            self._enter_victory()
            return
        self._load_next_operation()

    def _on_operation_timeout(self, op: Operation) -> None:
        current = self._current
        if current is None or current.serial != op.serial or not self._accepting():
            return
        xtrace("operation_timeout", {"op": str(op)})
        self._resolve(op, timeout_metric(op, self.timing.operation_time_limit_ms))

    def _on_session_expired(self) -> None:
        xtrace("session_time_up")
        self.end_session()

    def _on_grid_exhausted(self) -> None:
        phase = self.session.adaptive_phase
        if phase is AdaptivePhase.DIAGNOSIS:
            self._enter_transition()
        elif phase is AdaptivePhase.TRAINING:
            self._enter_victory()
        else:
            self.end_session()

    def _on_idle(self) -> None:
        s = self.session
        if s.phase is not Phase.PLAYING or s.adaptive_phase is AdaptivePhase.TRAINING:
            return
        s.inactive = True
        self.session_timer.suspend()
        self.op_countdown.stop()
        self.hint.stop()
        xtrace("inactivity", {"limit_ms": self.watchdog.limit_ms})
        self.bus.emit(ev.INACTIVITY, self.session_timer.reading())

    def _enter_transition(self) -> None:
        s = self.session
        self._stop_all_timers()
        self._current = None
        report = analyze_weaknesses(s.metrics, self.timing.slow_threshold_multiplier)
        s.training_queue = list(report.queue)
        s.initial_weakness_count = len(report.queue)
        s.avg_diagnosis_ms = report.avg_response_ms
        xtrace(
            "weakness_analysis",
            {
                "avg_ms": round(report.avg_response_ms),
                "threshold_ms": round(report.slow_threshold_ms),
                "weaknesses": len(report.queue),
            },
        )
        if not s.training_queue:
            self._enter_victory()
            return
        s.adaptive_phase = AdaptivePhase.TRANSITION
        self._emit_phase()
        self.bus.emit(
            ev.TRANSITION_READY,
            ev.TransitionReady(
                weakness_count=len(report.queue),
                avg_response_ms=report.avg_response_ms,
                slow_threshold_ms=report.slow_threshold_ms,
                queue=tuple(report.queue),
            ),
        )

    def _enter_victory(self) -> None:
        s = self.session
        self._stop_all_timers()
        self._current = None
        s.adaptive_phase = AdaptivePhase.VICTORY
        stats = ev.VictoryStats(
            initial_weaknesses=s.initial_weakness_count,
            training_rounds=s.training_rounds,
            hints_used=self.hint.hints_used,
        )
        xtrace("victory", {"initial": stats.initial_weaknesses, "rounds": stats.training_rounds, "hints": stats.hints_used})
        self._emit_phase()
        self.bus.emit(ev.VICTORY, stats)

    def _track_round(self, op: Operation) -> None:
        if op.pair in self._round_seen:
            self.session.training_rounds += 1
            self._round_seen = {op.pair}
        else:
            self._round_seen.add(op.pair)

    def _show_hint(self, op: Operation) -> None:
        self.grid.reveal_answer(op, op.answer)
        xtrace("hint_shown", {"op": str(op), "hints_used": self.hint.hints_used})
        self.bus.emit(ev.HINT_SHOWN, ev.HintEvent(operation=op, value=op.answer, hints_used=self.hint.hints_used))

    def _hide_hint(self, op: Operation) -> None:
        self.grid.hide_answer(op)
        self.bus.emit(ev.HINT_HIDDEN, ev.HintEvent(operation=op, value=op.answer, hints_used=self.hint.hints_used))

    def _stop_all_timers(self) -> None:
        self.session_timer.stop()
        self.op_countdown.stop()
        self.watchdog.stop()
        self.hint.stop()

    def _emit_phase(self) -> None:
        s = self.session
        self.bus.emit(
            ev.PHASE_CHANGED,
            ev.PhaseChanged(
                phase=s.phase.value,
                adaptive_phase=s.adaptive_phase.value if s.adaptive_phase else None,
                mode=s.mode.value if s.mode else None,
            ),
        )

    def _emit_stats(self) -> None:
        s = self.session
        remaining = len(s.training_queue) if s.adaptive_phase is AdaptivePhase.TRAINING else None
        self.bus.emit(
            ev.STATS_UPDATED,
            ev.StatsUpdated(
                correct=s.correct_count,
                wrong=s.wrong_count,
                remaining_weaknesses=remaining,
                progress=self.grid.progress(),
            ),
        )

    def _emit_tick(self, reading: TimerReading) -> None:
        self.bus.emit(ev.TIMER_TICK, ev.TimerTick(reading=reading))

    def _safe(self, what: str, fn: Callable[..., Any], *args: Any) -> Any:
        """Call a collaborator; its failures are traced, never raised."""
        try:
            return fn(*args)
        except Exception as e:
            xtrace("collaborator_error", {"call": what, "error": repr(e)})
            return None


def build_manager(
    cfg: Mapping[str, Any],
    *,
    clock: Optional[Clock] = None,
    telemetry: Optional[TelemetryCollaborator] = None,
) -> SessionManager:
    """Wire a manager from a validated config dict."""
    session = cfg.get("session", {})
    grid = OperationGrid(int(session.get("factor_max", 15)), make_rng(session.get("seed")))
    return SessionManager(
        grid,
        telemetry if telemetry is not None else TelemetryStore(),
        timing=timing_from_config(dict(cfg)),
        scheduler=Scheduler(clock or SystemClock()),
    )
