from __future__ import annotations

"""Typed pub/sub between the session machine and its observers."""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..drills.operation import AttemptMetric, Operation
from ..timing.timers import TimerReading
from .explain import trace as xtrace

PHASE_CHANGED = "phase_changed"
OPERATION_LOADED = "operation_loaded"
ATTEMPT_RECORDED = "attempt_recorded"
STATS_UPDATED = "stats_updated"
TIMER_TICK = "timer_tick"
HINT_SHOWN = "hint_shown"
HINT_HIDDEN = "hint_hidden"
INACTIVITY = "inactivity"
TRANSITION_READY = "transition_ready"
VICTORY = "victory"
SESSION_ENDED = "session_ended"


@dataclass(frozen=True)
class PhaseChanged:
    phase: str
    adaptive_phase: Optional[str] = None
    mode: Optional[str] = None


@dataclass(frozen=True)
class OperationLoaded:
    operation: Operation
    issued: int


@dataclass(frozen=True)
class AttemptRecorded:
    metric: AttemptMetric


@dataclass(frozen=True)
class StatsUpdated:
    correct: int
    wrong: int
    remaining_weaknesses: Optional[int] = None
    progress: Tuple[int, int] = (0, 0)


@dataclass(frozen=True)
class TimerTick:
    reading: TimerReading


@dataclass(frozen=True)
class HintEvent:
    operation: Operation
    value: int
    hints_used: int


@dataclass(frozen=True)
class TransitionReady:
    weakness_count: int
    avg_response_ms: float
    slow_threshold_ms: float
    queue: Tuple[Tuple[int, int], ...] = ()


@dataclass(frozen=True)
class VictoryStats:
    initial_weaknesses: int
    training_rounds: int
    hints_used: int


@dataclass(frozen=True)
class SessionSummary:
    mode: str
    total: int
    correct: int
    avg_time_ms: int
    accuracy: int
    correct_count: int
    wrong_count: int
    elapsed_ms: int
    extras: Dict[str, Any] = field(default_factory=dict)


class EventBus:
    def __init__(self) -> None:
        self._subs: Dict[str, List[Callable[[Any], None]]] = {}

    def subscribe(self, event: str, handler: Callable[[Any], None]) -> None:
        self._subs.setdefault(event, []).append(handler)

    def unsubscribe(self, event: str, handler: Callable[[Any], None]) -> None:
        handlers = self._subs.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, payload: Any = None) -> None:
        for h in list(self._subs.get(event, [])):
            try:
                h(payload)
            except Exception as e:
                # Observers never break the session loop
                xtrace("observer_error", {"event": event, "error": repr(e)})
