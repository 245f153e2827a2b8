from __future__ import annotations

"""The four session timers.

All of them sit on one :class:`~multdrill.timing.scheduler.Scheduler` and
therefore on one clock. ``stop`` is idempotent everywhere: phase changes
stop every timer unconditionally.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from .scheduler import Scheduler, TimerHandle


def format_clock(ms: int) -> str:
    """Render milliseconds as ``MM:SS`` (floored to the second)."""
    total_seconds = max(0, int(ms)) // 1000
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes:02d}:{seconds:02d}"


@dataclass(frozen=True)
class TimerReading:
    mode: str
    elapsed_ms: int
    remaining_ms: Optional[int] = None
    warning: bool = False

    @property
    def display(self) -> str:
        return format_clock(self.remaining_ms if self.remaining_ms is not None else self.elapsed_ms)


class SessionTimer:
    """Countdown or stopwatch sampled every ``tick_ms``.

    In countdown mode reaching zero calls ``on_expire`` once and stops the
    timer; callers never have to poll for it.
    """

    COUNTDOWN = "countdown"
    STOPWATCH = "stopwatch"

    def __init__(self, scheduler: Scheduler, tick_ms: int = 100) -> None:
        self.scheduler = scheduler
        self.tick_ms = int(tick_ms)
        self.mode: Optional[str] = None
        self._limit_ms: Optional[int] = None
        self._warning_ms: Optional[int] = None
        self._started_at: Optional[int] = None
        self._frozen_at: Optional[int] = None
        self._handle: Optional[TimerHandle] = None
        self._on_expire: Optional[Callable[[], None]] = None
        self._on_tick: Optional[Callable[[TimerReading], None]] = None

    def start_countdown(
        self,
        limit_ms: int,
        *,
        on_expire: Optional[Callable[[], None]] = None,
        on_tick: Optional[Callable[[TimerReading], None]] = None,
        warning_ms: Optional[int] = None,
    ) -> None:
        if limit_ms <= 0:
            raise ValueError("limit_ms must be positive")
        self._start(self.COUNTDOWN, on_tick)
        self._limit_ms = int(limit_ms)
        self._warning_ms = warning_ms
        self._on_expire = on_expire

    def start_stopwatch(self, *, on_tick: Optional[Callable[[TimerReading], None]] = None) -> None:
        self._start(self.STOPWATCH, on_tick)

    def _start(self, mode: str, on_tick: Optional[Callable[[TimerReading], None]]) -> None:
        self.stop()
        self.mode = mode
        self._limit_ms = None
        self._warning_ms = None
        self._on_expire = None
        self._on_tick = on_tick
        self._started_at = self.scheduler.clock.now_ms()
        self._frozen_at = None
        self._handle = self.scheduler.call_every(self.tick_ms, self._tick)

    @property
    def running(self) -> bool:
        return self._handle is not None

    def elapsed_ms(self) -> int:
        if self._started_at is None:
            return 0
        end = self._frozen_at if self._frozen_at is not None else self.scheduler.clock.now_ms()
        return max(0, end - self._started_at)

    def reading(self) -> TimerReading:
        elapsed = self.elapsed_ms()
        if self.mode == self.COUNTDOWN and self._limit_ms is not None:
            remaining = max(0, self._limit_ms - elapsed)
            warning = self._warning_ms is not None and remaining < self._warning_ms
            return TimerReading(self.COUNTDOWN, elapsed, remaining, warning)
        return TimerReading(self.STOPWATCH, elapsed)

    def _tick(self) -> None:
        reading = self.reading()
        if reading.mode == self.COUNTDOWN and reading.remaining_ms == 0:
            on_expire = self._on_expire
            self.stop()
            if on_expire is not None:
                on_expire()
            return
        if self._on_tick is not None:
            self._on_tick(reading)

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
            self._frozen_at = self.scheduler.clock.now_ms()

    # Inactivity freezes the display where it stood.
    suspend = stop


class OperationCountdown:
    """Per-operation limit used during diagnosis."""

    def __init__(self, scheduler: Scheduler, duration_ms: int = 30000) -> None:
        self.scheduler = scheduler
        self.duration_ms = int(duration_ms)
        self._handle: Optional[TimerHandle] = None

    def arm(self, on_expire: Callable[[], None]) -> None:
        self.stop()

        def fire() -> None:
            self._handle = None
            on_expire()

        self._handle = self.scheduler.call_later(self.duration_ms, fire)

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class InactivityWatchdog:
    """Single-shot idle timer, pushed back by every keystroke."""

    def __init__(self, scheduler: Scheduler, limit_ms: int = 30000) -> None:
        self.scheduler = scheduler
        self.limit_ms = int(limit_ms)
        self.enabled = True
        self._handle: Optional[TimerHandle] = None
        self._on_idle: Optional[Callable[[], None]] = None

    def arm(self, on_idle: Callable[[], None]) -> None:
        if not self.enabled:
            return
        self._cancel()
        self._on_idle = on_idle
        self._handle = self.scheduler.call_later(self.limit_ms, self._fire)

    def poke(self) -> None:
        """Restart the countdown if the watchdog is armed."""
        if self.enabled and self._on_idle is not None:
            self.arm(self._on_idle)

    def _fire(self) -> None:
        on_idle = self._on_idle
        self._handle = None
        self._on_idle = None
        if on_idle is not None:
            on_idle()

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def stop(self) -> None:
        self._cancel()
        self._on_idle = None

    def disable(self) -> None:
        self.stop()
        self.enabled = False

    def enable(self) -> None:
        self.enabled = True


@dataclass
class HelpState:
    """Hint bookkeeping for the operation on screen."""

    help_shown: bool = False
    help_is_visible: bool = False
    next_help_eligible_at: int = 0


class HintCycle:
    """Cyclic answer reveal during training.

    Every ``poll_ms`` the cycle checks whether the learner has spent longer
    than ``threshold_ms`` on the current subject. If so, and no cooldown is
    running, ``on_show`` fires, then ``on_hide`` ``display_ms`` later, then a
    ``cooldown_ms`` pause. Only the first reveal per subject counts towards
    ``hints_used``.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        *,
        poll_ms: int = 500,
        display_ms: int = 2000,
        cooldown_ms: int = 10000,
    ) -> None:
        self.scheduler = scheduler
        self.poll_ms = int(poll_ms)
        self.display_ms = int(display_ms)
        self.cooldown_ms = int(cooldown_ms)
        self.hints_used = 0
        self.state = HelpState()
        self._subject: Any = None
        self._started_at = 0
        self._threshold_ms = 0.0
        self._poll: Optional[TimerHandle] = None
        self._hide: Optional[TimerHandle] = None
        self._on_show: Optional[Callable[[Any], None]] = None
        self._on_hide: Optional[Callable[[Any], None]] = None

    def start(
        self,
        subject: Any,
        threshold_ms: float,
        *,
        on_show: Callable[[Any], None],
        on_hide: Callable[[Any], None],
    ) -> None:
        self.stop()
        self._subject = subject
        self._threshold_ms = float(threshold_ms)
        self._started_at = self.scheduler.clock.now_ms()
        self._on_show = on_show
        self._on_hide = on_hide
        self.state = HelpState()
        self._poll = self.scheduler.call_every(self.poll_ms, self._check)

    @property
    def running(self) -> bool:
        return self._poll is not None

    def reset_count(self) -> None:
        self.hints_used = 0

    def _check(self) -> None:
        if self._subject is None or self.state.help_is_visible:
            return
        now = self.scheduler.clock.now_ms()
        if now - self._started_at > self._threshold_ms and now >= self.state.next_help_eligible_at:
            self._show()

    def _show(self) -> None:
        subject = self._subject
        self.state.help_is_visible = True
        if not self.state.help_shown:
            self.state.help_shown = True
            self.hints_used += 1
        if self._on_show is not None:
            self._on_show(subject)
        self._hide = self.scheduler.call_later(self.display_ms, lambda: self._finish_reveal(subject))

    def _finish_reveal(self, subject: Any) -> None:
        self._hide = None
        if subject is not self._subject:
            return
        if self._on_hide is not None:
            self._on_hide(subject)
        self.state.help_is_visible = False
        self.state.next_help_eligible_at = self.scheduler.clock.now_ms() + self.cooldown_ms

    def stop(self) -> None:
        if self._poll is not None:
            self._poll.cancel()
            self._poll = None
        if self._hide is not None:
            self._hide.cancel()
            self._hide = None
            # A reveal still on screen belongs to the outgoing subject.
            if self.state.help_is_visible and self._on_hide is not None:
                self._on_hide(self._subject)
        self.state.help_is_visible = False
        self._subject = None
