from .clock import Clock, FakeClock, SystemClock
from .scheduler import Scheduler, TimerHandle
from .timers import (
    HelpState,
    HintCycle,
    InactivityWatchdog,
    OperationCountdown,
    SessionTimer,
    TimerReading,
    format_clock,
)

__all__ = [
    "Clock",
    "FakeClock",
    "SystemClock",
    "Scheduler",
    "TimerHandle",
    "HelpState",
    "HintCycle",
    "InactivityWatchdog",
    "OperationCountdown",
    "SessionTimer",
    "TimerReading",
    "format_clock",
]
