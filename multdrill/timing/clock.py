from __future__ import annotations

"""Clock sources.

Every duration in the engine is computed from a single ``Clock``. The real
clock reads ``time.monotonic``; tests swap in ``FakeClock`` and move time
forward explicitly.
"""

import time


class Clock:
    """Monotonic millisecond time provider."""

    def now_ms(self) -> int:
        raise NotImplementedError


class SystemClock(Clock):
    def now_ms(self) -> int:  # pragma: no cover - trivial wrapper
        return int(time.monotonic() * 1000)


class FakeClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start_ms: int = 0) -> None:
        self._now = int(start_ms)

    def now_ms(self) -> int:
        return self._now

    def advance(self, ms: int) -> None:
        if ms < 0:
            raise ValueError("Cannot advance clock backwards")
        self._now += int(ms)

    def set(self, ms: int) -> None:
        if ms < self._now:
            raise ValueError("Cannot move clock backwards")
        self._now = int(ms)
