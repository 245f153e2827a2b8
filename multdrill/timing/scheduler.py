from __future__ import annotations

"""Cooperative scheduled callbacks.

One thread pumps :meth:`Scheduler.run_due` (a Tk ``after`` loop, the
terminal runner, or a test stepping a ``FakeClock``). Callbacks run one at a
time, in due order, on that thread. Each scheduled callback returns a
``TimerHandle`` whose ``cancel`` is idempotent.
"""

import heapq
import itertools
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from .clock import Clock, FakeClock


@dataclass(eq=False)
class TimerHandle:
    due_ms: int
    callback: Callable[[], None]
    interval_ms: Optional[int] = None
    cancelled: bool = field(default=False)

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return not self.cancelled


class Scheduler:
    def __init__(self, clock: Clock) -> None:
        self.clock = clock
        self._heap: List[Tuple[int, int, TimerHandle]] = []
        self._seq = itertools.count()

    def _push(self, handle: TimerHandle) -> None:
        heapq.heappush(self._heap, (handle.due_ms, next(self._seq), handle))

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once, ``delay_ms`` from now."""
        handle = TimerHandle(due_ms=self.clock.now_ms() + max(0, int(delay_ms)), callback=callback)
        self._push(handle)
        return handle

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` every ``interval_ms`` until the handle is cancelled."""
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        handle = TimerHandle(
            due_ms=self.clock.now_ms() + int(interval_ms),
            callback=callback,
            interval_ms=int(interval_ms),
        )
        self._push(handle)
        return handle

    def next_due_ms(self) -> Optional[int]:
        self._drop_cancelled()
        return self._heap[0][0] if self._heap else None

    def pending(self) -> int:
        return sum(1 for _due, _seq, h in self._heap if h.active)

    def cancel_all(self) -> None:
        for _due, _seq, h in self._heap:
            h.cancel()
        self._heap.clear()

    def _drop_cancelled(self) -> None:
        while self._heap and self._heap[0][2].cancelled:
            heapq.heappop(self._heap)

    def run_due(self) -> int:
        """Run every callback due at the current clock reading.

        Returns how many callbacks ran. Repeating handles are re-queued one
        interval after their previous due time, so a late pump catches up.
        """
        now = self.clock.now_ms()
        ran = 0
        while True:
            self._drop_cancelled()
            if not self._heap or self._heap[0][0] > now:
                return ran
            _due, _seq, handle = heapq.heappop(self._heap)
            if handle.interval_ms is not None:
                handle.due_ms += handle.interval_ms
                self._push(handle)
            else:
                handle.cancelled = True
            handle.callback()
            ran += 1

    def advance(self, ms: int) -> int:
        """Move a ``FakeClock`` forward, firing callbacks at their exact due times."""
        if not isinstance(self.clock, FakeClock):
            raise TypeError("advance() needs a FakeClock; pump run_due() for real time")
        target = self.clock.now_ms() + int(ms)
        ran = 0
        while True:
            due = self.next_due_ms()
            if due is None or due > target:
                break
            self.clock.set(max(due, self.clock.now_ms()))
            ran += self.run_due()
        self.clock.set(target)
        ran += self.run_due()
        return ran
