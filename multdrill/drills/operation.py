from __future__ import annotations

"""Drill items, attempt metrics and the attempt evaluator."""

import re
from dataclasses import dataclass
from typing import Optional

_INT_RE = re.compile(r"^[+-]?\d+$")

# Answers are logged in a 64-bit integer column.
ANSWER_MIN = -(2**63)
ANSWER_MAX = 2**63 - 1


@dataclass(frozen=True)
class Operation:
    """A single ``row x col`` drill item.

    ``serial`` is assigned by the feed and distinguishes two issues of the
    same pair, so stale timeouts and submissions can be recognised.
    """

    row: int
    col: int
    serial: int = 0

    @property
    def answer(self) -> int:
        return self.row * self.col

    @property
    def pair(self) -> tuple[int, int]:
        return (self.row, self.col)

    def __str__(self) -> str:
        return f"{self.row} x {self.col}"


@dataclass(frozen=True)
class AttemptMetric:
    row: int
    col: int
    is_correct: bool
    response_time_ms: int
    is_timeout: bool = False
    user_input: Optional[int] = None

    @property
    def pair(self) -> tuple[int, int]:
        return (self.row, self.col)


def parse_answer(raw: object) -> Optional[int]:
    """Parse learner input.

    ``None`` when it is not an integer or falls outside the range the
    attempt log can store.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        value = raw
    else:
        text = str(raw).strip()
        if not _INT_RE.match(text):
            return None
        value = int(text)
    if not ANSWER_MIN <= value <= ANSWER_MAX:
        return None
    return value


def evaluate(operation: Operation, value: int, elapsed_ms: int) -> AttemptMetric:
    """Grade ``value`` against ``row * col``."""
    return AttemptMetric(
        row=operation.row,
        col=operation.col,
        is_correct=value == operation.answer,
        response_time_ms=max(0, int(elapsed_ms)),
        user_input=value,
    )


def timeout_metric(operation: Operation, limit_ms: int) -> AttemptMetric:
    return AttemptMetric(
        row=operation.row,
        col=operation.col,
        is_correct=False,
        response_time_ms=int(limit_ms),
        is_timeout=True,
    )
