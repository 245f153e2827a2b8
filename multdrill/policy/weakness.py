from __future__ import annotations

"""Weakness analysis: diagnosis metrics in, training queue out."""

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from ..drills.operation import AttemptMetric

SLOW_THRESHOLD_MULTIPLIER = 1.2


@dataclass(frozen=True)
class WeaknessReport:
    avg_response_ms: float
    slow_threshold_ms: float
    queue: List[Tuple[int, int]] = field(default_factory=list)


def analyze_weaknesses(
    metrics: Sequence[AttemptMetric],
    multiplier: float = SLOW_THRESHOLD_MULTIPLIER,
) -> WeaknessReport:
    """Flag every pair answered wrong, timed out, or slower than ``avg * multiplier``.

    The threshold is relative to the learner's own mean. The queue keeps the
    order of first occurrence and holds each pair once. With no metrics the
    mean is 0 and the queue is empty.
    """
    if metrics:
        avg = sum(m.response_time_ms for m in metrics) / len(metrics)
    else:
        avg = 0.0
    threshold = avg * multiplier

    queue: List[Tuple[int, int]] = []
    seen = set()
    for m in metrics:
        is_slow = m.response_time_ms > threshold
        if (not m.is_correct or is_slow) and m.pair not in seen:
            seen.add(m.pair)
            queue.append(m.pair)
    return WeaknessReport(avg_response_ms=avg, slow_threshold_ms=threshold, queue=queue)
