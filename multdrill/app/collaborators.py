from __future__ import annotations

"""Contracts the session machine relies on.

The grid and the telemetry store are swappable; anything satisfying these
protocols can be handed to :class:`~multdrill.app.session_manager.SessionManager`.
"""

from typing import Any, Dict, Iterable, Optional, Protocol, Tuple

from ..drills.operation import Operation


class GridCollaborator(Protocol):
    def initialize(self, tables: Iterable[int]) -> None: ...

    def next_operation(self) -> Optional[Operation]: ...

    def mark_correct(self, op: Operation) -> None: ...

    def mark_wrong(self, op: Operation) -> None: ...

    def mark_mastered(self, op: Operation) -> None: ...

    def filter_for(self, queue: Iterable[Tuple[int, int]]) -> None: ...

    def is_complete(self) -> bool: ...

    def reveal_answer(self, op: Operation, value: int) -> None: ...

    def hide_answer(self, op: Operation) -> None: ...

    def progress(self) -> Tuple[int, int]: ...


class TelemetryCollaborator(Protocol):
    def start_session(self, nickname: str) -> None: ...

    def record_attempt(
        self,
        row: int,
        col: int,
        user_input: Optional[int],
        is_correct: bool,
        response_time_ms: int,
        mode: str,
    ) -> None: ...

    def get_session_stats(self) -> Dict[str, Any]: ...

    def reset_session(self) -> None: ...
