from __future__ import annotations

"""In-process operation grid.

Tracks which ``(row, col)`` pairs of the selected tables remain, hands them
out in shuffled order and keeps a per-cell state a front end can render.
"""

import random
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .operation import Operation

Pair = Tuple[int, int]


class CellState(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    CORRECT = "correct"
    WRONG = "wrong"
    MASTERED = "mastered"
    HIDDEN = "hidden"


class OperationGrid:
    """Selected tables x ``1..factor_max``.

    During training the grid is restricted to the weakness queue: a wrong
    answer leaves the pair pending and only ``mark_mastered`` retires it.
    """

    def __init__(self, factor_max: int = 15, rng: Optional[random.Random] = None) -> None:
        if factor_max < 1:
            raise ValueError("factor_max must be >= 1")
        self.factor_max = int(factor_max)
        self.rng = rng or random.Random()
        self.cells: Dict[Pair, CellState] = {}
        self.revealed: Dict[Pair, int] = {}
        self.training = False
        self._pending: Set[Pair] = set()
        self._bag: List[Pair] = []
        self._last: Optional[Pair] = None
        self._active: Optional[Pair] = None

    def initialize(self, tables: Iterable[int]) -> None:
        self.cells = {}
        for row in sorted(set(int(t) for t in tables)):
            for col in range(1, self.factor_max + 1):
                self.cells[(row, col)] = CellState.PENDING
        self.revealed = {}
        self.training = False
        self._pending = set(self.cells)
        self._bag = []
        self._last = None
        self._active = None

    @property
    def pending(self) -> Set[Pair]:
        return set(self._pending)

    def _refill_bag(self) -> None:
        self._bag = sorted(self._pending)
        self.rng.shuffle(self._bag)

    def next_operation(self) -> Optional[Operation]:
        if not self._pending:
            return None
        self._bag = [p for p in self._bag if p in self._pending]
        if not self._bag:
            self._refill_bag()
        # Avoid repeating the pair just asked when there is an alternative.
        if self._last is not None and len(self._bag) > 1 and self._bag[0] == self._last:
            for i in range(1, len(self._bag)):
                if self._bag[i] != self._last:
                    self._bag[0], self._bag[i] = self._bag[i], self._bag[0]
                    break
        pair = self._bag.pop(0)
        self._last = pair
        self.set_active(pair)
        return Operation(row=pair[0], col=pair[1])

    def set_active(self, op: Operation | Pair) -> None:
        pair = _pair(op)
        if self._active is not None and self.cells.get(self._active) is CellState.ACTIVE:
            self.cells[self._active] = CellState.PENDING
        self._active = pair
        self.cells[pair] = CellState.ACTIVE

    def mark_correct(self, op: Operation | Pair) -> None:
        pair = _pair(op)
        self.cells[pair] = CellState.CORRECT
        self._pending.discard(pair)
        self._release(pair)

    def mark_wrong(self, op: Operation | Pair) -> None:
        pair = _pair(op)
        self.cells[pair] = CellState.WRONG
        if not self.training:
            self._pending.discard(pair)
        self._release(pair)

    def mark_mastered(self, op: Operation | Pair) -> None:
        pair = _pair(op)
        self.cells[pair] = CellState.MASTERED
        self._pending.discard(pair)
        self._release(pair)

    def _release(self, pair: Pair) -> None:
        if self._active == pair:
            self._active = None

    def filter_for(self, queue: Iterable[Pair | Operation]) -> None:
        """Restrict future ``next_operation`` results to ``queue``."""
        keep = {_pair(p) for p in queue}
        for pair in self.cells:
            self.cells[pair] = CellState.PENDING if pair in keep else CellState.HIDDEN
        self.training = True
        self._pending = keep & set(self.cells)
        self._bag = []
        self._last = None
        self._active = None

    def is_complete(self) -> bool:
        return not self._pending

    def reveal_answer(self, op: Operation | Pair, value: int) -> None:
        self.revealed[_pair(op)] = int(value)

    def hide_answer(self, op: Operation | Pair) -> None:
        self.revealed.pop(_pair(op), None)

    def progress(self) -> Tuple[int, int]:
        """(resolved, total) over the cells in play."""
        in_play = [p for p, s in self.cells.items() if s is not CellState.HIDDEN]
        done = sum(1 for p in in_play if p not in self._pending)
        return done, len(in_play)


def _pair(op: Operation | Pair) -> Pair:
    if isinstance(op, Operation):
        return op.pair
    return (int(op[0]), int(op[1]))
