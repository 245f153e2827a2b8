from __future__ import annotations

"""Operation feed: "what's next" over a grid collaborator."""

import itertools
from typing import Optional

from .operation import Operation


class OperationFeed:
    def __init__(self, grid) -> None:
        self.grid = grid
        self._serials = itertools.count(1)

    def next(self) -> Optional[Operation]:
        """Pull the next item, stamped with a fresh serial; ``None`` when exhausted."""
        op = self.grid.next_operation()
        if op is None:
            return None
        return Operation(row=op.row, col=op.col, serial=next(self._serials))
