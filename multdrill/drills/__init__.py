from .operation import AttemptMetric, Operation, evaluate, parse_answer, timeout_metric
from .grid import CellState, OperationGrid
from .feed import OperationFeed

__all__ = [
    "AttemptMetric",
    "Operation",
    "evaluate",
    "parse_answer",
    "timeout_metric",
    "CellState",
    "OperationGrid",
    "OperationFeed",
]
