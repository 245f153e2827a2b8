from .config import AnalyticsConfig
from .metrics import cell_matrix, table_summary
from .prepare import load_and_prepare, prepare
from .smoothing import ewma_by_attempt
from .plots import plot_heatmap, plot_response_times, plot_table_accuracy
from .render import render_all

__all__ = [
    "AnalyticsConfig",
    "cell_matrix",
    "table_summary",
    "load_and_prepare",
    "prepare",
    "ewma_by_attempt",
    "plot_heatmap",
    "plot_response_times",
    "plot_table_accuracy",
    "render_all",
]
