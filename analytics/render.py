from __future__ import annotations

"""Render the standard chart set for an attempt log into a directory."""

from pathlib import Path
from typing import List, Optional

import pandas as pd

from .config import AnalyticsConfig
from .metrics import table_summary
from .plots import plot_heatmap, plot_response_times, plot_table_accuracy
from .prepare import prepare
from .smoothing import ewma_by_attempt


def render_all(df: pd.DataFrame, outdir: Path, cfg: Optional[AnalyticsConfig] = None) -> List[Path]:
    """Write trend, accuracy and heatmap PNGs plus a per-table CSV snapshot.

    Returns the files written; an empty log writes nothing.
    """
    cfg = cfg or AnalyticsConfig()
    if df.empty:
        return []
    if "attempt_idx" not in df.columns:
        df = prepare(df)
    df = ewma_by_attempt(df, value_col="response_time", span=cfg.smoothing_span)

    outdir = Path(outdir)
    outdir.mkdir(exist_ok=True, parents=True)
    written: List[Path] = []

    trend = outdir / "response_time_trend.png"
    if plot_response_times(df, save_path=trend, dpi=cfg.dpi):
        written.append(trend)
    accuracy = outdir / "table_accuracy.png"
    if plot_table_accuracy(df, save_path=accuracy, dpi=cfg.dpi):
        written.append(accuracy)
    heatmap = outdir / "cell_heatmap.png"
    if plot_heatmap(df, min_attempts=cfg.min_attempts, save_path=heatmap, dpi=cfg.dpi):
        written.append(heatmap)

    snap = outdir / "table_summary.csv"
    table_summary(df).round({"accuracy": 3, "rt_mean_ms": 1}).to_csv(snap)
    written.append(snap)
    return written
