from __future__ import annotations

"""Matplotlib plots for response-time trend, table accuracy and cell heatmap."""

import os
from typing import Optional

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from .metrics import cell_matrix, table_summary


def plot_response_times(
    df: pd.DataFrame,
    *,
    table: Optional[int] = None,
    save_path: Optional[str | os.PathLike[str]] = None,
    dpi: int = 150,
) -> bool:
    """Scatter of response time per attempt with its EWMA line if present.

    Wrong answers and timeouts are drawn as crosses. Returns False when there
    is nothing to plot.
    """
    g = df.copy()
    if table is not None:
        g = g[g["factor_a"].astype(int) == int(table)]
    if g.empty:
        return False
    g = g.sort_values("attempt_idx")
    ok = g["is_correct"].astype(bool).to_numpy()
    x = g["attempt_idx"].to_numpy(dtype="float64")
    y = g["response_time"].astype("float64").to_numpy()
    plt.figure()
    plt.plot(x[ok], y[ok], marker="o", linestyle="", label="correct")
    plt.plot(x[~ok], y[~ok], marker="x", linestyle="", label="wrong")
    if "response_time_smooth" in g.columns:
        plt.plot(x, g["response_time_smooth"].to_numpy(dtype="float64"), linewidth=2, label="EWMA")
    plt.xlabel("Attempt")
    plt.ylabel("Response time (ms)")
    plt.title("Response time" + (f": table {table}" if table is not None else ""))
    plt.legend()
    if save_path:
        plt.savefig(save_path, bbox_inches="tight", dpi=dpi)
    plt.close()
    return True


def plot_table_accuracy(
    df: pd.DataFrame,
    *,
    save_path: Optional[str | os.PathLike[str]] = None,
    dpi: int = 150,
) -> bool:
    summary = table_summary(df)
    if summary.empty:
        return False
    plt.figure()
    x = np.arange(len(summary))
    plt.bar(x, summary["accuracy"].to_numpy() * 100.0)
    plt.xticks(ticks=x, labels=summary.index.astype(str))
    plt.ylim(0, 100)
    plt.xlabel("Table")
    plt.ylabel("Accuracy (%)")
    plt.title("Accuracy per table")
    if save_path:
        plt.savefig(save_path, bbox_inches="tight", dpi=dpi)
    plt.close()
    return True


def plot_heatmap(
    df: pd.DataFrame,
    *,
    value_col: str = "response_time",
    min_attempts: int = 1,
    save_path: Optional[str | os.PathLike[str]] = None,
    dpi: int = 150,
) -> bool:
    pivot = cell_matrix(df, value_col=value_col, min_attempts=min_attempts)
    if pivot.empty:
        return False
    M = np.ma.masked_invalid(pivot.to_numpy(dtype="float64"))
    plt.figure()
    im = plt.imshow(M, aspect="auto", origin="lower")
    plt.colorbar(im, label=value_col)
    plt.xticks(ticks=np.arange(pivot.shape[1]), labels=pivot.columns.astype(str))
    plt.yticks(ticks=np.arange(pivot.shape[0]), labels=pivot.index.astype(str))
    plt.title(f"Heatmap ({value_col})")
    plt.xlabel("Second factor")
    plt.ylabel("Table")
    if save_path:
        plt.savefig(save_path, bbox_inches="tight", dpi=dpi)
    plt.close()
    return True
