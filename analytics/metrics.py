from __future__ import annotations

"""Per-table and per-cell aggregates over an attempt log."""

import numpy as np
import pandas as pd


def table_summary(df: pd.DataFrame) -> pd.DataFrame:
    """One row per table: ``attempts``, ``accuracy`` (0..1), ``rt_mean_ms``."""
    if df.empty:
        return pd.DataFrame(columns=["attempts", "accuracy", "rt_mean_ms"])
    g = df.groupby("factor_a", observed=True)
    out = pd.DataFrame(
        {
            "attempts": g.size(),
            "accuracy": g["is_correct"].mean().astype("float32"),
            "rt_mean_ms": g["response_time"].mean().astype("float32"),
        }
    )
    out.index.name = "table"
    return out.sort_index()


def cell_matrix(df: pd.DataFrame, value_col: str = "response_time", min_attempts: int = 1) -> pd.DataFrame:
    """Mean ``value_col`` pivoted as factor_a (rows) x factor_b (columns).

    Cells with fewer than ``min_attempts`` attempts are NaN.
    """
    if df.empty:
        return pd.DataFrame()
    values = df[value_col].astype("float64")
    g = values.groupby([df["factor_a"].astype(int), df["factor_b"].astype(int)])
    mean = g.mean().where(g.size() >= min_attempts, other=np.nan)
    pivot = mean.unstack()
    pivot.index.name = "factor_a"
    pivot.columns.name = "factor_b"
    return pivot.sort_index().sort_index(axis=1)
