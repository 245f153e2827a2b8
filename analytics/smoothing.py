from __future__ import annotations

"""Smoothing utilities (EWMA over attempt order)."""

import pandas as pd


def ewma_by_attempt(
    df: pd.DataFrame,
    value_col: str,
    span: int,
    group_cols: list[str] | None = None,
) -> pd.DataFrame:
    """Apply EWMA smoothing over ``attempt_idx``, optionally per group.

    Returns a copy of df sorted by attempt_idx with a new column
    f"{value_col}_smooth".
    """
    g = df.sort_values("attempt_idx").copy()
    values = g[value_col].astype("float64")
    if group_cols:
        smooth = values.groupby([g[c] for c in group_cols], observed=True).transform(
            lambda s: s.ewm(span=span).mean()
        )
    else:
        smooth = values.ewm(span=span).mean()
    g[f"{value_col}_smooth"] = smooth.astype("float32").values
    return g
