from __future__ import annotations

"""Load an attempt log and add the columns charts work from."""

from pathlib import Path

import pandas as pd

from storage.store import load_csv


def prepare(df: pd.DataFrame) -> pd.DataFrame:
    """Sort attempts chronologically and add convenience columns.

    - ``attempt_idx``: stable 0-based attempt order
    - ``table``: the multiplication table (``factor_a``)
    - ``correct``: ``is_correct`` as float 0/1 for averaging
    """
    out = df.sort_values("timestamp", kind="stable").reset_index(drop=True)
    out["attempt_idx"] = range(len(out))
    out["table"] = out["factor_a"].astype("Int64")
    out["correct"] = out["is_correct"].astype("float32")
    return out


def load_and_prepare(csv_path: Path) -> pd.DataFrame:
    return prepare(load_csv(csv_path))
