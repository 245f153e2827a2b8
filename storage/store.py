from __future__ import annotations

"""In-memory attempt log backed by pandas, with CSV/NDJSON export.

Unit of data: one row per graded attempt (including timeouts). The log keeps
two views: the current session, cleared by ``reset_session``, and the
history of every row recorded since the store was created.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pandas as pd
from pydantic import ValidationError

from .schema import CSV_COLUMNS, DTYPES, AttemptRow

CSV_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


class TelemetryRowError(ValueError):
    """An attempt row failed schema validation."""


def _empty_df() -> pd.DataFrame:
    return pd.DataFrame({k: pd.Series(dtype=v) for k, v in DTYPES.items()})


def _fix_dtypes(df: pd.DataFrame) -> pd.DataFrame:
    for col, dt in DTYPES.items():
        if col not in df.columns:
            df[col] = pd.NA
        if col == "timestamp":
            df[col] = pd.to_datetime(df[col], utc=True)
        else:
            df[col] = df[col].astype(dt)
    return df[CSV_COLUMNS]


def _round_half_up(x: float) -> int:
    return int(x + 0.5)


def rows_to_frame(rows: List[AttemptRow]) -> pd.DataFrame:
    """Validated rows to a DataFrame with the log's dtypes."""
    if not rows:
        return _empty_df()
    df = pd.DataFrame([r.model_dump() for r in rows])
    return _fix_dtypes(df)


class TelemetryStore:
    def __init__(self, now: Optional[Callable[[], datetime]] = None) -> None:
        self._now = now or (lambda: datetime.now(timezone.utc))
        self.nickname: Optional[str] = None
        self.session_rows: List[AttemptRow] = []
        self.history: List[AttemptRow] = []
        self._exported = 0

    def start_session(self, nickname: str) -> None:
        self.nickname = nickname
        self.session_rows = []

    def record_attempt(
        self,
        row: int,
        col: int,
        user_input: Optional[int],
        is_correct: bool,
        response_time_ms: int,
        mode: str,
    ) -> AttemptRow:
        try:
            rec = AttemptRow(
                timestamp=self._now(),
                nickname=self.nickname or "",
                game_mode=mode,
                factor_a=row,
                factor_b=col,
                user_input=user_input,
                correct_result=int(row) * int(col),
                is_correct=is_correct,
                response_time=int(response_time_ms),
            )
        except ValidationError as e:
            raise TelemetryRowError(str(e)) from e
        self.session_rows.append(rec)
        self.history.append(rec)
        return rec

    def get_session_stats(self) -> Dict[str, int]:
        """``{total, correct, avgTime, accuracy}`` for the current session.

        ``avgTime`` is the rounded mean response time in ms, ``accuracy`` the
        rounded percentage of correct rows; both are 0 for an empty session.
        """
        total = len(self.session_rows)
        if total == 0:
            return {"total": 0, "correct": 0, "avgTime": 0, "accuracy": 0}
        correct = sum(1 for r in self.session_rows if r.is_correct)
        avg = sum(r.response_time for r in self.session_rows) / total
        return {
            "total": total,
            "correct": correct,
            "avgTime": _round_half_up(avg),
            "accuracy": _round_half_up(correct / total * 100),
        }

    def reset_session(self) -> None:
        self.session_rows = []

    def session_frame(self) -> pd.DataFrame:
        return rows_to_frame(self.session_rows)

    def export_all(self) -> pd.DataFrame:
        return rows_to_frame(self.history)

    def to_csv(self, out_path: Path, *, append: bool = True) -> Path:
        """Write history rows as CSV.

        With ``append`` (the default) only rows not yet exported are added to
        an existing file; otherwise the file is rewritten with the full history.
        """
        out_path = Path(out_path)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        exists = out_path.exists() and out_path.stat().st_size > 0
        if append and exists:
            df = rows_to_frame(self.history[self._exported:])
            df.to_csv(out_path, mode="a", header=False, index=False, date_format=CSV_DATE_FORMAT)
        else:
            self.export_all().to_csv(out_path, index=False, date_format=CSV_DATE_FORMAT)
        self._exported = len(self.history)
        return out_path


def load_csv(path: Path) -> pd.DataFrame:
    """Read an exported attempt log back with consistent dtypes."""
    f = Path(path)
    if not f.exists():
        return _empty_df()
    df = pd.read_csv(f)
    missing = [c for c in CSV_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"{f}: missing columns {missing}")
    return _fix_dtypes(df)


def export_ndjson(df: pd.DataFrame, out_path: Path) -> None:
    """Export a DataFrame to line-delimited JSON (NDJSON) for quick inspection."""
    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    df.to_json(out_path, orient="records", lines=True, date_format="iso")


def records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Rows as plain dicts with ``None`` for missing values."""
    return [
        {k: (None if pd.isna(v) else v) for k, v in row.items()}
        for row in df.astype(object).to_dict(orient="records")
    ]


def stats_from_frame(df: pd.DataFrame) -> Dict[str, int]:
    """Same shape as ``TelemetryStore.get_session_stats`` for a loaded log."""
    total = int(len(df))
    if total == 0:
        return {"total": 0, "correct": 0, "avgTime": 0, "accuracy": 0}
    correct = int(df["is_correct"].astype(bool).sum())
    avg = float(df["response_time"].astype("float64").mean())
    return {
        "total": total,
        "correct": correct,
        "avgTime": _round_half_up(avg),
        "accuracy": _round_half_up(correct / total * 100),
    }
