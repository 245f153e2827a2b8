from __future__ import annotations

"""Schema constants and Pydantic model for attempt-log rows."""

from datetime import datetime, timezone
from typing import Literal, Optional

import pandas as pd
from pandas.api.types import CategoricalDtype
from pydantic import BaseModel, Field, field_validator, model_validator

# --- Constants ---

GAME_MODES = {"timer", "free", "adaptive"}

CSV_COLUMNS = [
    "timestamp",
    "nickname",
    "game_mode",
    "factor_a",
    "factor_b",
    "user_input",
    "correct_result",
    "is_correct",
    "response_time",
]

DTYPES = {
    # timezone-aware UTC timestamps
    "timestamp": pd.DatetimeTZDtype(tz="UTC"),
    "nickname": "string",
    "game_mode": CategoricalDtype(categories=sorted(GAME_MODES), ordered=False),
    "factor_a": "UInt16",
    "factor_b": "UInt16",
    # timeouts carry no input
    "user_input": "Int64",
    "correct_result": "UInt32",
    "is_correct": "boolean",
    "response_time": "UInt32",
}


# --- Pydantic model ---

class AttemptRow(BaseModel):
    timestamp: datetime
    nickname: str = Field(min_length=1)
    game_mode: Literal["timer", "free", "adaptive"]
    factor_a: int = Field(ge=1, le=65535)
    factor_b: int = Field(ge=1, le=65535)
    user_input: Optional[int] = Field(default=None, ge=-(2**63), le=2**63 - 1)
    correct_result: int = Field(ge=1)
    is_correct: bool
    response_time: int = Field(ge=0, le=4294967295)

    @field_validator("timestamp")
    @classmethod
    def _ensure_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @model_validator(mode="after")
    def _consistent(self) -> "AttemptRow":
        if self.correct_result != self.factor_a * self.factor_b:
            raise ValueError("correct_result must equal factor_a * factor_b")
        if self.is_correct and self.user_input != self.correct_result:
            raise ValueError("is_correct set but user_input differs from correct_result")
        return self
