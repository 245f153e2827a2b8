from .schema import CSV_COLUMNS, DTYPES, GAME_MODES, AttemptRow
from .store import (
    TelemetryRowError,
    TelemetryStore,
    export_ndjson,
    load_csv,
    records,
    rows_to_frame,
    stats_from_frame,
)

__all__ = [
    "CSV_COLUMNS",
    "DTYPES",
    "GAME_MODES",
    "AttemptRow",
    "TelemetryRowError",
    "TelemetryStore",
    "export_ndjson",
    "load_csv",
    "records",
    "rows_to_frame",
    "stats_from_frame",
]
