import json
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from storage import (
    CSV_COLUMNS,
    TelemetryRowError,
    TelemetryStore,
    export_ndjson,
    load_csv,
    records,
    stats_from_frame,
)


class _Ticker:
    def __init__(self) -> None:
        self.t = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.t += timedelta(seconds=1)
        return self.t


class TelemetryStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = TelemetryStore(now=_Ticker())
        self.store.start_session("ana")

    def test_session_stats(self) -> None:
        self.assertEqual(self.store.get_session_stats(), {"total": 0, "correct": 0, "avgTime": 0, "accuracy": 0})
        self.store.record_attempt(2, 3, 6, True, 1000, "free")
        self.store.record_attempt(4, 4, 15, False, 1500, "free")
        self.store.record_attempt(5, 5, None, False, 30000, "adaptive")
        stats = self.store.get_session_stats()
        self.assertEqual(stats["total"], 3)
        self.assertEqual(stats["correct"], 1)
        self.assertEqual(stats["avgTime"], 10833)
        self.assertEqual(stats["accuracy"], 33)

    def test_row_fields(self) -> None:
        row = self.store.record_attempt(7, 8, 56, True, 900, "timer")
        self.assertEqual(row.nickname, "ana")
        self.assertEqual(row.correct_result, 56)
        self.assertEqual(row.timestamp.tzinfo, timezone.utc)

    def test_invalid_rows_rejected(self) -> None:
        with self.assertRaises(TelemetryRowError):
            self.store.record_attempt(2, 3, 7, True, 100, "free")
        with self.assertRaises(TelemetryRowError):
            self.store.record_attempt(2, 3, 6, True, 100, "blitz")
        with self.assertRaises(ValueError):
            self.store.record_attempt(2, 3, 6, True, -1, "free")
        with self.assertRaises(TelemetryRowError):
            self.store.record_attempt(2, 3, 10**25, False, 100, "free")
        self.assertEqual(self.store.session_rows, [])

    def test_reset_session_keeps_history(self) -> None:
        self.store.record_attempt(2, 3, 6, True, 1000, "free")
        self.store.reset_session()
        self.assertEqual(self.store.get_session_stats()["total"], 0)
        self.assertEqual(len(self.store.export_all()), 1)
        self.store.reset_session()
        self.assertEqual(len(self.store.history), 1)

    def test_csv_export_appends_new_rows_only(self) -> None:
        self.store.record_attempt(2, 3, 6, True, 1000, "free")
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "log.csv"
            self.store.to_csv(path)
            self.store.to_csv(path)
            self.store.record_attempt(3, 3, None, False, 30000, "adaptive")
            self.store.to_csv(path)
            df = load_csv(path)
        self.assertEqual(list(df.columns), CSV_COLUMNS)
        self.assertEqual(len(df), 2)
        self.assertEqual(df["factor_a"].tolist(), [2, 3])
        self.assertTrue(df["user_input"].isna().iloc[1])
        self.assertEqual(stats_from_frame(df), {"total": 2, "correct": 1, "avgTime": 15500, "accuracy": 50})
        rows = records(df)
        self.assertIsNone(rows[1]["user_input"])
        self.assertEqual(rows[0]["user_input"], 6)

    def test_rejected_row_keeps_log_exportable(self) -> None:
        self.store.record_attempt(2, 3, 6, True, 1000, "free")
        with self.assertRaises(TelemetryRowError):
            self.store.record_attempt(2, 3, int("9" * 25), False, 1000, "free")
        self.store.record_attempt(2, 4, 8, True, 1000, "free")
        with tempfile.TemporaryDirectory() as tmp:
            path = self.store.to_csv(Path(tmp) / "log.csv")
            df = load_csv(path)
        self.assertEqual(df["user_input"].tolist(), [6, 8])

    def test_ndjson_export(self) -> None:
        self.store.record_attempt(2, 3, 6, True, 1000, "free")
        with tempfile.TemporaryDirectory() as tmp:
            out = Path(tmp) / "sub" / "log.ndjson"
            export_ndjson(self.store.export_all(), out)
            lines = out.read_text(encoding="utf-8").splitlines()
        self.assertEqual(len(lines), 1)
        self.assertEqual(json.loads(lines[0])["factor_b"], 3)

    def test_missing_csv_is_empty(self) -> None:
        df = load_csv(Path("/nonexistent/multdrill.csv"))
        self.assertTrue(df.empty)
        self.assertEqual(stats_from_frame(df)["total"], 0)


if __name__ == "__main__":
    unittest.main()
