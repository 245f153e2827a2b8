import io
import os
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest import mock

from multdrill.config.config import load_config, timing_from_config, validate_config
from multdrill.util.randomness import make_rng, resolve_seed


class ConfigTests(unittest.TestCase):
    def test_packaged_defaults(self) -> None:
        cfg = validate_config(load_config())
        self.assertEqual(cfg["session"]["mode"], "timer")
        self.assertEqual(cfg["session"]["tables"], [1])
        self.assertEqual(cfg["timing"]["inactivity_limit_ms"], 30000)
        self.assertEqual(cfg["report"]["max_output_tokens"], 300)
        timing = timing_from_config(cfg)
        self.assertEqual(timing.operation_time_limit_ms, 30000)
        self.assertEqual(timing.hint_cooldown_ms, 10000)
        self.assertAlmostEqual(timing.slow_threshold_multiplier, 1.2)

    def test_bad_values_fall_back_with_warning(self) -> None:
        raw = {
            "timing": {"tick_ms": -5, "hint_poll_ms": "often"},
            "adaptive": {"slow_threshold_multiplier": 0},
            "session": {"mode": "blitz", "tables": ["x"], "time_limit_min": 0},
        }
        buf = io.StringIO()
        with redirect_stdout(buf):
            cfg = validate_config(raw)
        out = buf.getvalue()
        self.assertIn("WARNING", out)
        self.assertEqual(cfg["timing"]["tick_ms"], 100)
        self.assertEqual(cfg["timing"]["hint_poll_ms"], 500)
        self.assertEqual(cfg["adaptive"]["slow_threshold_multiplier"], 1.2)
        self.assertEqual(cfg["session"]["mode"], "timer")
        self.assertEqual(cfg["session"]["tables"], [1])
        self.assertEqual(cfg["session"]["time_limit_min"], 1)
        self.assertEqual(cfg["export"]["charts_dir"], "./reports")

    def test_tables_are_sorted_and_unique(self) -> None:
        cfg = validate_config({"session": {"tables": [7, 3, 7, "2"]}})
        self.assertEqual(cfg["session"]["tables"], [2, 3, 7])

    def test_user_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "cfg.yml"
            path.write_text("session:\n  mode: adaptive\n  factor_max: 10\n", encoding="utf-8")
            cfg = validate_config(load_config(str(path)))
        self.assertEqual(cfg["session"]["mode"], "adaptive")
        self.assertEqual(cfg["session"]["factor_max"], 10)
        self.assertEqual(cfg["timing"]["tick_ms"], 100)

    def test_missing_file_exits(self) -> None:
        with self.assertRaises(SystemExit):
            with mock.patch("sys.stderr", new_callable=io.StringIO):
                load_config("/nonexistent/multdrill.yml")


class SeedTests(unittest.TestCase):
    def test_explicit_seed_wins(self) -> None:
        with mock.patch.dict(os.environ, {"SEED": "5"}):
            self.assertEqual(resolve_seed(9), 9)
            self.assertEqual(resolve_seed(), 5)

    def test_env_seed_reproducible(self) -> None:
        with mock.patch.dict(os.environ, {"SEED": "11"}):
            a = make_rng().random()
            b = make_rng().random()
        self.assertEqual(a, b)

    def test_bad_env_seed_ignored(self) -> None:
        with mock.patch.dict(os.environ, {"SEED": "abc"}):
            self.assertIsNone(resolve_seed())


if __name__ == "__main__":
    unittest.main()
