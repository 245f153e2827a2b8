from __future__ import annotations

"""Configuration loading and validation for multdrill.

Loads YAML configuration, applies defaults, and validates enumerations and
ranges. Bad values print a WARNING and fall back to the default.
"""

from pathlib import Path
from typing import Any, Dict, Optional

import sys

import yaml
from pydantic import BaseModel, Field

ALLOWED_MODES = {"timer", "free", "adaptive"}

TIMING_DEFAULTS: Dict[str, int] = {
    "tick_ms": 100,
    "hint_poll_ms": 500,
    "operation_time_limit_ms": 30000,
    "inactivity_limit_ms": 30000,
    "hint_display_ms": 2000,
    "hint_cooldown_ms": 10000,
    "timer_warning_ms": 60000,
    "diagnosis_warning_ms": 10000,
}


class TimingConfig(BaseModel):
    """Cadences and limits shared by the timers and the session machine."""

    tick_ms: int = Field(100, gt=0)
    hint_poll_ms: int = Field(500, gt=0)
    operation_time_limit_ms: int = Field(30000, gt=0)
    inactivity_limit_ms: int = Field(30000, gt=0)
    hint_display_ms: int = Field(2000, gt=0)
    hint_cooldown_ms: int = Field(10000, ge=0)
    timer_warning_ms: int = Field(60000, ge=0)
    diagnosis_warning_ms: int = Field(10000, ge=0)
    slow_threshold_multiplier: float = Field(1.2, gt=0)


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except FileNotFoundError:
        print(f"ERROR: Config file not found: {path}", file=sys.stderr)
        sys.exit(1)


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML or the packaged defaults.

    Args:
        path: Optional path to a YAML config. If None, use package defaults.

    Returns:
        A dictionary with configuration values.
    """
    if path:
        return _load_yaml(Path(path))
    return _load_yaml(Path(__file__).with_name("defaults.yml"))


def _positive_int(section: Dict[str, Any], key: str, default: int) -> None:
    value = section.get(key, default)
    try:
        ivalue = int(value)
    except (TypeError, ValueError):
        ivalue = -1
    if ivalue <= 0:
        print(f"WARNING: Invalid {key} '{value}', using {default}.")
        ivalue = default
    section[key] = ivalue


def validate_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Apply defaults and validate configuration values.

    Args:
        cfg: The raw configuration dictionary.

    Returns:
        The validated and merged configuration dictionary.
    """
    for section in ("timing", "adaptive", "session", "report", "export", "ui"):
        if not isinstance(cfg.get(section), dict):
            cfg[section] = {}

    timing = cfg["timing"]
    adaptive = cfg["adaptive"]
    session = cfg["session"]
    report = cfg["report"]
    export = cfg["export"]
    ui = cfg["ui"]

    for key, default in TIMING_DEFAULTS.items():
        _positive_int(timing, key, default)

    adaptive.setdefault("slow_threshold_multiplier", 1.2)
    try:
        mult = float(adaptive["slow_threshold_multiplier"])
    except (TypeError, ValueError):
        mult = 0.0
    if mult <= 0:
        print(f"WARNING: Invalid slow_threshold_multiplier '{adaptive['slow_threshold_multiplier']}', using 1.2.")
        mult = 1.2
    adaptive["slow_threshold_multiplier"] = mult

    session.setdefault("mode", "timer")
    session.setdefault("time_limit_min", 1)
    session.setdefault("tables", [1])
    session.setdefault("factor_max", 15)
    session.setdefault("adaptive_selects_all", True)
    session.setdefault("seed", None)

    report.setdefault(
        "api_url",
        "https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-flash:generateContent",
    )
    report.setdefault("api_key_env", "GEMINI_API_KEY")
    report.setdefault("timeout_s", 30)
    report.setdefault("temperature", 0.7)
    report.setdefault("max_output_tokens", 300)
    report.setdefault("structured", False)
    report.setdefault("retries", 2)

    export.setdefault("csv_path", "./multdrill_history.csv")
    export.setdefault("charts_dir", "./reports")

    ui.setdefault("explain", False)

    mode = str(session.get("mode", "")).lower()
    if mode not in ALLOWED_MODES:
        print(f"WARNING: Unsupported mode '{session.get('mode')}', using 'timer'.")
        mode = "timer"
    session["mode"] = mode

    _positive_int(session, "time_limit_min", 1)
    _positive_int(session, "factor_max", 15)

    tables = session.get("tables")
    try:
        tables = sorted({int(t) for t in (tables or [])})
    except (TypeError, ValueError):
        tables = []
    if not tables or tables[0] <= 0:
        print(f"WARNING: Invalid tables '{session.get('tables')}', using [1].")
        tables = [1]
    session["tables"] = tables

    return cfg


def timing_from_config(cfg: Dict[str, Any]) -> TimingConfig:
    timing = dict(cfg.get("timing", {}))
    timing["slow_threshold_multiplier"] = cfg.get("adaptive", {}).get("slow_threshold_multiplier", 1.2)
    return TimingConfig(**timing)
