from __future__ import annotations

"""Milestone tracing (Explain Mode).

Switched on by ``--explain`` or ``ui.explain``; each session milestone
(operation loaded, attempt graded, timeout, weakness analysis, hint, ...)
then prints as ``[EXPLAIN] <event> :: <json>``.
"""

import json
from typing import Any, Dict, Optional

_ENABLED = False


def enable(flag: bool = True) -> None:
    global _ENABLED
    _ENABLED = bool(flag)


def enabled() -> bool:
    return _ENABLED


def format_line(event: str, payload: Optional[Dict[str, Any]] = None) -> str:
    if not payload:
        return f"[EXPLAIN] {event}"
    try:
        body = json.dumps(payload, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        return f"[EXPLAIN] {event}"
    return f"[EXPLAIN] {event} :: {body}"


def trace(event: str, payload: Optional[Dict[str, Any]] = None) -> None:
    if _ENABLED:
        print(format_line(event, payload))
