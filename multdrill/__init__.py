"""Multiplication-table drilling with an adaptive remediation loop.

The session engine lives in :mod:`multdrill.app.session_manager`; timers,
drills and the weakness policy are importable on their own so front ends
and notebooks can drive a session headlessly.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
