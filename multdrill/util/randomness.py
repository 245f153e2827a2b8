from __future__ import annotations

"""Seeding helpers for reproducible drill order."""

import os
import random
from typing import Optional


def resolve_seed(seed: Optional[int] = None) -> Optional[int]:
    """Explicit seed wins; otherwise the SEED env var if it is an integer."""
    if seed is not None:
        return int(seed)
    env = os.environ.get("SEED")
    if env is None:
        return None
    try:
        return int(env)
    except ValueError:
        return None


def make_rng(seed: Optional[int] = None) -> random.Random:
    return random.Random(resolve_seed(seed))
