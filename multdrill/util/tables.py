from __future__ import annotations

"""Table selection parsing ("1,2,5-7")."""

from typing import Iterable, Tuple

ALL_TABLES: Tuple[int, ...] = tuple(range(1, 16))


def parse_tables(text: str, *, lo: int = 1, hi: int = 15) -> Tuple[int, ...]:
    """Parse a comma list with ranges into sorted unique tables in ``lo..hi``.

    Unparseable tokens and out-of-range values are skipped.
    """
    out = set()
    for token in (text or "").split(","):
        t = token.strip()
        if not t:
            continue
        if "-" in t:
            a, b = t.split("-", 1)
            try:
                start, end = int(a), int(b)
            except ValueError:
                continue
            if start > end:
                start, end = end, start
            out.update(v for v in range(start, end + 1) if lo <= v <= hi)
            continue
        try:
            v = int(t)
        except ValueError:
            continue
        if lo <= v <= hi:
            out.add(v)
    return tuple(sorted(out))


def toggle_table(selected: Iterable[int], table: int) -> Tuple[int, ...]:
    """Add ``table`` if absent, remove it if present."""
    current = set(selected)
    if table in current:
        current.discard(table)
    else:
        current.add(int(table))
    return tuple(sorted(current))
