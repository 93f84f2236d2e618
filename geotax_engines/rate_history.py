"""
Rate history - pure checks and selection over a jurisdiction's rate records.

A history is well formed when its [valid_from, valid_to) intervals are
contiguous and non-overlapping, and at most one record is open (no
valid_to).  ``active_rate`` never raises on a malformed history: it
picks the record with the latest valid_from among those active.
"""

from __future__ import annotations

from datetime import date
from typing import Sequence

from geotax_kernel.domain.values import RateRecord


def active_records(records: Sequence[RateRecord], on_date: date) -> list[RateRecord]:
    """All records active on ``on_date`` (normally zero or one)."""
    return [r for r in records if r.is_active_on(on_date)]


def active_rate(records: Sequence[RateRecord], on_date: date) -> RateRecord | None:
    """The applicable record on ``on_date``; latest valid_from wins."""
    active = active_records(records, on_date)
    if not active:
        return None
    return max(active, key=lambda r: r.valid_from)


def open_record(records: Sequence[RateRecord]) -> RateRecord | None:
    """The current (open-ended) record; latest valid_from wins if several."""
    open_ = [r for r in records if r.is_open]
    if not open_:
        return None
    return max(open_, key=lambda r: r.valid_from)


def history_violations(records: Sequence[RateRecord]) -> list[str]:
    """
    Describe every way ``records`` breaks the history invariants.

    Returns an empty list for a well-formed history.
    """
    problems: list[str] = []
    ordered = sorted(records, key=lambda r: r.valid_from)

    open_count = sum(1 for r in ordered if r.is_open)
    if open_count > 1:
        problems.append(f"{open_count} open records")

    for prev, cur in zip(ordered, ordered[1:]):
        if prev.valid_to is None or prev.valid_to > cur.valid_from:
            problems.append(
                f"record from {prev.valid_from} overlaps record from {cur.valid_from}"
            )
        elif prev.valid_to < cur.valid_from:
            problems.append(f"gap between {prev.valid_to} and {cur.valid_from}")

    return problems
