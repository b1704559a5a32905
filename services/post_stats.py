"""Aggregate statistics over post content lengths."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

EMPTY_STATS = {
    "average_length": 0,
    "median_length": 0,
    "max_length": 0,
    "min_length": 0,
    "total_length": 0,
}


def _round_half_up(value) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def median(values: list[int]) -> float:
    """Median of ``values``; the mean of the middle pair for even counts."""

    ordered = sorted(values)
    middle = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[middle]
    return (ordered[middle - 1] + ordered[middle]) / 2


def content_length_stats(lengths: Iterable[int]) -> dict:
    """Return mean, median, max, min and total of ``lengths``.

    Mean and median are rounded half up to whole characters. Every value is
    zero when there is nothing to aggregate.
    """

    values = [int(length) for length in lengths]
    if not values:
        return dict(EMPTY_STATS)

    total = sum(values)
    return {
        "average_length": _round_half_up(Decimal(total) / len(values)),
        "median_length": _round_half_up(median(values)),
        "max_length": max(values),
        "min_length": min(values),
        "total_length": total,
    }
