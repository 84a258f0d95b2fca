"""Statistics and formatting helpers for tracker reporting.

This module provides utilities for:
- Median and mean of ``timedelta`` samples and of integer counts.
- Summarizing duration samples (count, mean, median).
- Stable descending sorts by a count key.
- Formatting durations as ``HH:MM:SS``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Iterable, List, Optional, Sequence, TypeVar

T = TypeVar("T")


def median_duration(samples: Iterable[timedelta]) -> timedelta:
    """Return the median of duration samples.

    An empty input returns ``timedelta(0)``; callers that need to tell "no
    data" apart from a real zero must check the sample count themselves.
    """
    ordered = sorted(samples)
    n = len(ordered)
    if n == 0:
        return timedelta(0)
    if n % 2 == 1:
        return ordered[n // 2]
    return (ordered[n // 2 - 1] + ordered[n // 2]) / 2


def mean_duration(samples: Sequence[timedelta]) -> Optional[timedelta]:
    """Return the arithmetic mean of duration samples, or ``None`` when empty."""
    if not samples:
        return None
    return sum(samples, timedelta(0)) / len(samples)


def median_value(values: Iterable[int]) -> Optional[float]:
    """Return the median of integer counts, or ``None`` when empty."""
    ordered = sorted(values)
    n = len(ordered)
    if n == 0:
        return None
    if n % 2 == 1:
        return float(ordered[n // 2])
    return (ordered[n // 2 - 1] + ordered[n // 2]) / 2.0


def mean_value(values: Sequence[int]) -> Optional[float]:
    """Return the arithmetic mean of integer counts, or ``None`` when empty."""
    if not values:
        return None
    return sum(values) / len(values)


@dataclass(frozen=True, slots=True)
class DurationSummary:
    """Aggregate statistics for a set of duration samples."""

    count: int
    mean: Optional[timedelta]
    median: Optional[timedelta]

    @property
    def has_data(self) -> bool:
        return self.count > 0


def summarize_durations(samples: Iterable[timedelta], positive_only: bool = True) -> DurationSummary:
    """Summarize duration samples.

    With ``positive_only`` (the default) zero and negative samples are left
    out, since they indicate missing or inconsistent timestamps rather than a
    real latency.
    """
    clean = sorted(sample for sample in samples if not positive_only or sample > timedelta(0))
    if not clean:
        return DurationSummary(count=0, mean=None, median=None)

    return DurationSummary(
        count=len(clean),
        mean=mean_duration(clean),
        median=median_duration(clean),
    )


def sort_by_count_desc(items: Iterable[T], key: Callable[[T], int]) -> List[T]:
    """Sort by ``key`` descending; items with equal counts keep their input order."""
    return sorted(items, key=key, reverse=True)


def format_duration(value: Optional[timedelta]) -> str:
    """Format a duration as ``HH:MM:SS``, prefixing negative values with ``-``.

    Returns ``"n/a"`` when ``value`` is ``None``.
    """
    if value is None:
        return "n/a"

    total_seconds = int(round(value.total_seconds()))
    sign = "-" if total_seconds < 0 else ""
    total_seconds = abs(total_seconds)
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    remaining_seconds = total_seconds % 60
    return f"{sign}{hours:02d}:{minutes:02d}:{remaining_seconds:02d}"
