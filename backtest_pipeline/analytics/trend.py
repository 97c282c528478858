"""Trend change-point detection over the daily portfolio total.

A day is directional when its return against the previous day exceeds 1%
in absolute value. The first directional day opens a segment silently;
every later directional day whose direction differs from the open segment
closes it with a ``TrendChangePoint`` and opens a new one. Non-directional
days extend the open segment.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from typing import Optional

from .points import DailyPoint

DIRECTIONAL_THRESHOLD = 0.01

UP = "up"
DOWN = "down"


@dataclass(frozen=True)
class TrendChangePoint:
    """A closed segment, reported on the day the direction flipped."""

    end_date: date
    new_direction: str
    duration_days: int
    segment_start_date: date
    segment_start_value: float
    segment_end_value: float
    segment_return: float


def daily_return(previous: float, current: float) -> float:
    """Simple return; 0.0 when the previous value is zero."""
    if previous == 0:
        return 0.0
    return (current - previous) / previous


def extract_trend_changes(points: Sequence[DailyPoint]) -> list[TrendChangePoint]:
    """Return the ordered change-points of ``points`` (possibly empty).

    ``points`` must already be sorted by date.
    """
    changes: list[TrendChangePoint] = []

    current: Optional[str] = None
    start_date: Optional[date] = None
    start_value = 0.0
    count = 0
    previous = 0.0

    for i, point in enumerate(points):
        value = point.portfolio_total
        if i == 0:
            previous = value
            continue

        r = daily_return(previous, value)
        direction = None
        if abs(r) > DIRECTIONAL_THRESHOLD:
            direction = UP if r > 0 else DOWN

        if direction is not None and direction != current:
            if current is not None:
                changes.append(
                    TrendChangePoint(
                        end_date=point.as_of,
                        new_direction=direction,
                        duration_days=count,
                        segment_start_date=start_date,
                        segment_start_value=start_value,
                        segment_end_value=value,
                        segment_return=daily_return(start_value, value),
                    )
                )
            current = direction
            start_date = point.as_of
            start_value = value
            count = 0

        previous = value
        # The opening day counts towards its own segment.
        count += 1

    return changes
