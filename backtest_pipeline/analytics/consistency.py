"""Volatility-based classification of the daily return series."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from .points import DailyPoint
from .trend import daily_return

CONSISTENT_MAX_STDEV = 0.02
CONSISTENT_MIN_MEAN = 0.005
FLAT_MAX_STDEV = 0.005

SUSTAINED_UPTREND = "sustained uptrend"
SUSTAINED_DOWNTREND = "sustained downtrend"
SIDEWAYS = "sideways / flat"
CHOPPY = "choppy/volatile"
INSUFFICIENT_DATA = "insufficient data"


@dataclass(frozen=True)
class ConsistencyAnalysis:
    """Pattern label plus the mean and population stdev of daily returns."""

    pattern: str
    mean_daily_return: float
    volatility: float
    is_consistent: bool

    @property
    def description(self) -> str:
        mean_pct = self.mean_daily_return * 100
        if self.pattern in (SUSTAINED_UPTREND, SUSTAINED_DOWNTREND):
            return f"{self.pattern} (avg {mean_pct:.3f}%/day)"
        if self.pattern == CHOPPY:
            return (
                f"{self.pattern} (avg {mean_pct:.3f}%/day, "
                f"volatility {self.volatility * 100:.3f}%)"
            )
        return self.pattern


def analyze_consistency(points: Sequence[DailyPoint]) -> ConsistencyAnalysis:
    """Classify the series as trending, flat or choppy.

    Order-dependent: ``points`` must be sorted by date.
    """
    if len(points) < 2:
        return ConsistencyAnalysis(INSUFFICIENT_DATA, 0.0, 0.0, False)

    totals = [p.portfolio_total for p in points]
    returns = np.array(
        [daily_return(prev, cur) for prev, cur in zip(totals, totals[1:])]
    )
    mean = float(np.mean(returns))
    stdev = float(np.std(returns, ddof=0))

    is_consistent = stdev < CONSISTENT_MAX_STDEV and abs(mean) > CONSISTENT_MIN_MEAN
    if is_consistent:
        pattern = SUSTAINED_UPTREND if mean > 0 else SUSTAINED_DOWNTREND
    elif stdev < FLAT_MAX_STDEV:
        pattern = SIDEWAYS
    else:
        pattern = CHOPPY

    return ConsistencyAnalysis(pattern, mean, stdev, is_consistent)
