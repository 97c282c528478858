"""Inputs of the analytics engine: daily value points and trade events.

A ``DailyPoint`` maps labels to values for one date. Labels are either
instrument codes or one of the reserved portfolio labels below. Points are
built from stored holding rows with ``pivot_daily_points``; trade events
are plain views over stored trade-log rows.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

import pandas as pd

from backtest_pipeline.core.enums import ActionKind

PORTFOLIO_TOTAL = "PORTFOLIO_TOTAL"
STOCK_VALUE = "STOCK_VALUE"
CASH_BALANCE = "CASH_BALANCE"

PORTFOLIO_LABELS = frozenset({PORTFOLIO_TOTAL, STOCK_VALUE, CASH_BALANCE})


@dataclass(frozen=True)
class DailyPoint:
    """Values observed on one date, keyed by label."""

    as_of: date
    values: dict[str, float] = field(default_factory=dict)

    @property
    def portfolio_total(self) -> float:
        """The portfolio-total label, or instruments plus cash when absent."""
        total = self.values.get(PORTFOLIO_TOTAL)
        if total is not None:
            return total
        instruments = sum(
            v for label, v in self.values.items() if label not in PORTFOLIO_LABELS
        )
        return float(instruments + self.values.get(CASH_BALANCE, 0.0))


@dataclass(frozen=True)
class TradeEvent:
    """One trade-log entry as seen by the analytics."""

    logged_at: datetime
    action: ActionKind
    category: Optional[str] = None
    reason: Optional[str] = None
    cash_generated: Optional[float] = None

    @property
    def cash(self) -> float:
        return self.cash_generated or 0.0


def pivot_daily_points(frame: pd.DataFrame) -> list[DailyPoint]:
    """Pivot long-format ``(as_of, label, value)`` rows into ordered points.

    Later rows win when a label repeats on the same date. Missing labels on
    a date are left out of that point rather than filled.
    """
    if frame.empty:
        return []

    wide = frame.pivot_table(
        index="as_of", columns="label", values="value", aggfunc="last"
    ).sort_index()

    points = []
    for as_of, row in wide.iterrows():
        values = {label: float(v) for label, v in row.dropna().items()}
        points.append(DailyPoint(as_of=pd.Timestamp(as_of).date(), values=values))
    return points


def long_rows(
    records: Iterable[tuple[date, str, Optional[float]]],
) -> pd.DataFrame:
    """Build the long-format frame consumed by ``pivot_daily_points``."""
    rows = [
        {"as_of": as_of, "label": label, "value": value}
        for as_of, label, value in records
        if value is not None
    ]
    return pd.DataFrame(rows, columns=["as_of", "label", "value"])
