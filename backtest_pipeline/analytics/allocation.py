"""Asset-allocation and per-instrument return analysis."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from typing import Optional

import numpy as np

from .points import CASH_BALANCE, PORTFOLIO_LABELS, STOCK_VALUE, DailyPoint


@dataclass(frozen=True)
class AllocationSnapshot:
    as_of: date
    stock_value: float
    cash_balance: float
    total: float

    @property
    def stock_ratio(self) -> float:
        return self.stock_value / self.total * 100

    @property
    def cash_ratio(self) -> float:
        return self.cash_balance / self.total * 100


@dataclass(frozen=True)
class AssetAllocation:
    """Stock/cash split at both ends of the run plus cash statistics.

    Percent changes are None when the starting figure is zero or a split
    is unavailable.
    """

    first: Optional[AllocationSnapshot]
    last: Optional[AllocationSnapshot]
    stock_change_pct: Optional[float]
    cash_change_pct: Optional[float]
    cash_min: Optional[float]
    cash_max: Optional[float]
    cash_average: Optional[float]
    average_cash_ratio: Optional[float]


@dataclass(frozen=True)
class InstrumentReturn:
    code: str
    first_value: float
    last_value: float
    return_pct: float


def _snapshot(point: DailyPoint) -> Optional[AllocationSnapshot]:
    stock = point.values.get(STOCK_VALUE)
    cash = point.values.get(CASH_BALANCE)
    total = point.portfolio_total
    if stock is None or cash is None or total <= 0:
        return None
    return AllocationSnapshot(point.as_of, stock, cash, total)


def _pct_change(start: float, end: float) -> Optional[float]:
    if start == 0:
        return None
    return (end - start) / start * 100


def analyze_allocation(points: Sequence[DailyPoint]) -> AssetAllocation:
    if not points:
        return AssetAllocation(None, None, None, None, None, None, None, None)

    first = _snapshot(points[0])
    last = _snapshot(points[-1])
    stock_change = cash_change = None
    if first is not None and last is not None:
        stock_change = _pct_change(first.stock_value, last.stock_value)
        cash_change = _pct_change(first.cash_balance, last.cash_balance)

    cash = np.array(
        [p.values[CASH_BALANCE] for p in points if CASH_BALANCE in p.values]
    )
    ratios = [
        p.values[CASH_BALANCE] / p.portfolio_total * 100
        for p in points
        if CASH_BALANCE in p.values and p.portfolio_total > 0
    ]

    return AssetAllocation(
        first=first,
        last=last,
        stock_change_pct=stock_change,
        cash_change_pct=cash_change,
        cash_min=float(cash.min()) if cash.size else None,
        cash_max=float(cash.max()) if cash.size else None,
        cash_average=float(cash.mean()) if cash.size else None,
        average_cash_ratio=float(np.mean(ratios)) if ratios else None,
    )


def instrument_returns(points: Sequence[DailyPoint]) -> list[InstrumentReturn]:
    """First-to-last return of every instrument seen on at least two days.

    Instruments are reported in code order; one whose first value is zero
    has no defined return and is skipped.
    """
    codes = sorted(
        {label for p in points for label in p.values} - PORTFOLIO_LABELS
    )
    results = []
    for code in codes:
        series = [p.values[code] for p in points if code in p.values]
        if len(series) < 2 or series[0] == 0:
            continue
        results.append(
            InstrumentReturn(
                code=code,
                first_value=series[0],
                last_value=series[-1],
                return_pct=(series[-1] - series[0]) / series[0] * 100,
            )
        )
    return results
