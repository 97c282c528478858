"""Tests for asset allocation and per-instrument returns."""

from __future__ import annotations

from datetime import date

import pytest

from backtest_pipeline.analytics.allocation import analyze_allocation, instrument_returns
from backtest_pipeline.analytics.points import (
    CASH_BALANCE,
    PORTFOLIO_TOTAL,
    STOCK_VALUE,
    DailyPoint,
)


def _day(day: int, stock: float, cash: float, **instruments: float) -> DailyPoint:
    values = {STOCK_VALUE: stock, CASH_BALANCE: cash, PORTFOLIO_TOTAL: stock + cash}
    values.update(instruments)
    return DailyPoint(date(2024, 1, day), values)


class TestAnalyzeAllocation:
    def test_first_and_last_split(self) -> None:
        points = [_day(2, 800, 200), _day(3, 850, 150), _day(4, 600, 400)]
        result = analyze_allocation(points)

        assert result.first.stock_ratio == pytest.approx(80.0)
        assert result.last.cash_ratio == pytest.approx(40.0)
        assert result.stock_change_pct == pytest.approx(-25.0)
        assert result.cash_change_pct == pytest.approx(100.0)

    def test_cash_statistics(self) -> None:
        points = [_day(2, 800, 200), _day(3, 850, 150), _day(4, 600, 400)]
        result = analyze_allocation(points)

        assert result.cash_min == 150
        assert result.cash_max == 400
        assert result.cash_average == pytest.approx(250.0)
        assert result.average_cash_ratio == pytest.approx((20 + 15 + 40) / 3)

    def test_zero_starting_cash_has_no_change(self) -> None:
        result = analyze_allocation([_day(2, 1000, 0), _day(3, 900, 100)])
        assert result.cash_change_pct is None
        assert result.stock_change_pct == pytest.approx(-10.0)

    def test_without_split(self) -> None:
        points = [
            DailyPoint(date(2024, 1, 2), {"AAPL": 100.0}),
            DailyPoint(date(2024, 1, 3), {"AAPL": 110.0}),
        ]
        result = analyze_allocation(points)
        assert result.first is None
        assert result.stock_change_pct is None
        assert result.cash_average is None

    def test_empty(self) -> None:
        result = analyze_allocation([])
        assert result.first is None
        assert result.cash_min is None


class TestInstrumentReturns:
    def test_sorted_by_code(self) -> None:
        points = [
            _day(2, 300, 0, MSFT=200.0, AAPL=100.0),
            _day(3, 330, 0, MSFT=210.0, AAPL=120.0),
        ]
        results = instrument_returns(points)

        assert [r.code for r in results] == ["AAPL", "MSFT"]
        assert results[0].return_pct == pytest.approx(20.0)
        assert results[1].return_pct == pytest.approx(5.0)

    def test_portfolio_labels_excluded(self) -> None:
        codes = {r.code for r in instrument_returns([_day(2, 1, 1), _day(3, 2, 2)])}
        assert codes == set()

    def test_zero_start_skipped(self) -> None:
        points = [
            DailyPoint(date(2024, 1, 2), {"NEW": 0.0, "AAPL": 10.0}),
            DailyPoint(date(2024, 1, 3), {"NEW": 50.0, "AAPL": 11.0}),
        ]
        assert [r.code for r in instrument_returns(points)] == ["AAPL"]

    def test_single_observation_skipped(self) -> None:
        points = [
            DailyPoint(date(2024, 1, 2), {"AAPL": 10.0, "IPO": 5.0}),
            DailyPoint(date(2024, 1, 3), {"AAPL": 11.0}),
        ]
        assert [r.code for r in instrument_returns(points)] == ["AAPL"]

    def test_gaps_use_first_and_last_seen(self) -> None:
        points = [
            DailyPoint(date(2024, 1, 2), {"AAPL": 10.0}),
            DailyPoint(date(2024, 1, 3), {}),
            DailyPoint(date(2024, 1, 4), {"AAPL": 15.0}),
        ]
        result = instrument_returns(points)[0]
        assert result.first_value == 10.0
        assert result.last_value == 15.0
