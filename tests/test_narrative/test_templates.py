"""Tests for the plain-text backtest brief."""

from __future__ import annotations

from datetime import date, datetime

from backtest_pipeline.analytics import DailyPoint, TradeEvent, build_analysis
from backtest_pipeline.analytics.points import CASH_BALANCE, PORTFOLIO_TOTAL, STOCK_VALUE
from backtest_pipeline.completion.payload import BenchmarkMetrics, MetricsDocument
from backtest_pipeline.core.enums import ActionKind
from backtest_pipeline.narrative.templates import render_backtest_brief

SECTIONS = [
    "BENCHMARK",
    "PERFORMANCE METRICS",
    "PORTFOLIO VALUE",
    "ASSET ALLOCATION",
    "CONSISTENCY",
    "TREND CHANGES",
    "INSTRUMENTS",
    "TRADING ACTIVITY",
    "CASH FLOW",
]


def _point(day: int, total: float, cash: float, aapl: float) -> DailyPoint:
    return DailyPoint(
        date(2024, 1, day),
        {PORTFOLIO_TOTAL: total, STOCK_VALUE: total - cash, CASH_BALANCE: cash, "AAPL": aapl},
    )


class TestRenderBacktestBrief:
    def test_all_sections_in_order(self) -> None:
        text = render_backtest_brief(build_analysis([], []))
        positions = [text.index(f"\n{s}\n") for s in SECTIONS]
        assert positions == sorted(positions)

    def test_empty_run_placeholders(self) -> None:
        text = render_backtest_brief(build_analysis([], []))

        assert "BACKTEST REPORT -- untitled" in text
        assert "No metrics reported." in text
        assert "No daily data." in text
        assert "No clear trend change detected." in text
        assert "No trades recorded." in text
        assert "No cash-generating activity." in text
        assert "-> no benchmark configured" in text
        assert "Generated: " in text

    def test_populated_run(self) -> None:
        points = [
            _point(2, 1_000_000, 100_000, 400_000),
            _point(3, 1_050_000, 100_000, 450_000),
            _point(4, 1_000_000, 150_000, 380_000),
        ]
        events = [
            TradeEvent(datetime(2024, 1, 4, 15, 0), ActionKind.TAKE_PROFIT, cash_generated=50_000),
        ]
        metrics = MetricsDocument(benchmark=BenchmarkMetrics(alpha=-0.8))
        bundle = build_analysis(
            points, events, metrics=metrics, benchmark_code="SPX", title="Tilt", execution_seconds=1.5
        )

        text = render_backtest_brief(bundle, source="unit test")

        assert "Source: unit test" in text
        assert "Period: 2024-01-02 .. 2024-01-04" in text
        assert "Execution time: 1.50s" in text
        assert "Index: SPX" in text
        assert "-> portfolio underperformed" in text
        assert "Start: 2024-01-02  1,000,000" in text
        assert "turned down after 1 days" in text
        assert "AAPL" in text and "-5.00%" in text
        assert "- take-profit: 1" in text
        assert "Largest: 50,000 (2024-01-04, take-profit)" in text
        assert "2024-01: 50,000" in text
