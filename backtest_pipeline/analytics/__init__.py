"""Time-series analytics over one completed backtest run (pure, no I/O)."""

from backtest_pipeline.analytics.allocation import (
    AllocationSnapshot,
    AssetAllocation,
    InstrumentReturn,
    analyze_allocation,
    instrument_returns,
)
from backtest_pipeline.analytics.benchmark import BenchmarkComparison, compare_benchmark
from backtest_pipeline.analytics.cash_flow import TradeActivity, aggregate_trades
from backtest_pipeline.analytics.consistency import ConsistencyAnalysis, analyze_consistency
from backtest_pipeline.analytics.points import (
    CASH_BALANCE,
    PORTFOLIO_TOTAL,
    STOCK_VALUE,
    DailyPoint,
    TradeEvent,
    long_rows,
    pivot_daily_points,
)
from backtest_pipeline.analytics.summary import (
    AnalysisBundle,
    PeriodSummary,
    build_analysis,
    summarize_period,
)
from backtest_pipeline.analytics.trend import TrendChangePoint, extract_trend_changes

__all__ = [
    "DailyPoint",
    "TradeEvent",
    "PORTFOLIO_TOTAL",
    "STOCK_VALUE",
    "CASH_BALANCE",
    "long_rows",
    "pivot_daily_points",
    "TrendChangePoint",
    "extract_trend_changes",
    "ConsistencyAnalysis",
    "analyze_consistency",
    "BenchmarkComparison",
    "compare_benchmark",
    "TradeActivity",
    "aggregate_trades",
    "AllocationSnapshot",
    "AssetAllocation",
    "InstrumentReturn",
    "analyze_allocation",
    "instrument_returns",
    "PeriodSummary",
    "AnalysisBundle",
    "summarize_period",
    "build_analysis",
]
