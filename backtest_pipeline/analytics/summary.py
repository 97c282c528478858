"""Period summary and the combined analysis bundle.

``build_analysis`` is the single entry point used by the report service:
it runs every sub-analysis over one run's points and trade events and
returns an ``AnalysisBundle``, which is what the narrative templates
render.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

from backtest_pipeline.completion.payload import BacktestMetrics, MetricsDocument

from .allocation import AssetAllocation, InstrumentReturn, analyze_allocation, instrument_returns
from .benchmark import BenchmarkComparison, compare_benchmark
from .cash_flow import TradeActivity, aggregate_trades
from .consistency import ConsistencyAnalysis, analyze_consistency
from .points import DailyPoint, TradeEvent
from .trend import TrendChangePoint, extract_trend_changes


@dataclass(frozen=True)
class PeriodSummary:
    first_date: date
    last_date: date
    first_total: float
    last_total: float
    total_return_pct: float
    day_count: int


@dataclass(frozen=True)
class AnalysisBundle:
    """Report-ready facts about one completed run."""

    title: Optional[str]
    execution_seconds: Optional[float]
    period: Optional[PeriodSummary]
    metrics: Optional[BacktestMetrics]
    benchmark: BenchmarkComparison
    consistency: ConsistencyAnalysis
    trend_changes: list[TrendChangePoint] = field(default_factory=list)
    allocation: Optional[AssetAllocation] = None
    instruments: list[InstrumentReturn] = field(default_factory=list)
    trades: TradeActivity = field(default_factory=TradeActivity)

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation (dates as ISO strings, enums as values)."""
        return _jsonable(self)


def summarize_period(points: Sequence[DailyPoint]) -> Optional[PeriodSummary]:
    if not points:
        return None
    first, last = points[0], points[-1]
    first_total, last_total = first.portfolio_total, last.portfolio_total
    change = (last_total - first_total) / first_total * 100 if first_total else 0.0
    return PeriodSummary(
        first_date=first.as_of,
        last_date=last.as_of,
        first_total=first_total,
        last_total=last_total,
        total_return_pct=change,
        day_count=len(points),
    )


def build_analysis(
    points: Sequence[DailyPoint],
    events: Sequence[TradeEvent],
    metrics: Optional[MetricsDocument] = None,
    benchmark_code: Optional[str] = None,
    title: Optional[str] = None,
    execution_seconds: Optional[float] = None,
) -> AnalysisBundle:
    """Run every sub-analysis; ``points`` and ``events`` must be date-ordered."""
    return AnalysisBundle(
        title=title,
        execution_seconds=execution_seconds,
        period=summarize_period(points),
        metrics=metrics.metrics if metrics else None,
        benchmark=compare_benchmark(
            metrics.benchmark if metrics else None, benchmark_code
        ),
        consistency=analyze_consistency(points),
        trend_changes=extract_trend_changes(points),
        allocation=analyze_allocation(points) if points else None,
        instruments=instrument_returns(points),
        trades=aggregate_trades(events),
    )


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {_jsonable(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value
