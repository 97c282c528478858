"""Build analysis -> generate narrative -> normalize -> attach to snapshot."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import structlog

from backtest_pipeline.analytics import (
    CASH_BALANCE,
    PORTFOLIO_TOTAL,
    STOCK_VALUE,
    AnalysisBundle,
    DailyPoint,
    TradeEvent,
    build_analysis,
    long_rows,
    pivot_daily_points,
)
from backtest_pipeline.completion.payload import MetricsDocument
from backtest_pipeline.completion.repositories import HistoryRepository, SnapshotRepository
from backtest_pipeline.core.enums import ActionKind, HoldingKind
from backtest_pipeline.core.models import HoldingRecord, TradeLogEntryRecord
from backtest_pipeline.narrative.envelope import normalize_report
from backtest_pipeline.narrative.generator import NarrativeGenerator

logger = structlog.get_logger(__name__)


def daily_points_from_holdings(records: Iterable[HoldingRecord]) -> list[DailyPoint]:
    """Turn stored holding rows into date-ordered ``DailyPoint`` values.

    Instrument rows contribute their value under the instrument code; each
    portfolio-daily row contributes the total, stock value and cash balance.
    """

    def _long() -> Iterable[tuple]:
        for r in records:
            if r.kind == HoldingKind.PORTFOLIO_DAILY.value:
                yield r.as_of_date, PORTFOLIO_TOTAL, r.value
                yield r.as_of_date, STOCK_VALUE, r.stock_value
                yield r.as_of_date, CASH_BALANCE, r.cash_balance
            else:
                yield r.as_of_date, r.instrument_code, r.value

    return pivot_daily_points(long_rows(_long()))


def trade_events(records: Sequence[TradeLogEntryRecord]) -> list[TradeEvent]:
    return [
        TradeEvent(
            logged_at=r.logged_at,
            action=ActionKind.parse(r.action),
            category=r.category,
            reason=r.reason,
            cash_generated=r.cash_generated,
        )
        for r in records
    ]


class ReportService:
    """Produces and stores the narrative report of one result snapshot.

    Args:
        snapshots: Snapshot-store repository.
        history: History-store repository.
        generator: Narrative generator (template or Claude).
    """

    def __init__(
        self,
        snapshots: SnapshotRepository,
        history: HistoryRepository,
        generator: NarrativeGenerator | None = None,
    ) -> None:
        self.snapshots = snapshots
        self.history = history
        self.generator = generator or NarrativeGenerator()

    def build_bundle(self, backtest_id: int, snapshot_id: int) -> AnalysisBundle:
        backtest = self.snapshots.get_backtest(backtest_id)
        snapshot = self.snapshots.get_snapshot(snapshot_id)
        points = daily_points_from_holdings(self.history.holdings_for(snapshot_id))
        events = trade_events(self.history.trade_log_for(snapshot_id))

        return build_analysis(
            points,
            events,
            metrics=MetricsDocument.parse(snapshot.metrics),
            benchmark_code=backtest.benchmark_code,
            title=backtest.title,
            execution_seconds=snapshot.execution_seconds,
        )

    def generate_and_attach(self, backtest_id: int, snapshot_id: int) -> str:
        """Generate the report for ``snapshot_id`` and store it.

        Returns:
            The stored report text (always valid JSON).

        Raises:
            NotFoundError: If the backtest or snapshot is missing.
            ReportGenerationError: If the generator fails or times out.
        """
        bundle = self.build_bundle(backtest_id, snapshot_id)
        brief = self.generator.generate(bundle)
        report = normalize_report(brief.content)
        self.snapshots.attach_report(snapshot_id, report)
        logger.info(
            "report_generated",
            snapshot_id=snapshot_id,
            source=brief.source,
            words=brief.word_count,
        )
        return report
