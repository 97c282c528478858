"""Read side of the completion pipeline plus the one permitted rewrite.

``attach_report`` is the only write here: it sets the narrative report on
an existing ``result_snapshots`` row. Everything else is a plain query
against one store.
"""

from __future__ import annotations

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from backtest_pipeline.core.database import Stores
from backtest_pipeline.core.exceptions import NotFoundError, PersistenceError
from backtest_pipeline.core.models import (
    Backtest,
    HoldingRecord,
    ResultSnapshotRecord,
    TradeLogEntryRecord,
)
from backtest_pipeline.core.utils.parsing import utc_now

logger = structlog.get_logger(__name__)


class SnapshotRepository:
    """Queries over the snapshot store (backtests, result_snapshots)."""

    def __init__(self, stores: Stores) -> None:
        self.stores = stores

    def get_backtest(self, backtest_id: int) -> Backtest:
        with self.stores.snapshot() as session:
            backtest = session.get(Backtest, backtest_id)
        if backtest is None:
            raise NotFoundError(f"Backtest {backtest_id} not found")
        return backtest

    def get_snapshot(self, snapshot_id: int) -> ResultSnapshotRecord:
        with self.stores.snapshot() as session:
            snapshot = session.get(ResultSnapshotRecord, snapshot_id)
        if snapshot is None:
            raise NotFoundError(f"Result snapshot {snapshot_id} not found")
        return snapshot

    def find_snapshot(self, snapshot_id: int) -> ResultSnapshotRecord | None:
        with self.stores.snapshot() as session:
            return session.get(ResultSnapshotRecord, snapshot_id)

    def latest_for_backtest(self, backtest_id: int) -> ResultSnapshotRecord:
        """Return the most recently created snapshot (highest id)."""
        stmt = (
            select(ResultSnapshotRecord)
            .where(ResultSnapshotRecord.backtest_id == backtest_id)
            .order_by(ResultSnapshotRecord.id.desc())
            .limit(1)
        )
        with self.stores.snapshot() as session:
            snapshot = session.execute(stmt).scalar_one_or_none()
        if snapshot is None:
            raise NotFoundError(f"No result snapshot for backtest {backtest_id}")
        return snapshot

    def attach_report(self, snapshot_id: int, report: str) -> None:
        """Store ``report`` (already normalized JSON text) on a snapshot.

        Raises:
            NotFoundError: If the snapshot no longer exists.
            PersistenceError: If the store rejects the update.
        """
        stmt = (
            update(ResultSnapshotRecord)
            .where(ResultSnapshotRecord.id == snapshot_id)
            .values(report=report, report_updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        with self.stores.snapshot() as session:
            try:
                changed = session.execute(stmt).rowcount
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise PersistenceError(
                    f"Failed to attach report to snapshot {snapshot_id}"
                ) from exc
        if changed == 0:
            raise NotFoundError(f"Result snapshot {snapshot_id} not found")
        logger.info("report_attached", snapshot_id=snapshot_id, length=len(report))


class HistoryRepository:
    """Queries over the history store, ordered by date."""

    def __init__(self, stores: Stores) -> None:
        self.stores = stores

    def trade_log_for(self, snapshot_id: int) -> list[TradeLogEntryRecord]:
        stmt = (
            select(TradeLogEntryRecord)
            .where(TradeLogEntryRecord.result_snapshot_id == snapshot_id)
            .order_by(TradeLogEntryRecord.logged_at, TradeLogEntryRecord.id)
        )
        with self.stores.history() as session:
            return list(session.execute(stmt).scalars())

    def holdings_for(self, snapshot_id: int) -> list[HoldingRecord]:
        """All holding rows of a snapshot, polymorphically loaded."""
        stmt = (
            select(HoldingRecord)
            .where(HoldingRecord.result_snapshot_id == snapshot_id)
            .order_by(HoldingRecord.as_of_date, HoldingRecord.id)
        )
        with self.stores.history() as session:
            return list(session.execute(stmt).scalars())
