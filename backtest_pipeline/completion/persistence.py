"""Two-phase persistence of one backtest outcome.

Phase 1 writes the aggregate ``result_snapshots`` row to the snapshot
store. Phase 2 writes the trade log and per-day holdings to the history
store in a single transaction, chunked through ``BatchWriter``. The stores
share no transaction, so a phase-2 failure is undone by ``rollback``,
which deletes the phase-1 row. When a step after phase 2 fails,
``discard_children`` removes the committed history rows first.

Usage::

    coordinator = PersistenceCoordinator(get_stores())
    snapshot_id = coordinator.save_aggregate(backtest_id, payload)
    try:
        coordinator.save_children(snapshot_id, payload)
    except Exception:
        coordinator.rollback(backtest_id, snapshot_id)
        raise
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError

from backtest_pipeline.core.database import Stores
from backtest_pipeline.core.enums import ActionKind, HoldingKind
from backtest_pipeline.core.exceptions import (
    AggregatePersistenceError,
    ChildPersistenceError,
    CompensationError,
)
from backtest_pipeline.core.models import (
    PORTFOLIO_DAILY_CODE,
    HoldingRecord,
    ResultSnapshotRecord,
    TradeLogEntryRecord,
)
from backtest_pipeline.core.utils.parsing import or_zero, parse_timestamp, utc_now

from .batch_writer import BatchWriter
from .payload import CallbackPayload, DailyResultInput, TradeLogInput

logger = structlog.get_logger(__name__)


class PersistenceCoordinator:
    """Save and compensate the durable form of one completed run.

    Args:
        stores: Session factories for the snapshot and history stores.
        batch_writer: Chunked writer for phase-2 collections.
        clock: Source of "now" (naive UTC) for creation timestamps and
            missing event timestamps.
    """

    def __init__(
        self,
        stores: Stores,
        batch_writer: BatchWriter | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.stores = stores
        self.batch_writer = batch_writer or BatchWriter()
        self.clock = clock

    # ------------------------------------------------------------------
    # Phase 1
    # ------------------------------------------------------------------
    def save_aggregate(self, backtest_id: int, payload: CallbackPayload) -> int:
        """Insert the ResultSnapshot row and return its generated id.

        Raises:
            AggregatePersistenceError: If the snapshot store rejects the write.
        """
        snapshot = payload.result_snapshot
        record = ResultSnapshotRecord(
            backtest_id=backtest_id,
            base_value=or_zero(snapshot.base_value if snapshot else None),
            current_value=or_zero(snapshot.current_value if snapshot else None),
            metrics=payload.metrics_document().to_json(),
            start_at=parse_timestamp(snapshot.start_at) if snapshot else None,
            end_at=parse_timestamp(snapshot.end_at) if snapshot else None,
            execution_seconds=(
                snapshot.execution_time_seconds if snapshot else None
            ) or payload.execution_time,
            created_at=self.clock(),
        )

        with self.stores.snapshot() as session:
            try:
                session.add(record)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error("aggregate_persist_failed", error=str(exc))
                raise AggregatePersistenceError(
                    f"Failed to save result snapshot for backtest {backtest_id}"
                ) from exc

        logger.info(
            "aggregate_persisted",
            snapshot_id=record.id,
            base_value=record.base_value,
            current_value=record.current_value,
        )
        return record.id

    # ------------------------------------------------------------------
    # Phase 2
    # ------------------------------------------------------------------
    def save_children(self, snapshot_id: int, payload: CallbackPayload) -> None:
        """Bulk-insert trade-log entries and holding rows in one transaction.

        Rows are mapped before the session opens, so an unknown action kind
        aborts the batch with nothing written.

        Raises:
            UnknownActionKindError: If a trade-log entry has an unknown action.
            ChildPersistenceError: If the history store rejects the writes.
        """
        now = self.clock()
        trade_rows = [
            self._trade_log_row(snapshot_id, entry, now)
            for entry in payload.execution_logs
        ]
        holding_rows: list[dict[str, Any]] = []
        for day in payload.daily_result_summary:
            holding_rows.extend(self._holding_rows(snapshot_id, day))

        with self.stores.history() as session:
            try:
                trades = self.batch_writer.write(
                    session, TradeLogEntryRecord, trade_rows
                )
                holdings = self.batch_writer.write(
                    session, HoldingRecord, holding_rows
                )
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error(
                    "children_persist_failed",
                    snapshot_id=snapshot_id,
                    error=str(exc),
                )
                raise ChildPersistenceError(
                    f"Failed to save history rows for snapshot {snapshot_id}"
                ) from exc

        logger.info(
            "children_persisted",
            snapshot_id=snapshot_id,
            trade_log_entries=trades,
            holding_records=holdings,
        )

    def _trade_log_row(
        self, snapshot_id: int, entry: TradeLogInput, now: datetime
    ) -> dict[str, Any]:
        action = ActionKind.parse(entry.action)
        logged_at = entry.logged_at
        if logged_at is None:
            logger.warning(
                "trade_log_timestamp_missing",
                snapshot_id=snapshot_id,
                action=action.value,
            )
            logged_at = now
        return {
            "result_snapshot_id": snapshot_id,
            "logged_at": logged_at,
            "action": action.value,
            "category": entry.category,
            "trigger_value": or_zero(entry.trigger_value),
            "threshold_value": or_zero(entry.threshold_value),
            "reason": entry.reason,
            "portfolio_value": or_zero(entry.portfolio_value),
            "sold_instruments": entry.sold_stocks or None,
            "cash_generated": or_zero(entry.cash_generated),
            "created_at": now,
        }

    def _holding_rows(
        self, snapshot_id: int, day: DailyResultInput
    ) -> list[dict[str, Any]]:
        if day.quantities:
            logger.debug(
                "daily_quantities",
                as_of=day.as_of.isoformat(),
                quantities=day.quantities,
            )

        rows = [
            {
                "result_snapshot_id": snapshot_id,
                "kind": HoldingKind.INSTRUMENT.value,
                "as_of_date": day.as_of,
                "instrument_code": item.code,
                "price": or_zero(item.close_price),
                "quantity": item.quantity or 0,
                "value": or_zero(item.value),
                "weight": or_zero(item.weight),
                "contribution": or_zero(item.contribution),
                "daily_return": or_zero(item.daily_return),
                "stock_value": None,
                "cash_balance": None,
            }
            for item in day.per_instrument
        ]
        # One aggregate row per day, even when the engine omitted the totals.
        # An absent total falls back to instruments plus cash; absent stock
        # and cash figures stay NULL.
        total = day.portfolio_value
        if total is None:
            total = sum(or_zero(item.value) for item in day.per_instrument)
            total += or_zero(day.cash_balance)
        rows.append(
            {
                "result_snapshot_id": snapshot_id,
                "kind": HoldingKind.PORTFOLIO_DAILY.value,
                "as_of_date": day.as_of,
                "instrument_code": PORTFOLIO_DAILY_CODE,
                "price": 0.0,
                "quantity": 0,
                "value": float(total),
                "weight": 0.0,
                "contribution": 0.0,
                "daily_return": 0.0,
                "stock_value": day.stock_value,
                "cash_balance": day.cash_balance,
            }
        )
        return rows

    # ------------------------------------------------------------------
    # Compensation
    # ------------------------------------------------------------------
    def discard_children(self, snapshot_id: int) -> None:
        """Delete committed phase-2 rows of ``snapshot_id``. Idempotent.

        Needed only when a step after phase 2 fails; a failed phase 2
        leaves nothing behind.

        Raises:
            CompensationError: If the deletes fail.
        """
        with self.stores.history() as session:
            try:
                trades = session.execute(
                    delete(TradeLogEntryRecord).where(
                        TradeLogEntryRecord.result_snapshot_id == snapshot_id
                    ).execution_options(synchronize_session=False)
                ).rowcount
                holdings = session.execute(
                    delete(HoldingRecord).where(
                        HoldingRecord.result_snapshot_id == snapshot_id
                    ).execution_options(synchronize_session=False)
                ).rowcount
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise CompensationError(
                    f"Failed to delete history rows of snapshot {snapshot_id}"
                ) from exc

        logger.info(
            "children_compensated",
            snapshot_id=snapshot_id,
            trade_log_entries=trades,
            holding_records=holdings,
        )

    def rollback(self, backtest_id: int, snapshot_id: int) -> None:
        """Delete the phase-1 row. Deleting an absent id is not an error.

        Raises:
            CompensationError: If the delete itself fails.
        """
        with self.stores.snapshot() as session:
            try:
                result = session.execute(
                    delete(ResultSnapshotRecord).where(
                        ResultSnapshotRecord.id == snapshot_id,
                        ResultSnapshotRecord.backtest_id == backtest_id,
                    ).execution_options(synchronize_session=False)
                )
                deleted = result.rowcount
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise CompensationError(
                    f"Failed to delete result snapshot {snapshot_id} "
                    f"of backtest {backtest_id}"
                ) from exc

        logger.info(
            "aggregate_compensated",
            snapshot_id=snapshot_id,
            deleted=deleted,
        )
