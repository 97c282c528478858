"""Tests for two-phase persistence and its compensation."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any
from unittest.mock import MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from backtest_pipeline.completion.batch_writer import BatchWriter
from backtest_pipeline.completion.payload import CallbackPayload
from backtest_pipeline.completion.persistence import PersistenceCoordinator
from backtest_pipeline.core.database import Stores
from backtest_pipeline.core.enums import HoldingKind
from backtest_pipeline.core.exceptions import (
    AggregatePersistenceError,
    ChildPersistenceError,
    CompensationError,
    UnknownActionKindError,
)
from backtest_pipeline.core.models import (
    PORTFOLIO_DAILY_CODE,
    HoldingRecord,
    PortfolioDailyRecord,
    ResultSnapshotRecord,
    TradeLogEntryRecord,
)

FIXED_NOW = datetime(2024, 1, 9, 6, 0)


def _count(stores: Stores, model: type) -> int:
    factory = stores.snapshot if model is ResultSnapshotRecord else stores.history
    with factory() as session:
        return len(session.execute(select(model)).scalars().all())


def _failing_session(exc: Exception) -> MagicMock:
    session = MagicMock()
    session.__enter__.return_value = session
    session.commit.side_effect = exc
    return MagicMock(return_value=session)


@pytest.fixture
def coordinator(stores: Stores) -> PersistenceCoordinator:
    return PersistenceCoordinator(stores, BatchWriter(chunk_size=4), clock=lambda: FIXED_NOW)


# ---------------------------------------------------------------------------
# Phase 1
# ---------------------------------------------------------------------------
class TestSaveAggregate:
    def test_row_written(
        self, coordinator: PersistenceCoordinator, stores: Stores,
        backtest_id: int, payload: CallbackPayload,
    ) -> None:
        snapshot_id = coordinator.save_aggregate(backtest_id, payload)

        with stores.snapshot() as session:
            record = session.get(ResultSnapshotRecord, snapshot_id)
        assert record.backtest_id == backtest_id
        assert record.base_value == 1_000_000
        assert record.current_value == 1_080_000
        assert record.start_at == datetime(2024, 1, 2)
        assert record.end_at == datetime(2024, 1, 8)
        assert record.execution_seconds == 3.2
        assert record.created_at == FIXED_NOW
        assert record.report is None
        assert record.metrics["version"] == 1
        assert record.metrics["benchmark"]["alpha"] == 4.9
        assert record.total_change_pct == pytest.approx(8.0)

    def test_missing_values_stored_as_zero(
        self, coordinator: PersistenceCoordinator, stores: Stores, backtest_id: int
    ) -> None:
        bare = CallbackPayload.parse(
            {"jobId": "j", "success": True, "resultSnapshot": {}, "executionTime": 9.5}
        )
        snapshot_id = coordinator.save_aggregate(backtest_id, bare)

        with stores.snapshot() as session:
            record = session.get(ResultSnapshotRecord, snapshot_id)
        assert record.base_value == 0.0
        assert record.current_value == 0.0
        assert record.start_at is None
        assert record.execution_seconds == 9.5
        assert record.metrics["metrics"]["total_return"] == 0.0

    def test_store_failure(self, stores: Stores, payload: CallbackPayload) -> None:
        broken = Stores(
            snapshot=_failing_session(OperationalError("INSERT", {}, Exception("down"))),
            history=stores.history,
        )
        with pytest.raises(AggregatePersistenceError):
            PersistenceCoordinator(broken).save_aggregate(1, payload)


# ---------------------------------------------------------------------------
# Phase 2
# ---------------------------------------------------------------------------
class TestSaveChildren:
    def test_row_counts(
        self, coordinator: PersistenceCoordinator, stores: Stores, payload: CallbackPayload
    ) -> None:
        coordinator.save_children(11, payload)

        assert _count(stores, TradeLogEntryRecord) == 4
        # 5 days x (2 instruments + 1 portfolio-daily row)
        assert _count(stores, HoldingRecord) == 15
        assert _count(stores, PortfolioDailyRecord) == 5

    def test_trade_log_mapping(
        self, coordinator: PersistenceCoordinator, stores: Stores, payload: CallbackPayload
    ) -> None:
        coordinator.save_children(11, payload)

        with stores.history() as session:
            rows = session.execute(
                select(TradeLogEntryRecord).order_by(TradeLogEntryRecord.logged_at)
            ).scalars().all()
        assert [r.action for r in rows] == ["BUY", "SELL", "STOP_LOSS", "TAKE_PROFIT"]
        assert rows[0].cash_generated == 0.0
        assert rows[0].sold_instruments is None
        assert rows[1].sold_instruments == {"AAPL": 150}
        assert rows[1].trigger_value == 410_000
        assert all(r.result_snapshot_id == 11 for r in rows)
        assert all(r.created_at == FIXED_NOW for r in rows)

    def test_portfolio_daily_rows(
        self, coordinator: PersistenceCoordinator, stores: Stores, payload: CallbackPayload
    ) -> None:
        coordinator.save_children(11, payload)

        with stores.history() as session:
            daily = session.execute(
                select(PortfolioDailyRecord).order_by(PortfolioDailyRecord.as_of_date)
            ).scalars().all()
        first = daily[0]
        assert first.kind == HoldingKind.PORTFOLIO_DAILY.value
        assert first.instrument_code == PORTFOLIO_DAILY_CODE
        assert first.as_of_date == date(2024, 1, 2)
        assert first.value == 1_000_000
        assert first.stock_value == 900_000
        assert first.cash_balance == 100_000
        assert first.price == 0.0
        assert first.quantity == 0

    def test_day_without_totals_still_gets_aggregate_row(
        self, coordinator: PersistenceCoordinator, stores: Stores
    ) -> None:
        sparse = CallbackPayload.parse(
            {
                "jobId": "j",
                "success": True,
                "resultSnapshot": {},
                "dailyResultSummary": [{"date": "2024-01-02", "perInstrument": []}],
            }
        )
        coordinator.save_children(3, sparse)

        with stores.history() as session:
            row = session.execute(select(HoldingRecord)).scalar_one()
        assert isinstance(row, PortfolioDailyRecord)
        assert row.value == 0.0
        assert row.stock_value is None
        assert row.cash_balance is None

    def test_missing_total_falls_back_to_instrument_sum(
        self, coordinator: PersistenceCoordinator, stores: Stores
    ) -> None:
        sparse = CallbackPayload.parse(
            {
                "jobId": "j",
                "success": True,
                "resultSnapshot": {},
                "dailyResultSummary": [
                    {
                        "date": "2024-01-02",
                        "perInstrument": [
                            {"code": "AAPL", "value": 600.0},
                            {"code": "MSFT", "value": 300.0},
                        ],
                        "cashBalance": 100.0,
                    }
                ],
            }
        )
        coordinator.save_children(4, sparse)

        with stores.history() as session:
            row = session.execute(select(PortfolioDailyRecord)).scalar_one()
        assert row.value == 1_000.0
        assert row.stock_value is None
        assert row.cash_balance == 100.0

    def test_missing_timestamp_uses_clock(
        self, coordinator: PersistenceCoordinator, stores: Stores
    ) -> None:
        undated = CallbackPayload.parse(
            {
                "jobId": "j",
                "success": True,
                "resultSnapshot": {},
                "executionLogs": [{"action": "REBALANCE"}],
            }
        )
        coordinator.save_children(3, undated)

        with stores.history() as session:
            row = session.execute(select(TradeLogEntryRecord)).scalar_one()
        assert row.logged_at == FIXED_NOW
        assert row.action == "REBALANCE"

    def test_unknown_action_writes_nothing(
        self, coordinator: PersistenceCoordinator, stores: Stores, callback_body: dict[str, Any]
    ) -> None:
        callback_body["executionLogs"].append({"date": "2024-01-08", "action": "HOLD"})
        bad = CallbackPayload.parse(callback_body)

        with pytest.raises(UnknownActionKindError):
            coordinator.save_children(3, bad)
        assert _count(stores, TradeLogEntryRecord) == 0
        assert _count(stores, HoldingRecord) == 0

    def test_store_failure(self, stores: Stores, payload: CallbackPayload) -> None:
        broken = Stores(
            snapshot=stores.snapshot,
            history=_failing_session(OperationalError("INSERT", {}, Exception("down"))),
        )
        with pytest.raises(ChildPersistenceError):
            PersistenceCoordinator(broken).save_children(3, payload)


# ---------------------------------------------------------------------------
# Compensation
# ---------------------------------------------------------------------------
class TestRollback:
    def test_deletes_aggregate_row(
        self, coordinator: PersistenceCoordinator, stores: Stores,
        backtest_id: int, payload: CallbackPayload,
    ) -> None:
        snapshot_id = coordinator.save_aggregate(backtest_id, payload)
        coordinator.rollback(backtest_id, snapshot_id)
        assert _count(stores, ResultSnapshotRecord) == 0

    def test_idempotent(
        self, coordinator: PersistenceCoordinator, stores: Stores,
        backtest_id: int, payload: CallbackPayload,
    ) -> None:
        snapshot_id = coordinator.save_aggregate(backtest_id, payload)
        coordinator.rollback(backtest_id, snapshot_id)
        coordinator.rollback(backtest_id, snapshot_id)
        assert _count(stores, ResultSnapshotRecord) == 0

    def test_other_backtest_untouched(
        self, coordinator: PersistenceCoordinator, stores: Stores,
        make_backtest, payload: CallbackPayload,
    ) -> None:
        first = make_backtest()
        second = make_backtest()
        snapshot_id = coordinator.save_aggregate(first, payload)
        coordinator.rollback(second, snapshot_id)
        assert _count(stores, ResultSnapshotRecord) == 1

    def test_delete_failure(self, stores: Stores) -> None:
        session = MagicMock()
        session.__enter__.return_value = session
        session.execute.side_effect = OperationalError("DELETE", {}, Exception("down"))
        broken = Stores(snapshot=MagicMock(return_value=session), history=stores.history)

        with pytest.raises(CompensationError):
            PersistenceCoordinator(broken).rollback(1, 2)
        session.rollback.assert_called_once()


class TestDiscardChildren:
    def test_removes_rows_of_one_snapshot(
        self, coordinator: PersistenceCoordinator, stores: Stores, payload: CallbackPayload
    ) -> None:
        coordinator.save_children(11, payload)
        coordinator.save_children(12, payload)

        coordinator.discard_children(11)

        with stores.history() as session:
            trades = session.execute(select(TradeLogEntryRecord)).scalars().all()
            holdings = session.execute(select(HoldingRecord)).scalars().all()
        assert {t.result_snapshot_id for t in trades} == {12}
        assert {h.result_snapshot_id for h in holdings} == {12}
        assert len(holdings) == 15

    def test_idempotent(self, coordinator: PersistenceCoordinator, stores: Stores) -> None:
        coordinator.discard_children(99)
        assert _count(stores, HoldingRecord) == 0

    def test_delete_failure(self, stores: Stores) -> None:
        session = MagicMock()
        session.__enter__.return_value = session
        session.execute.side_effect = OperationalError("DELETE", {}, Exception("down"))
        broken = Stores(snapshot=stores.snapshot, history=MagicMock(return_value=session))

        with pytest.raises(CompensationError):
            PersistenceCoordinator(broken).discard_children(2)
        session.rollback.assert_called_once()
