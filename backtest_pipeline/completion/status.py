"""Backtest status transitions as single-row conditional updates.

Allowed moves:

    CREATED  -> RUNNING
    CREATED  -> COMPLETED | FAILED
    RUNNING  -> COMPLETED | FAILED
    COMPLETED -> FAILED          (compensation inside the same pass only)

``mark_failed`` is unconditional so a failure signal is always recorded.
Nothing ever moves a backtest back to RUNNING or CREATED.
"""

from __future__ import annotations

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from backtest_pipeline.core.database import Stores
from backtest_pipeline.core.enums import BacktestStatus
from backtest_pipeline.core.exceptions import (
    InvalidStatusTransitionError,
    NotFoundError,
    PersistenceError,
)
from backtest_pipeline.core.models import Backtest
from backtest_pipeline.core.utils.parsing import utc_now

logger = structlog.get_logger(__name__)

_ALLOWED_SOURCES: dict[BacktestStatus, tuple[BacktestStatus, ...]] = {
    BacktestStatus.RUNNING: (BacktestStatus.CREATED,),
    BacktestStatus.COMPLETED: (BacktestStatus.CREATED, BacktestStatus.RUNNING),
}


class BacktestStatusManager:
    """Reads and writes ``backtests.status`` in the snapshot store."""

    def __init__(self, stores: Stores) -> None:
        self.stores = stores

    def get_status(self, backtest_id: int) -> BacktestStatus:
        with self.stores.snapshot() as session:
            status = session.execute(
                select(Backtest.status).where(Backtest.id == backtest_id)
            ).scalar_one_or_none()
        if status is None:
            raise NotFoundError(f"Backtest {backtest_id} not found")
        return BacktestStatus(status)

    def mark_running(self, backtest_id: int) -> None:
        self._transition(backtest_id, BacktestStatus.RUNNING)

    def mark_completed(self, backtest_id: int) -> None:
        self._transition(backtest_id, BacktestStatus.COMPLETED)

    def mark_failed(self, backtest_id: int) -> None:
        self._transition(backtest_id, BacktestStatus.FAILED)

    def _transition(self, backtest_id: int, target: BacktestStatus) -> None:
        stmt = (
            update(Backtest)
            .where(Backtest.id == backtest_id)
            .values(status=target.value, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        sources = _ALLOWED_SOURCES.get(target)
        if sources is not None:
            stmt = stmt.where(Backtest.status.in_([s.value for s in sources]))

        with self.stores.snapshot() as session:
            try:
                changed = session.execute(stmt).rowcount
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise PersistenceError(
                    f"Failed to set backtest {backtest_id} to {target.value}"
                ) from exc

        if changed == 0:
            # Either the row is missing or its current status forbids the move.
            current = self.get_status(backtest_id)
            raise InvalidStatusTransitionError(
                f"Backtest {backtest_id} cannot move {current.value} -> {target.value}"
            )

        logger.info("backtest_status_changed", status=target.value)
