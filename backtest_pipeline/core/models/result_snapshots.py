"""Snapshot-store tables: backtests and result_snapshots.

``result_snapshots`` holds one aggregate row per completed run. The row is
written in phase 1 of persistence and is the only record rewritten later
(to attach the narrative report). It is deleted only as compensation when
phase 2 fails.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from ..enums import BacktestStatus
from ..utils.parsing import utc_now
from .base import JsonDocument, SnapshotBase


class Backtest(SnapshotBase):
    """ORM model for the ``backtests`` table.

    Created on request by another subsystem. The completion pipeline only
    ever mutates ``status``.
    """

    __tablename__ = "backtests"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    portfolio_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    title: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    benchmark_code: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    rule_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BacktestStatus.CREATED.value
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Backtest("
            f"id={self.id}, "
            f"portfolio_id={self.portfolio_id}, "
            f"status={self.status!r})>"
        )


class ResultSnapshotRecord(SnapshotBase):
    """ORM model for the ``result_snapshots`` table.

    Named ResultSnapshotRecord to keep it apart from the callback's
    ``ResultSnapshotInput`` in ``completion.payload``.

    ``metrics`` is the versioned document produced by
    ``MetricsDocument.to_json()``; ``report`` is always parseable JSON text
    when present.
    """

    __tablename__ = "result_snapshots"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    backtest_id: Mapped[int] = mapped_column(
        ForeignKey("backtests.id"), nullable=False
    )
    base_value: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    current_value: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    metrics: Mapped[Optional[dict]] = mapped_column(JsonDocument, nullable=True)
    report: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    start_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    end_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    execution_seconds: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    report_updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True
    )

    __table_args__ = (
        Index("ix_result_snapshots_backtest_id", "backtest_id"),
    )

    @property
    def total_change_pct(self) -> float:
        if self.base_value == 0:
            return 0.0
        return (self.current_value - self.base_value) / self.base_value * 100

    def __repr__(self) -> str:
        return (
            f"<ResultSnapshotRecord("
            f"id={self.id}, "
            f"backtest_id={self.backtest_id}, "
            f"current_value={self.current_value})>"
        )
