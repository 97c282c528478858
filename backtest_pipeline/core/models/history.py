"""History-store tables: trade_log_entries and holding_records.

Both are written in bulk during phase 2 and are immutable thereafter.
They live in a different store from ``result_snapshots``, so
``result_snapshot_id`` is a plain indexed column rather than a foreign key.

``holding_records`` uses single-table inheritance on ``kind``:

- ``InstrumentHoldingRecord``: one instrument on one day
- ``PortfolioDailyRecord``: the whole-portfolio aggregate for one day,
  stored under the reserved ``PORTFOLIO_DAILY`` code with explicit
  ``stock_value`` / ``cash_balance`` columns
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import BigInteger, Date, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..enums import HoldingKind
from .base import HistoryBase, JsonDocument

PORTFOLIO_DAILY_CODE = "PORTFOLIO_DAILY"


class TradeLogEntryRecord(HistoryBase):
    """ORM model for the ``trade_log_entries`` table."""

    __tablename__ = "trade_log_entries"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    result_snapshot_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    logged_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    trigger_value: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    threshold_value: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    portfolio_value: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    sold_instruments: Mapped[Optional[dict]] = mapped_column(JsonDocument, nullable=True)
    cash_generated: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_trade_log_entries_snapshot_logged_at", "result_snapshot_id", "logged_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<TradeLogEntryRecord("
            f"result_snapshot_id={self.result_snapshot_id}, "
            f"logged_at={self.logged_at}, "
            f"action={self.action!r})>"
        )


class HoldingRecord(HistoryBase):
    """ORM model for the ``holding_records`` table (polymorphic on ``kind``)."""

    __tablename__ = "holding_records"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    result_snapshot_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    as_of_date: Mapped[date] = mapped_column(Date, nullable=False)
    instrument_code: Mapped[str] = mapped_column(String(30), nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    value: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    weight: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    contribution: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    daily_return: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    stock_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    cash_balance: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    __table_args__ = (
        Index("ix_holding_records_snapshot_date", "result_snapshot_id", "as_of_date"),
    )

    __mapper_args__ = {"polymorphic_on": "kind"}

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__}("
            f"result_snapshot_id={self.result_snapshot_id}, "
            f"as_of_date={self.as_of_date}, "
            f"instrument_code={self.instrument_code!r}, "
            f"value={self.value})>"
        )


class InstrumentHoldingRecord(HoldingRecord):
    """One instrument's figures on one day."""

    __mapper_args__ = {"polymorphic_identity": HoldingKind.INSTRUMENT.value}


class PortfolioDailyRecord(HoldingRecord):
    """Whole-portfolio totals for one day.

    ``value`` is the day's total portfolio value; price and quantity are 0.
    """

    __mapper_args__ = {"polymorphic_identity": HoldingKind.PORTFOLIO_DAILY.value}
