"""SQLAlchemy 2.0 ORM models for the backtest completion pipeline.

Re-exports both bases and all model classes for convenient imports:
  - snapshot store: Backtest, ResultSnapshotRecord
  - history store: TradeLogEntryRecord, HoldingRecord,
    InstrumentHoldingRecord, PortfolioDailyRecord
"""

from .base import HistoryBase, SnapshotBase
from .history import (
    PORTFOLIO_DAILY_CODE,
    HoldingRecord,
    InstrumentHoldingRecord,
    PortfolioDailyRecord,
    TradeLogEntryRecord,
)
from .result_snapshots import Backtest, ResultSnapshotRecord

__all__ = [
    "SnapshotBase",
    "HistoryBase",
    "Backtest",
    "ResultSnapshotRecord",
    "TradeLogEntryRecord",
    "HoldingRecord",
    "InstrumentHoldingRecord",
    "PortfolioDailyRecord",
    "PORTFOLIO_DAILY_CODE",
]
