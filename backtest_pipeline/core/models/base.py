"""SQLAlchemy 2.0 declarative bases with consistent naming conventions.

The pipeline writes to two physically separate stores, so there are two
bases, each carrying only the tables of its own store:

- ``SnapshotBase``: backtests, result_snapshots
- ``HistoryBase``: trade_log_entries, holding_records
"""

from sqlalchemy import JSON, MetaData
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase

# Naming conventions for constraint management
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JsonDocument = JSON().with_variant(JSONB(), "postgresql")


class SnapshotBase(DeclarativeBase):
    """Base class for snapshot-store models."""

    metadata = MetaData(naming_convention=convention)


class HistoryBase(DeclarativeBase):
    """Base class for history-store models."""

    metadata = MetaData(naming_convention=convention)
