"""Database engine layer for the backtest completion pipeline.

Two independent stores, each with its own engine and session factory:

- snapshot store: ``backtests`` and ``result_snapshots`` (aggregate rows)
- history store: ``trade_log_entries`` and ``holding_records`` (bulk rows)

There is no shared transaction between them. Consistency across the two is
kept by the compensation protocol in ``completion.persistence``.

Engines are created lazily so importing this module never opens a
connection. Session factories are configured with autoflush=False and
expire_on_commit=False for explicit transaction control.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from .config import settings
from .models.base import HistoryBase, SnapshotBase


@dataclass(frozen=True)
class Stores:
    """Session factories for the two physically separate stores."""

    snapshot: sessionmaker[Session]
    history: sessionmaker[Session]


def make_engine(url: str) -> Engine:
    """Create a sync engine using the configured pool settings."""
    if url.startswith("sqlite"):
        return create_engine(url, echo=settings.debug)
    return create_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=settings.db_pool_pre_ping,
        echo=settings.debug,
    )


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(engine, autoflush=False, expire_on_commit=False)


def stores_from_engines(snapshot_engine: Engine, history_engine: Engine) -> Stores:
    return Stores(
        snapshot=make_session_factory(snapshot_engine),
        history=make_session_factory(history_engine),
    )


_default_stores: Stores | None = None


def get_stores() -> Stores:
    """Return the process-wide stores built from ``settings``.

    Created on first call; subsequent calls return the same instance.
    """
    global _default_stores
    if _default_stores is None:
        _default_stores = stores_from_engines(
            make_engine(settings.snapshot_database_url),
            make_engine(settings.history_database_url),
        )
    return _default_stores


def init_schema(snapshot_engine: Engine, history_engine: Engine) -> None:
    """Create the tables of each store on its own engine (idempotent)."""
    SnapshotBase.metadata.create_all(snapshot_engine)
    HistoryBase.metadata.create_all(history_engine)
