"""Root pytest configuration and shared fixtures.

Provides common test fixtures used across all test modules:
- load_fixture: callable to load JSON fixtures from tests/fixtures/
- callback_body: the raw success callback from tests/fixtures/
- payload: the same body parsed into a CallbackPayload
- stores: two in-memory SQLite stores with their schemas created
- make_backtest: callable inserting a backtest row with overrides
- backtest_id: id of a CREATED backtest row in the snapshot store
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from datetime import date
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from backtest_pipeline.completion.payload import CallbackPayload
from backtest_pipeline.core.database import Stores, init_schema, stores_from_engines
from backtest_pipeline.core.enums import BacktestStatus
from backtest_pipeline.core.models import Backtest

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def _load(filename: str) -> Any:
    filepath = FIXTURES_DIR / filename
    with filepath.open("r", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def load_fixture() -> Any:
    """Return a callable that loads JSON fixtures from tests/fixtures/.

    Usage::

        def test_something(load_fixture):
            data = load_fixture("callback_success.json")
    """
    return _load


@pytest.fixture
def callback_body() -> dict[str, Any]:
    return _load("callback_success.json")


@pytest.fixture
def payload(callback_body: dict[str, Any]) -> CallbackPayload:
    return CallbackPayload.parse(callback_body)


def _memory_engine():
    # One shared connection so every session sees the same in-memory database.
    return create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )


@pytest.fixture
def stores() -> Iterator[Stores]:
    snapshot_engine = _memory_engine()
    history_engine = _memory_engine()
    init_schema(snapshot_engine, history_engine)
    yield stores_from_engines(snapshot_engine, history_engine)
    snapshot_engine.dispose()
    history_engine.dispose()


def add_backtest(stores: Stores, **overrides: Any) -> int:
    """Insert a backtest row and return its id."""
    values = {
        "portfolio_id": 7,
        "title": "Large-cap momentum",
        "start_date": date(2024, 1, 2),
        "end_date": date(2024, 1, 8),
        "benchmark_code": "SPX",
        "status": BacktestStatus.CREATED.value,
    }
    values.update(overrides)
    with stores.snapshot() as session:
        backtest = Backtest(**values)
        session.add(backtest)
        session.commit()
        return backtest.id


@pytest.fixture
def make_backtest(stores: Stores) -> Any:
    """Return a callable inserting a backtest row (keyword overrides)."""
    return lambda **overrides: add_backtest(stores, **overrides)


@pytest.fixture
def backtest_id(stores: Stores) -> int:
    return add_backtest(stores)
