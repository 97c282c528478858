#!/usr/bin/env python3
"""Create the snapshot-store and history-store schemas.

Each store gets only its own tables; running the script twice is harmless
(``create_all`` skips existing tables).

Usage::

    python scripts/init_stores.py
    python scripts/init_stores.py --snapshot-url sqlite:///snap.db --history-url sqlite:///hist.db
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure project root is on sys.path so ``backtest_pipeline.*`` imports work
# when this script is executed directly.
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy.exc import SQLAlchemyError

from backtest_pipeline.core.config import settings
from backtest_pipeline.core.database import init_schema, make_engine
from backtest_pipeline.core.models import HistoryBase, SnapshotBase
from backtest_pipeline.core.utils.logging_config import configure_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create the backtest pipeline store schemas.",
    )
    parser.add_argument(
        "--snapshot-url",
        default=settings.snapshot_database_url,
        help="Snapshot store URL (default: from settings)",
    )
    parser.add_argument(
        "--history-url",
        default=settings.history_database_url,
        help="History store URL (default: from settings)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    args = parse_args(argv)

    snapshot_engine = make_engine(args.snapshot_url)
    history_engine = make_engine(args.history_url)

    print("=" * 56)
    print(" BACKTEST PIPELINE -- STORE SCHEMA")
    print("=" * 56)
    try:
        init_schema(snapshot_engine, history_engine)
    except SQLAlchemyError as exc:
        print(f"  FAILED: {exc}")
        return 1
    finally:
        snapshot_engine.dispose()
        history_engine.dispose()

    print(f"  snapshot store: {', '.join(sorted(SnapshotBase.metadata.tables))}")
    print(f"  history store:  {', '.join(sorted(HistoryBase.metadata.tables))}")
    print("=" * 56)
    return 0


if __name__ == "__main__":
    sys.exit(main())
