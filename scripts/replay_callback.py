#!/usr/bin/env python3
"""Replay a saved engine callback body through the completion pipeline.

Useful when a callback was captured (e.g. from transport logs) but never
processed. The body is handled inline, in this process, with the same
orchestrator the workers use.

Either the job id is resolved through Redis exactly as a live callback
would be, or ``--backtest-id`` routes the body directly (the mapping may
have expired after 24h).

Usage::

    python scripts/replay_callback.py callback.json
    python scripts/replay_callback.py callback.json --backtest-id 17
    python scripts/replay_callback.py callback.json --no-report
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure project root is on sys.path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from backtest_pipeline.completion.dispatcher import CompletionDispatcher, WorkItem
from backtest_pipeline.completion.job_mapping import JobMappingStore
from backtest_pipeline.completion.orchestrator import build_orchestrator
from backtest_pipeline.completion.payload import CallbackPayload
from backtest_pipeline.core.exceptions import PipelineError
from backtest_pipeline.core.redis import close_redis, get_redis
from backtest_pipeline.core.utils.logging_config import configure_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Replay a saved engine callback body.",
    )
    parser.add_argument("path", type=Path, help="JSON file with the callback body")
    parser.add_argument(
        "--backtest-id",
        type=int,
        default=None,
        help="Route to this backtest instead of resolving the job id",
    )
    parser.add_argument(
        "--no-report",
        action="store_true",
        help="Skip narrative report generation",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    args = parse_args(argv)

    try:
        payload = CallbackPayload.parse(args.path.read_text(encoding="utf-8"))
    except (OSError, PipelineError) as exc:
        print(f"Error: {exc}")
        return 2

    orchestrator = build_orchestrator()
    if args.no_report:
        orchestrator.report_service = None

    backtest_id = args.backtest_id
    if backtest_id is None:
        try:
            backtest_id = JobMappingStore(get_redis()).resolve_and_clear(payload.job_id)
        finally:
            close_redis()
    if backtest_id is None:
        print(f"Error: job id {payload.job_id!r} is unknown or expired; use --backtest-id")
        return 2

    dispatcher = CompletionDispatcher(orchestrator)
    item = WorkItem.from_payload(backtest_id, payload)
    try:
        dispatcher.handle(item)
    except PipelineError as exc:
        print(f"FAILED: {exc}")
        return 1

    status = orchestrator.status.get_status(backtest_id)
    print(f"backtest {backtest_id}: {item.kind} -> {status.value}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
