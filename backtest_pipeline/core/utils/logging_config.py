"""Structured logging configuration for the backtest completion pipeline.

Uses structlog with context variables and ISO timestamps. Output is the
console renderer for local runs and one JSON object per line when
``settings.log_json`` is set (worker deployments ship logs to a collector).

configure_logging() runs the one-time setup; bound_backtest() scopes a
backtest id onto every log line emitted while one completion signal is
being handled.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

_configured = False


def configure_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """Configure structlog processors once.

    Safe to call multiple times -- only the first invocation takes effect.

    Args:
        level: Minimum level name (default ``settings.log_level``).
        json_output: Render JSON lines instead of console output
            (default ``settings.log_json``).
    """
    global _configured
    if _configured:
        return

    from backtest_pipeline.core.config import settings

    level_name = (level or settings.log_level).upper()
    min_level = logging.getLevelNamesMapping().get(level_name, logging.INFO)
    as_json = settings.log_json if json_output is None else json_output

    renderer = (
        structlog.processors.JSONRenderer()
        if as_json
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


@contextmanager
def bound_backtest(backtest_id: int, **extra: object) -> Iterator[None]:
    """Bind ``backtest_id`` (and any extra keys) to the current context."""
    with structlog.contextvars.bound_contextvars(backtest_id=backtest_id, **extra):
        yield
