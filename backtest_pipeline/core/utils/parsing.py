"""Value parsing utilities for engine callback payloads.

The engine reports timestamps as ISO-8601 strings (with or without a time
part) and leaves optional numeric fields out entirely. These helpers turn
both into the shapes the stores expect. Stored timestamps are naive UTC.

Examples::

    >>> parse_timestamp("2024-03-01T09:30:00")
    datetime.datetime(2024, 3, 1, 9, 30)
    >>> parse_timestamp("")  # returns None
    >>> or_zero(None)
    0.0
"""

from __future__ import annotations

from datetime import date, datetime, timezone

import structlog

logger = structlog.get_logger(__name__)


def parse_timestamp(raw: str | datetime | date | None) -> datetime | None:
    """Parse an engine timestamp into a naive UTC datetime.

    Accepts ``datetime``/``date`` objects (dates become midnight) and ISO-8601
    strings including a trailing ``Z``. Values carrying an offset are
    converted to UTC; naive values are taken as UTC already. Unparseable
    input is logged and mapped to None rather than raised, so one bad field
    never fails a whole snapshot.

    Args:
        raw: The raw value from the payload.

    Returns:
        The parsed datetime, or None for empty/unparseable values.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return _as_naive_utc(raw)
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day)

    stripped = str(raw).strip()
    if not stripped:
        return None
    if stripped.endswith("Z"):
        stripped = stripped[:-1] + "+00:00"

    try:
        return _as_naive_utc(datetime.fromisoformat(stripped))
    except ValueError:
        logger.warning("timestamp_parse_failed", raw=raw)
        return None


def parse_date(raw: str | datetime | date | None) -> date | None:
    """Parse a trading day, keeping the calendar date as written.

    Unlike ``parse_timestamp`` no UTC conversion is applied, so
    ``"2024-03-04T00:00:00+09:00"`` stays 4 March.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw

    stripped = str(raw).strip()
    if not stripped:
        return None
    if stripped.endswith("Z"):
        stripped = stripped[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(stripped).date()
    except ValueError:
        logger.warning("date_parse_failed", raw=raw)
        return None


def or_zero(value: float | int | None) -> float:
    """Return ``value`` as float, treating an absent value as 0.0."""
    if value is None:
        return 0.0
    return float(value)


def utc_now() -> datetime:
    """Current time as naive UTC, the form every stored timestamp uses."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
