"""Tests for backtest_pipeline.core.utils.parsing module."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from backtest_pipeline.core.utils.parsing import (
    or_zero,
    parse_date,
    parse_timestamp,
    utc_now,
)


class TestParseTimestamp:
    """Tests for parse_timestamp function."""

    # -- ISO strings --

    def test_datetime_string(self) -> None:
        assert parse_timestamp("2024-03-01T09:30:00") == datetime(2024, 3, 1, 9, 30)

    def test_date_only_string_is_midnight(self) -> None:
        assert parse_timestamp("2024-03-01") == datetime(2024, 3, 1)

    def test_trailing_z_is_dropped_to_naive(self) -> None:
        parsed = parse_timestamp("2024-03-01T09:30:00Z")
        assert parsed == datetime(2024, 3, 1, 9, 30)
        assert parsed.tzinfo is None

    def test_offset_converted_to_utc(self) -> None:
        assert parse_timestamp("2024-03-01T09:30:00+09:00") == datetime(2024, 3, 1, 0, 30)

    def test_negative_offset_crosses_midnight(self) -> None:
        assert parse_timestamp("2024-03-01T22:00:00-05:00") == datetime(2024, 3, 2, 3, 0)

    def test_surrounding_whitespace(self) -> None:
        assert parse_timestamp("  2024-03-01  ") == datetime(2024, 3, 1)

    # -- Objects --

    def test_date_object(self) -> None:
        assert parse_timestamp(date(2024, 3, 1)) == datetime(2024, 3, 1)

    def test_aware_datetime_becomes_naive(self) -> None:
        aware = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
        assert parse_timestamp(aware) == datetime(2024, 3, 1, 12, 0)

    def test_aware_datetime_in_other_zone(self) -> None:
        aware = datetime(2024, 3, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        assert parse_timestamp(aware) == datetime(2024, 3, 1, 10, 0)

    # -- None returns --

    def test_none(self) -> None:
        assert parse_timestamp(None) is None

    def test_empty_string(self) -> None:
        assert parse_timestamp("") is None

    def test_garbage_returns_none(self) -> None:
        assert parse_timestamp("last tuesday") is None


class TestParseDate:
    def test_offset_keeps_calendar_day(self) -> None:
        assert parse_date("2024-03-04T00:00:00+09:00") == date(2024, 3, 4)

    def test_date_string(self) -> None:
        assert parse_date("2024-03-04") == date(2024, 3, 4)

    def test_datetime_object(self) -> None:
        assert parse_date(datetime(2024, 3, 4, 23, 59)) == date(2024, 3, 4)

    def test_blank_and_garbage(self) -> None:
        assert parse_date("  ") is None
        assert parse_date("soon") is None


class TestOrZero:
    def test_none_is_zero(self) -> None:
        assert or_zero(None) == 0.0

    def test_int_becomes_float(self) -> None:
        result = or_zero(5)
        assert result == 5.0
        assert isinstance(result, float)

    def test_negative_kept(self) -> None:
        assert or_zero(-1.5) == -1.5


class TestUtcNow:
    def test_naive_and_close_to_utc(self) -> None:
        now = utc_now()
        assert now.tzinfo is None
        reference = datetime.now(timezone.utc).replace(tzinfo=None)
        assert abs(reference - now) < timedelta(seconds=5)
