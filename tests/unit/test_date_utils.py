"""Unit tests for period and bucket helpers"""

from datetime import datetime, timedelta, timezone
from vedi_payments.utils.date_utils import as_utc, bucket_key, period_start, week_key

NOW = datetime(2024, 5, 17, 15, 30, tzinfo=timezone.utc)


def test_period_start_calendar_boundaries():
    assert period_start("today", NOW) == datetime(2024, 5, 17, tzinfo=timezone.utc)
    assert period_start("month", NOW) == datetime(2024, 5, 1, tzinfo=timezone.utc)
    assert period_start("quarter", NOW) == datetime(2024, 4, 1, tzinfo=timezone.utc)
    assert period_start("year", NOW) == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_period_start_week_is_rolling():
    """Test week means the last 7 days, not the calendar week"""
    assert period_start("week", NOW) == NOW - timedelta(days=7)


def test_period_start_unknown_means_no_bound():
    assert period_start("all", NOW) is None
    assert period_start(None, NOW) is None


def test_period_start_case_insensitive():
    assert period_start("MONTH", NOW) == period_start("month", NOW)


def test_week_key_uses_iso_year():
    """Test the first days of January can belong to the previous ISO year"""
    assert week_key(datetime(2024, 1, 1)) == "2024-W01"
    assert week_key(datetime(2021, 1, 3)) == "2020-W53"
    assert week_key(datetime(2024, 12, 30)) == "2025-W01"


def test_bucket_key_formats():
    assert bucket_key(NOW, "day") == "2024-05-17"
    assert bucket_key(NOW, "week") == "2024-W20"
    assert bucket_key(NOW, "month") == "2024-05"


def test_as_utc_treats_naive_as_utc():
    naive = datetime(2024, 5, 17, 12, 0)
    assert as_utc(naive) == datetime(2024, 5, 17, 12, 0, tzinfo=timezone.utc)

    offset = datetime(2024, 5, 17, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    assert as_utc(offset).hour == 12
