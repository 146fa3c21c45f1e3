"""Unit tests for revenue aggregation"""

from datetime import datetime, timezone
from vedi_payments.domain.analytics import aggregate, to_major


def _at(day: int, month: int = 5) -> datetime:
    return datetime(2024, month, day, 12, 0, tzinfo=timezone.utc)


def test_empty_fee_report_is_zeroed():
    """Test no records gives zero totals and averages instead of errors"""
    report = aggregate([]).fee_report()

    assert report["order_count"] == 0
    assert report["revenue"] == 0
    assert report["average_order_value"] == 0
    assert report["average_venue_fee"] == 0
    assert report["by_restaurant"] == {}
    assert report["by_venue"] == {}


def test_fee_report_totals_and_averages(make_record):
    records = [
        make_record("i1", "rest_a", 10000, _at(1)),
        make_record("i2", "rest_a", 5000, _at(2)),
        make_record("i3", "rest_b", 3000, _at(2), venue_id="venue_1", venue_fee_cents=50),
    ]
    report = aggregate(records).fee_report()

    assert report["order_count"] == 3
    assert report["revenue"] == 180.0
    assert report["processor_fees"] == 0.9
    assert report["platform_fees"] == 3.0
    assert report["venue_fees"] == 0.5
    assert report["average_order_value"] == 60.0
    assert report["by_restaurant"]["rest_a"]["order_count"] == 2
    assert report["by_restaurant"]["rest_a"]["revenue"] == 150.0
    assert report["by_venue"]["venue_1"]["restaurant_count"] == 1


def test_venue_breakdown_counts_distinct_restaurants(make_record):
    records = [
        make_record("i1", "rest_a", 1000, _at(1), venue_id="venue_1", venue_fee_cents=10),
        make_record("i2", "rest_a", 1000, _at(2), venue_id="venue_1", venue_fee_cents=10),
        make_record("i3", "rest_b", 1000, _at(3), venue_id="venue_1", venue_fee_cents=10),
    ]
    venue = aggregate(records).fee_report()["by_venue"]["venue_1"]

    assert venue["order_count"] == 3
    assert venue["restaurant_count"] == 2


def test_trend_series_sorted_by_bucket(make_record):
    records = [
        make_record("i1", "rest_a", 1000, _at(3)),
        make_record("i2", "rest_a", 2000, _at(1)),
        make_record("i3", "rest_a", 4000, _at(1)),
    ]
    trends = aggregate(records, group_by="day").trend_series()

    assert [t["period"] for t in trends] == ["2024-05-01", "2024-05-03"]
    assert trends[0]["revenue"] == 60.0
    assert trends[0]["order_count"] == 2


def test_trend_series_by_week_and_month(make_record):
    records = [
        make_record("i1", "rest_a", 1000, _at(31, month=1)),
        make_record("i2", "rest_a", 1000, _at(1, month=2)),
    ]

    assert [t["period"] for t in aggregate(records, group_by="month").trend_series()] == ["2024-01", "2024-02"]
    assert [t["period"] for t in aggregate(records, group_by="week").trend_series()] == ["2024-W05"]


def test_unknown_group_by_falls_back_to_day(make_record):
    aggregator = aggregate([make_record("i1", "rest_a", 1000, _at(1))], group_by="hour")

    assert aggregator.group_by == "day"
    assert aggregator.trend_series()[0]["period"] == "2024-05-01"


def test_top_restaurants_ranked_by_revenue(make_record):
    records = [
        make_record("i1", "rest_a", 1000, _at(1)),
        make_record("i2", "rest_b", 5000, _at(1)),
        make_record("i3", "rest_c", 3000, _at(1)),
        make_record("i4", "rest_a", 1500, _at(2)),
    ]
    top = aggregate(records).top_restaurants(2, names={"rest_b": "Bistro"})

    assert [r["restaurant_id"] for r in top] == ["rest_b", "rest_c"]
    assert top[0]["restaurant_name"] == "Bistro"
    assert top[1]["restaurant_name"] == "Unknown"
    assert top[0]["average_payment"] == 50.0


def test_top_restaurants_ties_keep_record_order(make_record):
    records = [
        make_record("i1", "rest_z", 2000, _at(1)),
        make_record("i2", "rest_a", 2000, _at(1)),
        make_record("i3", "rest_m", 2000, _at(1)),
    ]

    assert [r["restaurant_id"] for r in aggregate(records).top_restaurants(3)] == ["rest_z", "rest_a", "rest_m"]


def test_venue_summary_only_counts_that_venue(make_record):
    """Test a restaurant's sales at another venue stay out of the breakdown"""
    records = [
        make_record("i1", "rest_a", 2000, _at(1), venue_id="venue_1", venue_fee_cents=20),
        make_record("i2", "rest_b", 4000, _at(1), venue_id="venue_1", venue_fee_cents=40),
        make_record("i3", "rest_a", 9000, _at(2), venue_id="venue_2", venue_fee_cents=90),
        make_record("i4", "rest_c", 1000, _at(2)),
    ]
    summary = aggregate(records).venue_summary("venue_1")

    assert summary["total_orders"] == 2
    assert summary["total_volume"] == 60.0
    assert summary["total_venue_earnings"] == 0.6
    assert summary["average_venue_fee"] == 0.3
    assert summary["restaurant_count"] == 2
    assert summary["restaurant_breakdown"]["rest_a"] == {"orders": 1, "volume": 20.0, "venue_earnings": 0.2}


def test_venue_summary_for_unknown_venue_is_empty():
    summary = aggregate([]).venue_summary("venue_x")

    assert summary["total_orders"] == 0
    assert summary["average_order_value"] == 0
    assert summary["restaurant_breakdown"] == {}


def test_to_major():
    assert to_major(9341) == 93.41
    assert to_major(0) == 0
