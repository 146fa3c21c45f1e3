"""Revenue analytics - single-pass aggregation over completed payment records"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from vedi_payments.domain.models import PaymentRecord, PaymentSplit
from vedi_payments.utils.date_utils import bucket_key

GROUP_BY_OPTIONS = ("day", "week", "month")


def to_major(cents: float) -> float:
    """Minor units to major units, for presentation only"""
    return round(cents / 100, 2)


def safe_average(total_cents: int, count: int) -> float:
    """Average in minor units; 0 for an empty set"""
    return total_cents / count if count > 0 else 0.0


@dataclass
class RevenueTotals:
    """Running sums, all in minor units"""

    revenue_cents: int = 0
    processor_fee_cents: int = 0
    platform_fee_cents: int = 0
    venue_fee_cents: int = 0
    restaurant_cents: int = 0
    order_count: int = 0

    def add(self, split: PaymentSplit) -> None:
        self.revenue_cents += split.gross_cents
        self.processor_fee_cents += split.processor_fee_cents
        self.platform_fee_cents += split.platform_fee_cents
        self.venue_fee_cents += split.venue_fee_cents
        self.restaurant_cents += split.restaurant_cents
        self.order_count += 1

    def present(self) -> Dict[str, Any]:
        return {
            "revenue": to_major(self.revenue_cents),
            "processor_fees": to_major(self.processor_fee_cents),
            "platform_fees": to_major(self.platform_fee_cents),
            "venue_fees": to_major(self.venue_fee_cents),
            "restaurant_payouts": to_major(self.restaurant_cents),
            "order_count": self.order_count,
        }

    def present_with_averages(self) -> Dict[str, Any]:
        count = self.order_count
        report = self.present()
        report.update(
            {
                "average_order_value": to_major(safe_average(self.revenue_cents, count)),
                "average_processor_fee": to_major(safe_average(self.processor_fee_cents, count)),
                "average_platform_fee": to_major(safe_average(self.platform_fee_cents, count)),
                "average_venue_fee": to_major(safe_average(self.venue_fee_cents, count)),
                "average_restaurant_payout": to_major(safe_average(self.restaurant_cents, count)),
            }
        )
        return report


@dataclass
class VenueTotals(RevenueTotals):
    """Venue sub-totals plus the distinct restaurants feeding them"""

    restaurants: Dict[str, RevenueTotals] = field(default_factory=dict)

    def add_for(self, restaurant_id: str, split: PaymentSplit) -> None:
        self.add(split)
        self.restaurants.setdefault(restaurant_id, RevenueTotals()).add(split)

    def present(self) -> Dict[str, Any]:
        report = super().present()
        report["restaurant_count"] = len(self.restaurants)
        return report


class RevenueAggregator:
    """
    Accumulates payment records in one pass.

    Every report (fee analytics, trends, top restaurants, venue summary) is
    read from the same accumulated state, so callers never re-implement
    the sums on their own.
    """

    def __init__(self, group_by: str = "day"):
        self.group_by = group_by if group_by in GROUP_BY_OPTIONS else "day"
        self.totals = RevenueTotals()
        self.by_restaurant: Dict[str, RevenueTotals] = {}
        self.by_venue: Dict[str, VenueTotals] = {}
        self.trends: Dict[str, RevenueTotals] = {}

    def add(self, record: PaymentRecord) -> None:
        split = record.split
        self.totals.add(split)

        restaurant_totals = self.by_restaurant.setdefault(record.restaurant_id, RevenueTotals())
        restaurant_totals.add(split)

        if record.venue_id:
            venue_totals = self.by_venue.setdefault(record.venue_id, VenueTotals())
            venue_totals.add_for(record.restaurant_id, split)

        if record.completed_at is not None:
            key = bucket_key(record.completed_at, self.group_by)
            self.trends.setdefault(key, RevenueTotals()).add(split)

    def extend(self, records: Iterable[PaymentRecord]) -> "RevenueAggregator":
        for record in records:
            self.add(record)
        return self

    def fee_report(self) -> Dict[str, Any]:
        report = self.totals.present_with_averages()
        report["by_restaurant"] = {rid: t.present() for rid, t in self.by_restaurant.items()}
        report["by_venue"] = {vid: t.present() for vid, t in self.by_venue.items()}
        return report

    def trend_series(self) -> List[Dict[str, Any]]:
        """Buckets sorted ascending by key (keys sort chronologically as strings)"""
        return [
            {"period": key, **self.trends[key].present()}
            for key in sorted(self.trends)
        ]

    def top_restaurants(self, limit: int, names: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
        """Highest revenue first; sorted() is stable so ties keep first-seen order"""
        names = names or {}
        ranked = sorted(self.by_restaurant.items(), key=lambda item: item[1].revenue_cents, reverse=True)
        return [
            {
                "restaurant_id": restaurant_id,
                "restaurant_name": names.get(restaurant_id, "Unknown"),
                **totals.present(),
                "average_payment": to_major(safe_average(totals.revenue_cents, totals.order_count)),
            }
            for restaurant_id, totals in ranked[: max(limit, 0)]
        ]

    def venue_summary(self, venue_id: str) -> Dict[str, Any]:
        """Totals for one venue and how each of its restaurants contributed"""
        venue_totals = self.by_venue.get(venue_id, VenueTotals())
        count = venue_totals.order_count
        return {
            "venue_id": venue_id,
            "total_orders": count,
            "total_volume": to_major(venue_totals.revenue_cents),
            "total_venue_earnings": to_major(venue_totals.venue_fee_cents),
            "average_order_value": to_major(safe_average(venue_totals.revenue_cents, count)),
            "average_venue_fee": to_major(safe_average(venue_totals.venue_fee_cents, count)),
            "restaurant_count": len(venue_totals.restaurants),
            "restaurant_breakdown": {
                rid: {
                    "orders": totals.order_count,
                    "volume": to_major(totals.revenue_cents),
                    "venue_earnings": to_major(totals.venue_fee_cents),
                }
                for rid, totals in venue_totals.restaurants.items()
            },
        }


def aggregate(records: Iterable[PaymentRecord], group_by: str = "day") -> RevenueAggregator:
    """Main entry point: fold records into a RevenueAggregator"""
    return RevenueAggregator(group_by=group_by).extend(records)
