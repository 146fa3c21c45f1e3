"""Permission-checked payment listings and revenue analytics"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from vedi_payments.config import Settings, settings as default_settings
from vedi_payments.domain.analytics import aggregate
from vedi_payments.domain.exceptions import PermissionDeniedError
from vedi_payments.domain.models import Caller, PaymentRecord
from vedi_payments.infrastructure.database.repositories import (
    PaymentRecordRepository,
    RestaurantRepository,
    VenueRepository,
)
from vedi_payments.utils.date_utils import period_start

logger = logging.getLogger(__name__)


class PaymentQueryService:
    """
    Read side of the payment core.

    Restaurant data is visible to the operator and the restaurant's owner,
    venue data to the operator and the venue's manager, platform-wide data
    to the operator only.
    """

    def __init__(self, db: Session, caller: Caller, config: Optional[Settings] = None):
        self.caller = caller
        self.settings = config or default_settings
        self.restaurants = RestaurantRepository(db)
        self.venues = VenueRepository(db)
        self.records = PaymentRecordRepository(db)

    # Authorization

    def authorize_restaurant(self, restaurant_id: str) -> None:
        restaurant = self.restaurants.require(restaurant_id)
        if self.caller.is_operator or restaurant.owner_id == self.caller.caller_id:
            return
        raise PermissionDeniedError(
            "Caller does not own restaurant",
            restaurant_id=restaurant_id,
            caller_id=self.caller.caller_id,
        )

    def authorize_venue(self, venue_id: str) -> None:
        venue = self.venues.require(venue_id)
        if self.caller.is_operator or venue.manager_id == self.caller.caller_id:
            return
        raise PermissionDeniedError(
            "Caller does not manage venue",
            venue_id=venue_id,
            caller_id=self.caller.caller_id,
        )

    def require_operator(self, operation: str) -> None:
        if not self.caller.is_operator:
            raise PermissionDeniedError(
                "Operator role required",
                operation=operation,
                caller_id=self.caller.caller_id,
            )

    # Listings

    def restaurant_payments(
        self,
        restaurant_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[PaymentRecord]:
        self.authorize_restaurant(restaurant_id)
        return self.records.list_recent(
            limit or self.settings.restaurant_payments_limit, start, end, restaurant_id=restaurant_id
        )

    def venue_payments(
        self,
        venue_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[PaymentRecord]:
        self.authorize_venue(venue_id)
        return self.records.list_recent(limit or self.settings.venue_payments_limit, start, end, venue_id=venue_id)

    def platform_payments(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> Tuple[List[PaymentRecord], Dict[str, Any]]:
        """Listing plus the totals of exactly the listed records"""
        self.require_operator("get_platform_payments")
        records = self.records.list_recent(limit or self.settings.platform_payments_limit, start, end)
        return records, aggregate(records).totals.present()

    # Analytics

    def fee_analytics(self, period: str, restaurant_id: Optional[str] = None) -> Dict[str, Any]:
        if restaurant_id:
            self.authorize_restaurant(restaurant_id)
        else:
            self.require_operator("get_fee_analytics")

        start = period_start(period)
        report = aggregate(self.records.scan(start=start, restaurant_id=restaurant_id)).fee_report()
        return {"period": period, "start": start, **report}

    def revenue_trends(self, period: str, group_by: str = "day") -> Dict[str, Any]:
        self.require_operator("get_revenue_trends")

        aggregator = aggregate(self.records.scan(start=period_start(period)), group_by=group_by)
        trends = aggregator.trend_series()
        return {
            "period": period,
            "group_by": aggregator.group_by,
            "trends": trends,
            "total_periods": len(trends),
        }

    def top_restaurants(self, period: str, limit: int = 10) -> List[Dict[str, Any]]:
        self.require_operator("get_top_performing_restaurants")

        aggregator = aggregate(self.records.scan(start=period_start(period)))
        ranked_ids = [row["restaurant_id"] for row in aggregator.top_restaurants(limit)]

        found, report = self.restaurants.get_many(ranked_ids, self.settings.store_batch_size)
        if not report.complete:
            logger.warning(
                "Some restaurant names could not be loaded",
                extra={"failed_chunks": [c.index for c in report.failed_chunks]},
            )

        return aggregator.top_restaurants(limit, names={rid: r.name for rid, r in found.items()})

    def venue_summary(
        self,
        venue_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        self.authorize_venue(venue_id)

        summary = aggregate(self.records.scan(start=start, end=end, venue_id=venue_id)).venue_summary(venue_id)
        days = (end - start).days if start and end else None
        return {**summary, "start": start, "end": end, "days_included": days}
