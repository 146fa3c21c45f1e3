"""GET /v1/analytics/* - revenue and fee analytics"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from vedi_payments.api.dependencies import get_caller, get_request_id
from vedi_payments.api.errors import to_http_exception
from vedi_payments.domain.exceptions import DomainException
from vedi_payments.domain.models import Caller
from vedi_payments.infrastructure.database.session import get_db
from vedi_payments.services.payments_query import PaymentQueryService
from vedi_payments.utils.date_utils import as_utc

router = APIRouter()


@router.get("/analytics/fees")
def get_fee_analytics(
    request: Request,
    period: str = Query("month", description="today | week | month | quarter | year"),
    restaurant_id: Optional[str] = Query(None, description="Limit to one restaurant"),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """
    Fee totals, averages and breakdowns over a period.

    Unknown period names mean no lower bound.
    """
    try:
        return PaymentQueryService(db, caller).fee_analytics(period, restaurant_id)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))


@router.get("/analytics/trends")
def get_revenue_trends(
    request: Request,
    period: str = Query("month"),
    group_by: str = Query("day", description="day | week | month"),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """Revenue buckets sorted ascending by period key (operator only)"""
    try:
        return PaymentQueryService(db, caller).revenue_trends(period, group_by)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))


@router.get("/analytics/top-restaurants")
def get_top_restaurants(
    request: Request,
    period: str = Query("month"),
    limit: int = Query(10, gt=0, le=100),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """Restaurants ranked by revenue (operator only)"""
    try:
        restaurants = PaymentQueryService(db, caller).top_restaurants(period, limit)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

    return {"period": period, "restaurants": restaurants}


@router.get("/analytics/venues/{venue_id}/summary")
def get_venue_summary(
    venue_id: str,
    request: Request,
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """Venue totals with per-restaurant breakdown (operator or manager)"""
    start = as_utc(start_date) if start_date else None
    end = as_utc(end_date) if end_date else None
    try:
        return PaymentQueryService(db, caller).venue_summary(venue_id, start, end)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
