"""GET /v1/payments/* - completed payment listings"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from vedi_payments.api.v1.schemas import PaymentItem, PaymentListResponse
from vedi_payments.api.dependencies import get_caller, get_request_id
from vedi_payments.api.errors import to_http_exception
from vedi_payments.domain.exceptions import DomainException
from vedi_payments.domain.models import Caller
from vedi_payments.infrastructure.database.session import get_db
from vedi_payments.services.payments_query import PaymentQueryService
from vedi_payments.utils.date_utils import as_utc

router = APIRouter()


def _window(start_date: Optional[datetime], end_date: Optional[datetime]):
    return (as_utc(start_date) if start_date else None, as_utc(end_date) if end_date else None)


@router.get("/payments/restaurants/{restaurant_id}", response_model=PaymentListResponse)
def get_restaurant_payments(
    restaurant_id: str,
    request: Request,
    start_date: Optional[datetime] = Query(None, description="Inclusive lower bound"),
    end_date: Optional[datetime] = Query(None, description="Inclusive upper bound"),
    limit: Optional[int] = Query(None, gt=0, le=500),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """Most recent completed payments of one restaurant (operator or owner)"""
    start, end = _window(start_date, end_date)
    try:
        records = PaymentQueryService(db, caller).restaurant_payments(restaurant_id, start, end, limit)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

    return PaymentListResponse(payments=[PaymentItem.from_record(r) for r in records], count=len(records))


@router.get("/payments/venues/{venue_id}", response_model=PaymentListResponse)
def get_venue_payments(
    venue_id: str,
    request: Request,
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: Optional[int] = Query(None, gt=0, le=500),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """Most recent completed payments at one venue (operator or manager)"""
    start, end = _window(start_date, end_date)
    try:
        records = PaymentQueryService(db, caller).venue_payments(venue_id, start, end, limit)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

    return PaymentListResponse(payments=[PaymentItem.from_record(r) for r in records], count=len(records))


@router.get("/payments/platform", response_model=PaymentListResponse)
def get_platform_payments(
    request: Request,
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: Optional[int] = Query(None, gt=0, le=1000),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """Platform-wide listing with totals over the listed payments (operator only)"""
    start, end = _window(start_date, end_date)
    try:
        records, totals = PaymentQueryService(db, caller).platform_payments(start, end, limit)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

    return PaymentListResponse(
        payments=[PaymentItem.from_record(r) for r in records],
        count=len(records),
        totals=totals,
    )
