"""/v1/fees/* - fee configuration administration"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from vedi_payments.api.v1.schemas import (
    ChunkSchema,
    FeeConfigResponse,
    FeeOverridesRequest,
    NegotiatedFeeItem,
    NegotiatedFeeListResponse,
    VenueFeeRequest,
    VenueFeeResponse,
)
from vedi_payments.api.dependencies import get_caller, get_request_id
from vedi_payments.api.errors import to_http_exception
from vedi_payments.domain.exceptions import DomainException
from vedi_payments.domain.models import Caller
from vedi_payments.infrastructure.database.session import get_db
from vedi_payments.services.fee_admin import FeeAdministration

router = APIRouter()


@router.get("/fees/restaurants", response_model=NegotiatedFeeListResponse)
def list_fee_configs(
    request: Request,
    limit: Optional[int] = Query(None, gt=0, le=500),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """Restaurants on negotiated fees, most recently changed first (operator only)"""
    try:
        listed = FeeAdministration(db, caller).list_negotiated(limit)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

    configs = [
        NegotiatedFeeItem(
            **FeeConfigResponse.from_resolution(item.resolution).model_dump(),
            restaurant_name=item.restaurant_name,
            venue_name=item.resolution.venue_name,
            updated_at=item.updated_at,
        )
        for item in listed
    ]
    return NegotiatedFeeListResponse(configs=configs, count=len(configs))


@router.get("/fees/restaurants/{restaurant_id}", response_model=FeeConfigResponse)
def get_fee_config(
    restaurant_id: str,
    request: Request,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """Effective fee configuration (defaults, overrides and venue linkage merged)"""
    try:
        resolution = FeeAdministration(db, caller).effective_config(restaurant_id)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

    return FeeConfigResponse.from_resolution(resolution)


@router.put("/fees/restaurants/{restaurant_id}", response_model=FeeConfigResponse)
def set_fee_overrides(
    restaurant_id: str,
    request_body: FeeOverridesRequest,
    request: Request,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """Upsert negotiated fee overrides for a restaurant"""
    request_id = get_request_id(request)

    try:
        resolution = FeeAdministration(db, caller).set_overrides(
            restaurant_id, request_body.model_dump(exclude_none=True)
        )
        db.commit()
    except DomainException as e:
        db.rollback()
        raise to_http_exception(e, request_id)
    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return FeeConfigResponse.from_resolution(resolution)


@router.delete("/fees/restaurants/{restaurant_id}", response_model=FeeConfigResponse)
def clear_fee_overrides(
    restaurant_id: str,
    request: Request,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """Revert a restaurant to platform defaults"""
    request_id = get_request_id(request)

    try:
        resolution = FeeAdministration(db, caller).clear_overrides(restaurant_id)
        db.commit()
    except DomainException as e:
        db.rollback()
        raise to_http_exception(e, request_id)

    return FeeConfigResponse.from_resolution(resolution)


@router.put("/fees/venues/{venue_id}", response_model=VenueFeeResponse)
def sync_venue_fee(
    venue_id: str,
    request_body: VenueFeeRequest,
    request: Request,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """
    Propagate a venue's fee percentage to every active restaurant link.

    Chunks commit independently; the response reports each one.
    """
    try:
        report = FeeAdministration(db, caller).sync_venue_fee(venue_id, request_body.venue_fee_percentage)
    except DomainException as e:
        db.rollback()
        raise to_http_exception(e, get_request_id(request))

    return VenueFeeResponse(
        venue_id=venue_id,
        venue_fee_percentage=request_body.venue_fee_percentage,
        links_total=report.total,
        complete=report.complete,
        chunks=[
            ChunkSchema(index=c.index, size=len(c.ids), succeeded=c.succeeded, affected=c.affected, error=c.error)
            for c in report.chunks
        ],
    )
