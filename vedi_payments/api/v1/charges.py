"""POST /v1/charges - charge creation with payment split"""

import time
import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from vedi_payments.api.v1.schemas import (
    ChargeRequest,
    ChargeResponse,
    ChargeSplitSummary,
    PreviewRequest,
    PreviewResponse,
    QuoteRequest,
    QuoteResponse,
    QuoteSchema,
    SplitSchema,
)
from vedi_payments.api.dependencies import get_processor_client, get_request_id
from vedi_payments.api.errors import to_http_exception
from vedi_payments.infrastructure.database.session import get_db
from vedi_payments.infrastructure.clients.processor import ProcessorClient
from vedi_payments.services.charges import ChargeService
from vedi_payments.domain.exceptions import DomainException, ExternalServiceError, SplitIntegrityError
from vedi_payments.infrastructure.observability.metrics import charge_counter, record_charge
from vedi_payments.infrastructure.observability.logging import log_charge

router = APIRouter()


@router.post("/charges", response_model=ChargeResponse)
async def create_charge(
    request_body: ChargeRequest,
    request: Request,
    db: Session = Depends(get_db),
    processor: ProcessorClient = Depends(get_processor_client),
):
    """
    Create a processor charge for an order, with its payment split.

    Flow:
    1. Resolve the restaurant's effective fee config and venue linkage
    2. Compute and verify the split
    3. Persist the payment intent with its planned transfers
    4. Open the processor charge
    5. Return the client secret and the customer-facing split
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        result = await ChargeService(db, processor).create_charge(
            restaurant_id=request_body.restaurant_id,
            gross_cents=request_body.gross_cents,
            currency=request_body.currency.lower(),
            order_details=request_body.order_details,
        )
        db.commit()

        duration_ms = (time.time() - start_time) * 1000
        record_charge(result.split.gross_cents)
        log_charge(
            request_id,
            result.intent_id,
            request_body.restaurant_id,
            result.split.gross_cents,
            result.split.venue_fee_cents,
            duration_ms,
        )

        return ChargeResponse(
            client_secret=result.client_secret,
            intent_id=result.intent_id,
            split=ChargeSplitSummary.from_split(result.split),
        )

    except ExternalServiceError as e:
        # The intent was marked failed; keep that state
        db.commit()
        charge_counter.labels(outcome="processor_error").inc()
        raise to_http_exception(e, request_id)

    except SplitIntegrityError as e:
        db.rollback()
        charge_counter.labels(outcome="integrity_error").inc()
        raise to_http_exception(e, request_id)

    except DomainException as e:
        db.rollback()
        charge_counter.labels(outcome="rejected").inc()
        raise to_http_exception(e, request_id)

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/charges/preview", response_model=PreviewResponse)
def preview_charge(
    request_body: PreviewRequest,
    request: Request,
    db: Session = Depends(get_db),
    processor: ProcessorClient = Depends(get_processor_client),
):
    """Split a prospective charge without persisting or charging anything"""
    try:
        resolution, split = ChargeService(db, processor).preview(request_body.restaurant_id, request_body.gross_cents)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

    return PreviewResponse(
        restaurant_id=resolution.restaurant_id,
        venue_id=resolution.venue_id,
        fee_type=resolution.config.fee_type,
        negotiated=resolution.config.negotiated,
        split=SplitSchema(**split.to_dict()),
    )


@router.post("/charges/quote", response_model=QuoteResponse)
def quote_charge(
    request_body: QuoteRequest,
    request: Request,
    db: Session = Depends(get_db),
    processor: ProcessorClient = Depends(get_processor_client),
):
    """Customer-facing price for an order, with the processor fee grossed up"""
    try:
        resolution, quote = ChargeService(db, processor).quote(request_body.restaurant_id, request_body.subtotal_cents)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

    return QuoteResponse(
        restaurant_id=resolution.restaurant_id,
        venue_id=resolution.venue_id,
        venue_name=resolution.venue_name,
        fee_type=resolution.config.fee_type,
        negotiated=resolution.config.negotiated,
        quote=QuoteSchema.from_quote(quote),
    )
