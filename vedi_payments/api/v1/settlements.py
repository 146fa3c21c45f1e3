"""Settlement events and intent lookup"""

import time
import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from vedi_payments.api.v1.schemas import FailureRequest, IntentResponse, SettlementResponse, TransferSchema
from vedi_payments.api.dependencies import get_processor_client, get_request_id
from vedi_payments.api.errors import to_http_exception
from vedi_payments.infrastructure.database.session import get_db
from vedi_payments.infrastructure.clients.processor import ProcessorClient
from vedi_payments.services.settlement import SettlementService
from vedi_payments.domain.exceptions import DomainException, ExternalServiceError
from vedi_payments.infrastructure.observability.metrics import record_settlement, settlement_counter
from vedi_payments.infrastructure.observability.logging import log_settlement

router = APIRouter()


@router.post("/settlements/{intent_id}/success", response_model=SettlementResponse)
async def confirm_success(
    intent_id: str,
    request: Request,
    db: Session = Depends(get_db),
    processor: ProcessorClient = Depends(get_processor_client),
):
    """
    Inbound charge-succeeded event.

    Pays out every planned transfer once and records the completed payment.
    Redelivery of the event returns the stored outcome without paying again.
    A payout whose outcome is still unknown answers 503 so the event is
    redelivered; the next delivery retries only the unresolved payouts.
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        outcome = await SettlementService(db, processor).confirm_success(intent_id)
        db.commit()

        duration_ms = (time.time() - start_time) * 1000
        record_settlement(outcome.transfers, outcome.replayed)
        log_settlement(request_id, intent_id, outcome.attempted, outcome.succeeded, outcome.replayed, duration_ms)

        return SettlementResponse(
            intent_id=intent_id,
            success=outcome.success,
            transfers_attempted=outcome.attempted,
            transfers_succeeded=outcome.succeeded,
            replayed=outcome.replayed,
            transfers=[TransferSchema(**t.to_dict()) for t in outcome.transfers],
        )

    except ExternalServiceError as e:
        # Keep payouts that already landed; the processor redelivers on 503
        db.commit()
        settlement_counter.labels(outcome="retry").inc()
        raise to_http_exception(e, request_id)

    except DomainException as e:
        db.rollback()
        raise to_http_exception(e, request_id)

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id, "intent_id": intent_id})
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/settlements/{intent_id}/failure", response_model=IntentResponse)
def confirm_failure(
    intent_id: str,
    request_body: FailureRequest,
    request: Request,
    db: Session = Depends(get_db),
    processor: ProcessorClient = Depends(get_processor_client),
):
    """Inbound charge-failed event; repeating it is harmless"""
    request_id = get_request_id(request)

    try:
        intent = SettlementService(db, processor).confirm_failure(intent_id, request_body.reason)
        db.commit()
    except DomainException as e:
        db.rollback()
        raise to_http_exception(e, request_id)

    logging.info("Payment intent failed", extra={"request_id": request_id, "intent_id": intent_id})
    return IntentResponse.from_intent(intent)


@router.get("/intents/{intent_id}", response_model=IntentResponse)
def get_intent(
    intent_id: str,
    request: Request,
    db: Session = Depends(get_db),
    processor: ProcessorClient = Depends(get_processor_client),
):
    """Current state, split and transfer results of a payment intent"""
    try:
        intent = SettlementService(db, processor).get_intent(intent_id)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

    return IntentResponse.from_intent(intent)
