"""Settlement: turn a confirmed charge into payouts, once"""

import asyncio
import logging
from dataclasses import replace

from sqlalchemy.orm import Session

from vedi_payments.domain.exceptions import (
    ExternalServiceError,
    IntentStateError,
    TransferError,
    ValidationError,
)
from vedi_payments.domain.models import (
    INTENT_COMPLETED,
    INTENT_CREATED,
    INTENT_FAILED,
    TRANSFER_FAILED,
    TRANSFER_PENDING,
    TRANSFER_SUCCEEDED,
    PaymentIntent,
    SettlementOutcome,
    Transfer,
)
from vedi_payments.infrastructure.clients.processor import ProcessorClient
from vedi_payments.infrastructure.database.repositories import (
    PaymentIntentRepository,
    PaymentRecordRepository,
)

logger = logging.getLogger(__name__)

PROCESSOR_SUCCEEDED = "succeeded"

# Tries per payout whose outcome is unknown (timeout, 5xx)
UNKNOWN_OUTCOME_ATTEMPTS = 2


class TransferExecutor:
    """
    Executes the planned payouts of one intent.

    Each destination is attempted independently and concurrently, keyed by
    (intent_id, destination) at the processor, so a failed payout never
    blocks its siblings and a redelivered event never pays twice. Nothing
    already paid is rolled back when a sibling fails; the failure stays on
    the intent for reconciliation.
    """

    def __init__(
        self,
        intents: PaymentIntentRepository,
        records: PaymentRecordRepository,
        processor: ProcessorClient,
    ):
        self.intents = intents
        self.records = records
        self.processor = processor

    async def execute(self, intent_id: str) -> SettlementOutcome:
        """
        Attempt every pending transfer, then complete the intent.

        A completed intent is replayed from storage without calling the
        processor; its payment record is re-asserted (insert-if-absent).
        While any payout outcome is still unknown the intent stays created
        with the results so far, so a redelivered event retries only those.

        Raises:
            NotFoundError: Unknown intent
            IntentStateError: Intent already failed
            ExternalServiceError: Some payout outcome still unknown
        """
        intent = self.intents.get(intent_id)

        if intent.state == INTENT_FAILED:
            raise IntentStateError(
                "Cannot settle a failed payment intent",
                intent_id=intent_id,
                operation="execute_transfers",
            )

        if intent.state == INTENT_COMPLETED:
            self.records.insert_if_absent(intent)
            logger.info("Settlement replayed", extra={"intent_id": intent_id})
            return SettlementOutcome(intent_id=intent_id, transfers=intent.transfers, replayed=True)

        pending = [t for t in intent.transfers if t.status == TRANSFER_PENDING]
        attempted = await asyncio.gather(*(self._attempt(intent, t) for t in pending))

        outcomes = {t.destination_account_id: t for t in attempted}
        results = [outcomes.get(t.destination_account_id, t) for t in intent.transfers]

        unresolved = [t for t in results if t.status == TRANSFER_PENDING]
        if unresolved:
            self.intents.record_transfers(intent_id, results)
            raise ExternalServiceError(
                "Payout outcome unknown; settlement left open for redelivery",
                intent_id=intent_id,
                operation="execute_transfers",
                pending_destinations=[t.destination_account_id for t in unresolved],
            )

        completed = self.intents.mark_completed(intent_id, results)
        self.records.insert_if_absent(completed)

        return SettlementOutcome(intent_id=intent_id, transfers=completed.transfers)

    async def _attempt(self, intent: PaymentIntent, transfer: Transfer) -> Transfer:
        """
        One payout; errors are collected on the transfer, never raised.

        A refused payout is final. A timeout or 5xx leaves the outcome
        unknown: it is retried under the same idempotency key and, if still
        unknown, the transfer stays pending.
        """
        context = {
            "intent_id": intent.intent_id,
            "restaurant_id": intent.restaurant_id,
            "venue_id": intent.venue_id,
            "destination": transfer.destination_account_id,
            "role": transfer.role,
            "amount_cents": transfer.amount_cents,
        }

        for attempt in range(1, UNKNOWN_OUTCOME_ATTEMPTS + 1):
            try:
                transfer_id = await self.processor.create_transfer(
                    intent_id=intent.intent_id,
                    destination_account_id=transfer.destination_account_id,
                    amount_cents=transfer.amount_cents,
                    currency=intent.currency,
                )
            except TransferError as e:
                logger.error(f"Transfer failed: {e}", extra=context)
                return replace(transfer, status=TRANSFER_FAILED, failure_reason=str(e))
            except ExternalServiceError as e:
                logger.warning(f"Transfer outcome unknown: {e}", extra={**context, "attempt": attempt})
                last_error = e
                continue

            return replace(transfer, status=TRANSFER_SUCCEEDED, processor_transfer_id=transfer_id, failure_reason=None)

        return replace(transfer, status=TRANSFER_PENDING, failure_reason=str(last_error))


class SettlementService:
    """State transitions driven by inbound processor events"""

    def __init__(self, db: Session, processor: ProcessorClient):
        self.intents = PaymentIntentRepository(db)
        self.records = PaymentRecordRepository(db)
        self.processor = processor
        self.executor = TransferExecutor(self.intents, self.records, processor)

    async def confirm_success(self, intent_id: str) -> SettlementOutcome:
        """
        Handle a charge-succeeded event.

        The processor is asked (an idempotent, retried read) whether the charge
        really succeeded before any money moves.

        Raises:
            NotFoundError: Unknown intent
            ValidationError: Processor does not report the charge as succeeded
            IntentStateError: Intent already failed
            ExternalServiceError: Processor unreachable for the check, or a
                payout outcome still unknown
        """
        intent = self.intents.get(intent_id)

        if intent.state == INTENT_CREATED:
            if not intent.processor_intent_id:
                raise IntentStateError(
                    "Payment intent has no processor charge",
                    intent_id=intent_id,
                    operation="confirm_success",
                )
            remote = await self.processor.retrieve_payment_intent(intent.processor_intent_id)
            status = remote.get("status")
            if status != PROCESSOR_SUCCEEDED:
                raise ValidationError(
                    f"Charge has not succeeded (processor status {status!r})",
                    intent_id=intent_id,
                    operation="confirm_success",
                )

        return await self.executor.execute(intent_id)

    def confirm_failure(self, intent_id: str, reason: str) -> PaymentIntent:
        """Handle a charge-failed event; repeating it is harmless"""
        return self.intents.mark_failed(intent_id, reason)

    def get_intent(self, intent_id: str) -> PaymentIntent:
        return self.intents.get(intent_id)
