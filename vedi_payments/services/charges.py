"""Charge creation: resolve fees, split, persist the intent, open the processor charge"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from vedi_payments.config import Settings, settings as default_settings
from vedi_payments.domain.exceptions import ExternalServiceError, SplitIntegrityError
from vedi_payments.domain.models import FeeResolution, PaymentSplit, PricingQuote
from vedi_payments.domain.splits import compute_split, plan_transfers, quote_protected_price
from vedi_payments.infrastructure.clients.processor import ProcessorClient
from vedi_payments.infrastructure.database.repositories import PaymentIntentRepository
from vedi_payments.infrastructure.observability.logging import log_split_integrity_failure
from vedi_payments.infrastructure.observability.metrics import split_integrity_failure_counter
from vedi_payments.services.fee_resolver import FeeConfigResolver

logger = logging.getLogger(__name__)


@dataclass
class ChargeResult:
    intent_id: str
    client_secret: str
    processor_intent_id: str
    split: PaymentSplit


class ChargeService:
    """Charge-creation workflow; nothing reaches the processor unless the split is valid"""

    def __init__(self, db: Session, processor: ProcessorClient, config: Optional[Settings] = None):
        self.db = db
        self.settings = config or default_settings
        self.resolver = FeeConfigResolver(db, self.settings)
        self.intents = PaymentIntentRepository(db)
        self.processor = processor

    def preview(self, restaurant_id: str, gross_cents: int) -> Tuple[FeeResolution, PaymentSplit]:
        """Split a prospective charge without persisting anything"""
        resolution = self.resolver.resolve(restaurant_id)
        return resolution, self._split(resolution, gross_cents)

    def quote(self, restaurant_id: str, subtotal_cents: int) -> Tuple[FeeResolution, PricingQuote]:
        """Customer-facing price for an order subtotal, processor fee grossed up"""
        resolution = self.resolver.resolve(restaurant_id)
        return resolution, quote_protected_price(subtotal_cents, resolution.config, self.settings.quote_tax_percentage)

    def _split(self, resolution: FeeResolution, gross_cents: int) -> PaymentSplit:
        try:
            return compute_split(gross_cents, resolution.config)
        except SplitIntegrityError as e:
            split_integrity_failure_counter.inc()
            log_split_integrity_failure(resolution.restaurant_id, e.context)
            raise

    async def create_charge(
        self,
        restaurant_id: str,
        gross_cents: int,
        currency: str,
        order_details: Optional[Dict[str, Any]] = None,
    ) -> ChargeResult:
        """
        Create a charge with its payment split.

        Flow:
        1. Resolve fee config and payout destinations (one snapshot)
        2. Compute and validate the split
        3. Plan one transfer per nonzero destination
        4. Persist and commit the intent (state=created)
        5. Open the processor charge and attach its id

        The intent is committed before the processor is called, so a charge
        that exists at the processor always has a stored intent behind its
        metadata. Attaching the processor id is left to the caller's commit.

        Raises:
            NotFoundError, ValidationError, SplitIntegrityError: before any charge
            ExternalServiceError: processor failed; the intent is marked failed
        """
        resolution = self.resolver.resolve(restaurant_id)
        split = self._split(resolution, gross_cents)
        transfers = plan_transfers(split, resolution.restaurant_destination, resolution.venue_destination)

        intent_id = self.intents.create(
            split=split,
            transfers=transfers,
            restaurant_id=restaurant_id,
            currency=currency,
            venue_id=resolution.venue_id,
            order_details=order_details,
        )
        self.db.commit()

        try:
            processor_intent = await self.processor.create_payment_intent(
                amount_cents=split.gross_cents,
                currency=currency,
                idempotency_key=f"intent:{intent_id}",
                metadata={
                    "intent_id": intent_id,
                    "restaurant_id": restaurant_id,
                    "venue_id": resolution.venue_id,
                    "platform_fee_cents": split.platform_fee_cents,
                    "venue_fee_cents": split.venue_fee_cents,
                    "restaurant_cents": split.restaurant_cents,
                },
            )
        except ExternalServiceError as e:
            self.intents.mark_failed(intent_id, f"processor: {e}")
            e.context.setdefault("intent_id", intent_id)
            e.context.setdefault("restaurant_id", restaurant_id)
            raise

        self.intents.attach_processor_intent(intent_id, processor_intent["id"])

        return ChargeResult(
            intent_id=intent_id,
            client_secret=processor_intent["client_secret"],
            processor_intent_id=processor_intent["id"],
            split=split,
        )
