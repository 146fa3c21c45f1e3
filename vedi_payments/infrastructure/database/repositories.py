"""Data access layer for payment intents, payment records and the records they reference"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vedi_payments.domain.exceptions import IntentStateError, NotFoundError
from vedi_payments.domain.models import (
    INTENT_COMPLETED,
    INTENT_CREATED,
    INTENT_FAILED,
    PaymentIntent,
    PaymentRecord,
    PaymentSplit,
    Transfer,
)
from vedi_payments.infrastructure.database.models import (
    PaymentIntentRecord,
    PaymentRecordRow,
    Restaurant,
    RestaurantVenueLink,
    Venue,
)
from vedi_payments.utils.batching import BatchReport, ChunkReport, chunked
from vedi_payments.utils.date_utils import as_utc, utc_now

logger = logging.getLogger(__name__)

LINK_ACTIVE = "active"


class RestaurantRepository:
    """Repository for restaurant records"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, restaurant_id: str) -> Optional[Restaurant]:
        return self.db.get(Restaurant, restaurant_id)

    def require(self, restaurant_id: str) -> Restaurant:
        restaurant = self.get(restaurant_id)
        if restaurant is None:
            raise NotFoundError("Restaurant not found", restaurant_id=restaurant_id)
        return restaurant

    def get_many(self, restaurant_ids: Sequence[str], batch_size: int) -> Tuple[Dict[str, Restaurant], BatchReport]:
        """
        Fetch restaurants in chunks of at most ``batch_size`` ids.

        A failing chunk is reported and skipped; the others still load.
        """
        found: Dict[str, Restaurant] = {}
        report = BatchReport()

        for index, ids in enumerate(chunked(list(dict.fromkeys(restaurant_ids)), batch_size)):
            try:
                rows = self.db.query(Restaurant).filter(Restaurant.id.in_(ids)).all()
            except SQLAlchemyError as e:
                logger.error(
                    f"Restaurant lookup chunk failed: {e}",
                    extra={"chunk_index": index, "chunk_size": len(ids)},
                )
                report.chunks.append(ChunkReport(index=index, ids=ids, succeeded=False, error=str(e)))
                continue

            for row in rows:
                found[row.id] = row
            report.chunks.append(ChunkReport(index=index, ids=ids, succeeded=True, affected=len(rows)))

        return found, report

    def list_with_overrides(self, limit: int) -> List[Restaurant]:
        """Restaurants on negotiated fees, most recently changed first"""
        return (
            self.db.query(Restaurant)
            .filter(Restaurant.fee_overrides.isnot(None))
            .order_by(func.coalesce(Restaurant.updated_at, Restaurant.created_at).desc(), Restaurant.id)
            .limit(limit)
            .all()
        )

    def set_fee_overrides(self, restaurant_id: str, overrides: Dict[str, Any]) -> Restaurant:
        """Replace the stored override document (a new dict, so the JSON change is tracked)"""
        restaurant = self.require(restaurant_id)
        restaurant.fee_overrides = dict(overrides)
        self.db.flush()
        return restaurant

    def clear_fee_overrides(self, restaurant_id: str) -> Restaurant:
        restaurant = self.require(restaurant_id)
        restaurant.fee_overrides = None
        self.db.flush()
        return restaurant


class VenueRepository:
    """Repository for venue records"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, venue_id: str) -> Optional[Venue]:
        return self.db.get(Venue, venue_id)

    def require(self, venue_id: str) -> Venue:
        venue = self.get(venue_id)
        if venue is None:
            raise NotFoundError("Venue not found", venue_id=venue_id)
        return venue


class VenueLinkRepository:
    """Repository for restaurant <-> venue linkage records"""

    def __init__(self, db: Session):
        self.db = db

    def active_link_for(self, restaurant_id: str) -> Optional[RestaurantVenueLink]:
        """Most recent active link of a restaurant, if any"""
        return (
            self.db.query(RestaurantVenueLink)
            .filter(
                RestaurantVenueLink.restaurant_id == restaurant_id,
                RestaurantVenueLink.status == LINK_ACTIVE,
            )
            .order_by(RestaurantVenueLink.created_at.desc())
            .first()
        )

    def active_link_ids_for_venue(self, venue_id: str) -> List[str]:
        rows = (
            self.db.query(RestaurantVenueLink.id)
            .filter(
                RestaurantVenueLink.venue_id == venue_id,
                RestaurantVenueLink.status == LINK_ACTIVE,
            )
            .order_by(RestaurantVenueLink.id)
            .all()
        )
        return [row.id for row in rows]

    def set_fee_percentage(self, link_ids: Sequence[str], venue_fee_percentage: float) -> int:
        """Update the agreed venue fee on the given links; returns rows touched"""
        updated = (
            self.db.query(RestaurantVenueLink)
            .filter(RestaurantVenueLink.id.in_(list(link_ids)))
            .update({RestaurantVenueLink.venue_fee_percentage: venue_fee_percentage}, synchronize_session=False)
        )
        self.db.flush()
        return updated


def _to_intent(row: PaymentIntentRecord) -> PaymentIntent:
    return PaymentIntent(
        intent_id=row.id,
        restaurant_id=row.restaurant_id,
        venue_id=row.venue_id,
        currency=row.currency,
        split=PaymentSplit.from_dict(row.split),
        transfers=[Transfer.from_dict(t) for t in row.transfers or []],
        state=row.state,
        processor_intent_id=row.processor_intent_id,
        failure_reason=row.failure_reason,
        created_at=as_utc(row.created_at) if row.created_at else None,
        completed_at=as_utc(row.completed_at) if row.completed_at else None,
    )


class PaymentIntentRepository:
    """
    Persists charge attempts and guards their lifecycle.

    created -> completed | failed, exactly once. Repeating the transition
    that already happened is a no-op; switching terminal states is an error.
    """

    def __init__(self, db: Session):
        self.db = db

    def _load(self, intent_id: str, lock: bool = False) -> PaymentIntentRecord:
        query = self.db.query(PaymentIntentRecord).filter(PaymentIntentRecord.id == intent_id)
        if lock:
            query = query.with_for_update()
        row = query.first()
        if row is None:
            raise NotFoundError("Payment intent not found", intent_id=intent_id)
        return row

    def create(
        self,
        split: PaymentSplit,
        transfers: List[Transfer],
        restaurant_id: str,
        currency: str,
        venue_id: Optional[str] = None,
        order_details: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Persist a new intent in state=created and return its id"""
        row = PaymentIntentRecord(
            restaurant_id=restaurant_id,
            venue_id=venue_id,
            currency=currency.lower(),
            gross_cents=split.gross_cents,
            split=split.to_dict(),
            transfers=[t.to_dict() for t in transfers],
            state=INTENT_CREATED,
            order_details=order_details or {},
        )
        self.db.add(row)
        self.db.flush()  # Get ID without committing
        return row.id

    def get(self, intent_id: str) -> PaymentIntent:
        return _to_intent(self._load(intent_id))

    def attach_processor_intent(self, intent_id: str, processor_intent_id: str) -> None:
        row = self._load(intent_id)
        row.processor_intent_id = processor_intent_id
        self.db.flush()

    def record_transfers(self, intent_id: str, transfer_results: List[Transfer]) -> PaymentIntent:
        """Store transfer results of an intent that stays open"""
        row = self._load(intent_id, lock=True)

        if row.state != INTENT_CREATED:
            raise IntentStateError(
                f"Cannot update transfers of a {row.state} payment intent",
                intent_id=intent_id,
                operation="record_transfers",
            )

        row.transfers = [t.to_dict() for t in transfer_results]
        self.db.flush()
        return _to_intent(row)

    def mark_completed(self, intent_id: str, transfer_results: List[Transfer]) -> PaymentIntent:
        row = self._load(intent_id, lock=True)

        if row.state == INTENT_COMPLETED:
            return _to_intent(row)
        if row.state == INTENT_FAILED:
            raise IntentStateError(
                "Cannot complete a failed payment intent",
                intent_id=intent_id,
                operation="mark_completed",
            )

        row.transfers = [t.to_dict() for t in transfer_results]
        row.state = INTENT_COMPLETED
        row.completed_at = utc_now()
        self.db.flush()
        return _to_intent(row)

    def mark_failed(self, intent_id: str, reason: str) -> PaymentIntent:
        row = self._load(intent_id, lock=True)

        if row.state == INTENT_FAILED:
            return _to_intent(row)
        if row.state == INTENT_COMPLETED:
            raise IntentStateError(
                "Cannot fail a completed payment intent",
                intent_id=intent_id,
                operation="mark_failed",
            )

        row.state = INTENT_FAILED
        row.failure_reason = reason
        self.db.flush()
        return _to_intent(row)


def _to_record(row: PaymentRecordRow) -> PaymentRecord:
    return PaymentRecord(
        intent_id=row.intent_id,
        restaurant_id=row.restaurant_id,
        venue_id=row.venue_id,
        currency=row.currency,
        split=PaymentSplit.from_dict(row.split),
        completed_at=as_utc(row.completed_at),
    )


class PaymentRecordRepository:
    """Completed payments for analytics; one immutable row per intent"""

    def __init__(self, db: Session):
        self.db = db

    def insert_if_absent(self, intent: PaymentIntent) -> bool:
        """Write the record for a completed intent; False when it already exists"""
        if self.db.get(PaymentRecordRow, intent.intent_id) is not None:
            return False

        # intent_id is the primary key, so a concurrent duplicate fails the commit
        self.db.add(
            PaymentRecordRow(
                intent_id=intent.intent_id,
                restaurant_id=intent.restaurant_id,
                venue_id=intent.venue_id,
                currency=intent.currency,
                split=intent.split.to_dict(),
                completed_at=intent.completed_at or utc_now(),
            )
        )
        self.db.flush()
        return True

    def get(self, intent_id: str) -> Optional[PaymentRecord]:
        row = self.db.get(PaymentRecordRow, intent_id)
        return _to_record(row) if row else None

    def _filtered(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        restaurant_id: Optional[str] = None,
        venue_id: Optional[str] = None,
    ):
        query = self.db.query(PaymentRecordRow)
        if start is not None:
            query = query.filter(PaymentRecordRow.completed_at >= start)
        if end is not None:
            query = query.filter(PaymentRecordRow.completed_at <= end)
        if restaurant_id:
            query = query.filter(PaymentRecordRow.restaurant_id == restaurant_id)
        if venue_id:
            query = query.filter(PaymentRecordRow.venue_id == venue_id)
        return query

    def scan(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        restaurant_id: Optional[str] = None,
        venue_id: Optional[str] = None,
        chunk_size: int = 500,
    ) -> Iterator[PaymentRecord]:
        """Stream records in completion order for a single aggregation pass"""
        query = self._filtered(start, end, restaurant_id, venue_id).order_by(
            PaymentRecordRow.completed_at, PaymentRecordRow.intent_id
        )
        for row in query.yield_per(chunk_size):
            yield _to_record(row)

    def list_recent(
        self,
        limit: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        restaurant_id: Optional[str] = None,
        venue_id: Optional[str] = None,
    ) -> List[PaymentRecord]:
        """Newest first, at most ``limit`` records"""
        rows = (
            self._filtered(start, end, restaurant_id, venue_id)
            .order_by(PaymentRecordRow.completed_at.desc())
            .limit(limit)
            .all()
        )
        return [_to_record(row) for row in rows]
