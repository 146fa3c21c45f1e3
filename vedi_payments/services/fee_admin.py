"""Operator fee administration: restaurant overrides and venue fee propagation"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vedi_payments.config import Settings, settings as default_settings
from vedi_payments.domain.exceptions import PermissionDeniedError, ValidationError
from vedi_payments.domain.fees import OVERRIDABLE_FIELDS, apply_overrides
from vedi_payments.domain.models import FEE_TYPES, Caller, FeeResolution
from vedi_payments.domain.splits import validate_fee_config
from vedi_payments.infrastructure.database.repositories import (
    RestaurantRepository,
    VenueLinkRepository,
    VenueRepository,
)
from vedi_payments.services.fee_resolver import FeeConfigResolver, platform_defaults
from vedi_payments.utils.batching import BatchReport, ChunkReport, chunked
from vedi_payments.utils.date_utils import as_utc

logger = logging.getLogger(__name__)


@dataclass
class NegotiatedFees:
    restaurant_name: str
    resolution: FeeResolution
    updated_at: Optional[datetime] = None


class FeeAdministration:
    """Reads and writes fee-related collaborator records"""

    def __init__(self, db: Session, caller: Caller, config: Optional[Settings] = None):
        self.db = db
        self.caller = caller
        self.settings = config or default_settings
        self.restaurants = RestaurantRepository(db)
        self.venues = VenueRepository(db)
        self.links = VenueLinkRepository(db)
        self.resolver = FeeConfigResolver(db, self.settings)

    def _require_operator(self, operation: str) -> None:
        if not self.caller.is_operator:
            raise PermissionDeniedError("Operator role required", operation=operation, caller_id=self.caller.caller_id)

    def effective_config(self, restaurant_id: str) -> FeeResolution:
        self._require_operator("get_fee_config")
        return self.resolver.resolve(restaurant_id)

    def list_negotiated(self, limit: Optional[int] = None) -> List[NegotiatedFees]:
        """Restaurants on negotiated fees with their effective config, newest change first"""
        self._require_operator("list_fee_configs")

        listed = []
        for restaurant in self.restaurants.list_with_overrides(limit or self.settings.fee_configs_limit):
            changed = restaurant.updated_at or restaurant.created_at
            listed.append(
                NegotiatedFees(
                    restaurant_name=restaurant.name,
                    resolution=self.resolver.resolve(restaurant.id),
                    updated_at=as_utc(changed) if changed else None,
                )
            )
        return listed

    def set_overrides(self, restaurant_id: str, overrides: Dict[str, Any]) -> FeeResolution:
        """
        Merge fee overrides into the restaurant's stored ones and mark them negotiated.

        Fields left out keep their stored value. The merged document is
        validated exactly as it will be stored, before anything is written.
        """
        self._require_operator("set_fee_overrides")

        unknown = sorted(set(overrides) - set(OVERRIDABLE_FIELDS))
        if unknown:
            raise ValidationError(f"Unknown fee fields: {', '.join(unknown)}", restaurant_id=restaurant_id)

        restaurant = self.restaurants.require(restaurant_id)
        document = dict(restaurant.fee_overrides or {})
        document.update({key: value for key, value in overrides.items() if value is not None})
        document.setdefault("negotiated", True)

        candidate = apply_overrides(platform_defaults(self.settings), document)
        validate_fee_config(candidate)
        if candidate.fee_type not in FEE_TYPES:
            raise ValidationError(f"Unknown fee type {candidate.fee_type!r}", restaurant_id=restaurant_id)

        self.restaurants.set_fee_overrides(restaurant_id, document)
        logger.info(
            "Fee overrides updated",
            extra={"restaurant_id": restaurant_id, "override_keys": sorted(document), "caller_id": self.caller.caller_id},
        )
        return self.resolver.resolve(restaurant_id)

    def clear_overrides(self, restaurant_id: str) -> FeeResolution:
        """Revert a restaurant to platform defaults"""
        self._require_operator("clear_fee_overrides")
        self.restaurants.clear_fee_overrides(restaurant_id)
        logger.info("Fee overrides cleared", extra={"restaurant_id": restaurant_id})
        return self.resolver.resolve(restaurant_id)

    def sync_venue_fee(self, venue_id: str, venue_fee_percentage: float) -> BatchReport:
        """
        Apply a venue's fee percentage to every active restaurant link.

        Links are updated in chunks of the store batch size. Each chunk
        commits on its own: a failed chunk is rolled back and reported, the
        chunks before it stay applied and the ones after it still run.
        """
        venue = self.venues.require(venue_id)
        if not (self.caller.is_operator or venue.manager_id == self.caller.caller_id):
            raise PermissionDeniedError("Caller does not manage venue", venue_id=venue_id, caller_id=self.caller.caller_id)

        if venue_fee_percentage is None or not 0 <= venue_fee_percentage <= 100:
            raise ValidationError(
                f"venue_fee_percentage must be between 0 and 100, got {venue_fee_percentage}",
                venue_id=venue_id,
            )

        venue.default_fee_percentage = venue_fee_percentage
        self.db.commit()

        report = BatchReport()
        link_ids = self.links.active_link_ids_for_venue(venue_id)

        for index, ids in enumerate(chunked(link_ids, self.settings.store_batch_size)):
            try:
                affected = self.links.set_fee_percentage(ids, venue_fee_percentage)
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(
                    f"Venue fee chunk failed: {e}",
                    extra={"venue_id": venue_id, "chunk_index": index, "chunk_size": len(ids)},
                )
                report.chunks.append(ChunkReport(index=index, ids=ids, succeeded=False, error=str(e)))
                continue

            report.chunks.append(ChunkReport(index=index, ids=ids, succeeded=True, affected=affected))

        logger.info(
            "Venue fee synced",
            extra={
                "venue_id": venue_id,
                "venue_fee_percentage": venue_fee_percentage,
                "links": report.total,
                "failed_chunks": len(report.failed_chunks),
            },
        )
        return report
