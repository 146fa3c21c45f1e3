"""Effective fee configuration for a restaurant"""

from sqlalchemy.orm import Session

from vedi_payments.config import Settings, settings as default_settings
from vedi_payments.domain.fees import merge_fee_config
from vedi_payments.domain.models import FeeConfig, FeeResolution
from vedi_payments.infrastructure.database.repositories import (
    RestaurantRepository,
    VenueLinkRepository,
    VenueRepository,
)


def platform_defaults(config: Settings) -> FeeConfig:
    """Platform-wide fee defaults from settings"""
    return FeeConfig(
        fee_type=config.default_fee_type,
        service_fee_fixed=config.default_service_fee_fixed,
        service_fee_percentage=config.default_service_fee_percentage,
        processor_fee_percentage=config.default_processor_fee_percentage,
        processor_flat_fee=config.default_processor_flat_fee,
        venue_enabled=False,
        venue_fee_percentage=0,
        negotiated=False,
    )


class FeeConfigResolver:
    """Read-only merge of defaults, restaurant overrides and venue linkage"""

    def __init__(self, db: Session, config: Settings | None = None):
        self.restaurants = RestaurantRepository(db)
        self.venues = VenueRepository(db)
        self.links = VenueLinkRepository(db)
        self.settings = config or default_settings

    def resolve(self, restaurant_id: str) -> FeeResolution:
        """
        Resolve fees and payout destinations in one read.

        An active link without an agreed percentage falls back to the
        venue's default fee percentage.

        Raises:
            NotFoundError: Restaurant does not exist
        """
        restaurant = self.restaurants.require(restaurant_id)
        link = self.links.active_link_for(restaurant_id)
        venue = self.venues.get(link.venue_id) if link else None

        agreed_pct = link.venue_fee_percentage if link else None
        if agreed_pct is None and venue is not None:
            agreed_pct = venue.default_fee_percentage

        config = merge_fee_config(
            platform_defaults(self.settings),
            overrides=restaurant.fee_overrides,
            linked_venue=link is not None,
            agreed_venue_fee_percentage=agreed_pct,
        )

        return FeeResolution(
            restaurant_id=restaurant_id,
            config=config,
            venue_id=link.venue_id if link else None,
            restaurant_destination=restaurant.payout_account_id,
            venue_destination=venue.payout_account_id if venue else None,
            venue_name=venue.name if venue else None,
        )
