"""Fee configuration merging: platform defaults < restaurant overrides < venue linkage"""

import logging
from dataclasses import fields, replace
from typing import Any, Dict, Optional

from vedi_payments.domain.models import FeeConfig

logger = logging.getLogger(__name__)

# Decided by the venue linkage, never by a stored override
LINKAGE_FIELDS = ("venue_enabled", "venue_fee_percentage")

OVERRIDABLE_FIELDS = tuple(f.name for f in fields(FeeConfig) if f.name not in LINKAGE_FIELDS)


def apply_overrides(base: FeeConfig, overrides: Optional[Dict[str, Any]]) -> FeeConfig:
    """Replace only the fields explicitly present (and not None) in the override document"""
    if not overrides:
        return base

    changes = {}
    for key, value in overrides.items():
        if key not in OVERRIDABLE_FIELDS:
            logger.warning("Ignoring unknown fee override", extra={"override_key": key})
            continue
        if value is None:
            continue
        changes[key] = value

    return replace(base, **changes)


def merge_fee_config(
    defaults: FeeConfig,
    overrides: Optional[Dict[str, Any]] = None,
    linked_venue: bool = False,
    agreed_venue_fee_percentage: Optional[float] = None,
) -> FeeConfig:
    """
    Build the effective fee configuration for a restaurant.

    The venue part is forced by the linkage: enabled iff an active link
    exists, with the link's agreed percentage (0 when none was agreed).
    """
    merged = apply_overrides(defaults, overrides)

    if linked_venue:
        venue_pct = agreed_venue_fee_percentage if agreed_venue_fee_percentage is not None else 0
        return replace(merged, venue_enabled=True, venue_fee_percentage=venue_pct)

    return replace(merged, venue_enabled=False, venue_fee_percentage=0)
