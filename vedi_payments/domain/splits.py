"""Payment split calculation - core business logic for settlement"""

from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from vedi_payments.domain.models import (
    FEE_TYPES,
    ROLE_RESTAURANT,
    ROLE_VENUE,
    FeeConfig,
    PaymentSplit,
    PricingQuote,
    Transfer,
)
from vedi_payments.domain.exceptions import ValidationError, SplitIntegrityError

# Allowed drift between the sum of the parts and the gross amount
ROUNDING_TOLERANCE_CENTS = 1


def percent_of(amount_cents: int, percentage: float) -> int:
    """
    Take a percentage of a minor-unit amount, rounded half-up to a whole unit.

    The percentage goes through its decimal string form so 2.9 stays 2.9
    instead of 2.899999... as a binary float.

    Example:
        percent_of(9680, 3.5) -> 338.8 -> 339
        percent_of(9680, 1)   -> 96.8  -> 97
    """
    exact = Decimal(amount_cents) * Decimal(str(percentage)) / Decimal(100)
    return int(exact.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def validate_fee_config(config: FeeConfig) -> None:
    """Reject out-of-range fee settings instead of clamping them"""
    for name in ("service_fee_percentage", "processor_fee_percentage", "venue_fee_percentage"):
        value = getattr(config, name)
        if value is None or not 0 <= value <= 100:
            raise ValidationError(f"{name} must be between 0 and 100, got {value}", field=name)

    for name in ("service_fee_fixed", "processor_flat_fee"):
        value = getattr(config, name)
        if value is None or value < 0:
            raise ValidationError(f"{name} must be non-negative, got {value}", field=name)


def calculate_platform_fee(net_cents: int, config: FeeConfig) -> int:
    """Platform commission by fee type; unknown types are an error, not a default"""
    if config.fee_type == "fixed":
        return config.service_fee_fixed
    elif config.fee_type == "percentage":
        return percent_of(net_cents, config.service_fee_percentage)
    elif config.fee_type == "hybrid":
        return config.service_fee_fixed + percent_of(net_cents, config.service_fee_percentage)

    raise ValidationError(
        f"Unknown fee type {config.fee_type!r}, expected one of {', '.join(FEE_TYPES)}",
        field="fee_type",
    )


def verify_split_integrity(split: PaymentSplit) -> None:
    """
    Check that the parts reconstruct the gross amount.

    Raises:
        SplitIntegrityError: sum off by more than the rounding tolerance,
            a negative part, or a venue fee on a venue-less split
    """
    parts = (
        split.processor_fee_cents,
        split.platform_fee_cents,
        split.venue_fee_cents,
        split.restaurant_cents,
    )
    total = sum(parts)
    context = {
        "gross_cents": split.gross_cents,
        "calculated_cents": total,
        "difference_cents": total - split.gross_cents,
    }

    if abs(total - split.gross_cents) > ROUNDING_TOLERANCE_CENTS:
        raise SplitIntegrityError("Split parts do not add up to gross amount", **context)

    if any(part < 0 for part in parts) or split.net_cents < 0:
        raise SplitIntegrityError("Split contains a negative amount", **context)

    if split.venue_fee_cents > 0 and not split.venue_enabled:
        raise SplitIntegrityError("Venue fee present while venue is disabled", **context)


def compute_split(gross_cents: int, config: FeeConfig) -> PaymentSplit:
    """
    Split a gross charge between processor, platform, venue and restaurant.

    Steps (order matters):
    1. gross must be positive
    2. processor fee = round(gross * pct) + flat fee
    3. net = gross - processor fee, must not be negative
    4. platform fee from the net, by fee type
    5. venue fee from the net, only when the venue is enabled
    6. restaurant keeps the remainder, must not be negative
    7. integrity check on the assembled split

    Pure: the same (gross, config) always gives an equal PaymentSplit.

    Example:
        10000 gross, 2.9% + 30 processor, 3.5% platform, no venue
        processor 320, net 9680, platform 339, restaurant 9341
    """
    if isinstance(gross_cents, bool) or not isinstance(gross_cents, int) or gross_cents <= 0:
        raise ValidationError(f"Gross amount must be a positive integer, got {gross_cents!r}")

    validate_fee_config(config)

    processor_fee = percent_of(gross_cents, config.processor_fee_percentage) + config.processor_flat_fee
    net = gross_cents - processor_fee
    if net < 0:
        raise ValidationError(
            "Processor fees exceed the charge",
            gross_cents=gross_cents,
            processor_fee_cents=processor_fee,
        )

    platform_fee = calculate_platform_fee(net, config)
    venue_fee = percent_of(net, config.venue_fee_percentage) if config.venue_enabled else 0

    restaurant_amount = net - platform_fee - venue_fee
    if restaurant_amount < 0:
        raise ValidationError(
            "Fees exceed the amount left for the restaurant",
            gross_cents=gross_cents,
            platform_fee_cents=platform_fee,
            venue_fee_cents=venue_fee,
        )

    split = PaymentSplit(
        gross_cents=gross_cents,
        processor_fee_cents=processor_fee,
        platform_fee_cents=platform_fee,
        venue_fee_cents=venue_fee,
        restaurant_cents=restaurant_amount,
        net_cents=net,
        venue_enabled=config.venue_enabled,
    )
    verify_split_integrity(split)
    return split


def plan_transfers(
    split: PaymentSplit,
    restaurant_destination: Optional[str],
    venue_destination: Optional[str] = None,
) -> List[Transfer]:
    """
    Build one pending transfer per destination with a nonzero amount.

    Platform and processor fees stay on the platform account, so they
    never produce a transfer.

    Raises:
        ValidationError: a destination that is owed money has no payout account
    """
    transfers = []

    if split.restaurant_cents > 0:
        if not restaurant_destination:
            raise ValidationError("Restaurant has no payout destination")
        transfers.append(
            Transfer(
                destination_account_id=restaurant_destination,
                amount_cents=split.restaurant_cents,
                role=ROLE_RESTAURANT,
            )
        )

    if split.venue_fee_cents > 0:
        if not venue_destination:
            raise ValidationError("Venue has no payout destination")
        # Transfers are keyed by (intent, destination)
        if venue_destination == restaurant_destination:
            raise ValidationError("Venue and restaurant share a payout destination")
        transfers.append(
            Transfer(
                destination_account_id=venue_destination,
                amount_cents=split.venue_fee_cents,
                role=ROLE_VENUE,
            )
        )

    return transfers


def quote_protected_price(subtotal_cents: int, config: FeeConfig, tax_percentage: float = 0) -> PricingQuote:
    """
    Price an order so the customer covers the processor fee.

    Steps:
    1. tax, desired platform fee and desired venue fee, all from the subtotal
    2. base = subtotal + tax + desired fees
    3. total = (base + processor flat fee) / (1 - processor percentage)
    4. the venue fee is shown as agreed; the service fee absorbs the gross-up

    The processor fee on the total then leaves the base, give or take
    rounding, so neither margin is reduced.

    Example:
        10000 subtotal, no tax, 3.5% platform, 2.9% + 30 processor, no venue
        base 10350, total 10690, service fee shown 690, processor fee 340
    """
    if isinstance(subtotal_cents, bool) or not isinstance(subtotal_cents, int) or subtotal_cents <= 0:
        raise ValidationError(f"Subtotal must be a positive integer, got {subtotal_cents!r}")

    validate_fee_config(config)
    if config.processor_fee_percentage >= 100:
        raise ValidationError(
            "processor_fee_percentage must be below 100 to price an order",
            field="processor_fee_percentage",
        )
    if tax_percentage is None or not 0 <= tax_percentage <= 100:
        raise ValidationError(f"tax_percentage must be between 0 and 100, got {tax_percentage}", field="tax_percentage")

    tax = percent_of(subtotal_cents, tax_percentage)
    desired_service_fee = calculate_platform_fee(subtotal_cents, config)
    desired_venue_fee = percent_of(subtotal_cents, config.venue_fee_percentage) if config.venue_enabled else 0
    base = subtotal_cents + tax + desired_service_fee + desired_venue_fee

    kept = Decimal(1) - Decimal(str(config.processor_fee_percentage)) / Decimal(100)
    exact_total = Decimal(base + config.processor_flat_fee) / kept
    total = int(exact_total.quantize(Decimal(1), rounding=ROUND_HALF_UP))

    service_fee = total - subtotal_cents - tax - desired_venue_fee
    service_pct = (Decimal(service_fee) * 100 / Decimal(subtotal_cents)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    return PricingQuote(
        subtotal_cents=subtotal_cents,
        tax_cents=tax,
        service_fee_cents=service_fee,
        venue_fee_cents=desired_venue_fee,
        processor_fee_cents=percent_of(total, config.processor_fee_percentage) + config.processor_flat_fee,
        total_cents=total,
        desired_service_fee_cents=desired_service_fee,
        desired_venue_fee_cents=desired_venue_fee,
        service_fee_percentage=float(service_pct),
        venue_fee_percentage=config.venue_fee_percentage if config.venue_enabled else 0,
        tax_percentage=tax_percentage,
    )
