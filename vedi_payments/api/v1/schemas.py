"""Pydantic schemas for API request/response validation"""

from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from vedi_payments.config import settings
from vedi_payments.domain.analytics import to_major
from vedi_payments.domain.models import FeeResolution, PaymentIntent, PaymentRecord, PaymentSplit, PricingQuote


class ChargeRequest(BaseModel):
    """Request body for POST /v1/charges"""

    restaurant_id: str = Field(..., min_length=1, description="Restaurant being paid")
    gross_cents: int = Field(..., gt=0, description="Order total in minor units")
    currency: str = Field(
        default_factory=lambda: settings.default_currency,
        min_length=3,
        max_length=3,
        description="ISO 4217 currency code",
    )
    order_details: Dict[str, Any] = Field(default_factory=dict, description="Opaque order metadata")


class ChargeSplitSummary(BaseModel):
    """Customer-facing split in major units"""

    platform_fee_major: float
    venue_fee_major: float
    restaurant_amount_major: float
    venue_enabled: bool

    @classmethod
    def from_split(cls, split: PaymentSplit) -> "ChargeSplitSummary":
        return cls(
            platform_fee_major=to_major(split.platform_fee_cents),
            venue_fee_major=to_major(split.venue_fee_cents),
            restaurant_amount_major=to_major(split.restaurant_cents),
            venue_enabled=split.venue_enabled,
        )


class ChargeResponse(BaseModel):
    """Response for POST /v1/charges"""

    client_secret: str
    intent_id: str
    split: ChargeSplitSummary


class PreviewRequest(BaseModel):
    """Request body for POST /v1/charges/preview"""

    restaurant_id: str = Field(..., min_length=1)
    gross_cents: int = Field(..., gt=0)


class SplitSchema(BaseModel):
    """Full split in minor units"""

    gross_cents: int
    processor_fee_cents: int
    platform_fee_cents: int
    venue_fee_cents: int
    restaurant_cents: int
    net_cents: int
    venue_enabled: bool


class PreviewResponse(BaseModel):
    """Response for POST /v1/charges/preview"""

    restaurant_id: str
    venue_id: Optional[str] = None
    fee_type: str
    negotiated: bool
    split: SplitSchema


class QuoteRequest(BaseModel):
    """Request body for POST /v1/charges/quote"""

    restaurant_id: str = Field(..., min_length=1)
    subtotal_cents: int = Field(..., gt=0, description="Order subtotal before tax and fees")


class QuoteSchema(BaseModel):
    """Customer-facing price breakdown in minor units"""

    subtotal_cents: int
    tax_cents: int
    service_fee_cents: int
    venue_fee_cents: int
    processor_fee_cents: int
    total_cents: int
    desired_service_fee_cents: int
    desired_venue_fee_cents: int
    gross_up_cents: int
    service_fee_percentage: float
    venue_fee_percentage: float
    tax_percentage: float

    @classmethod
    def from_quote(cls, quote: PricingQuote) -> "QuoteSchema":
        return cls(gross_up_cents=quote.gross_up_cents, **asdict(quote))


class QuoteResponse(BaseModel):
    """Response for POST /v1/charges/quote"""

    restaurant_id: str
    venue_id: Optional[str] = None
    venue_name: Optional[str] = None
    fee_type: str
    negotiated: bool
    quote: QuoteSchema


class TransferSchema(BaseModel):
    destination_account_id: str
    amount_cents: int
    role: str
    status: str
    failure_reason: Optional[str] = None
    processor_transfer_id: Optional[str] = None


class SettlementResponse(BaseModel):
    """Response for POST /v1/settlements/{intent_id}/success"""

    intent_id: str
    success: bool
    transfers_attempted: int
    transfers_succeeded: int
    replayed: bool
    transfers: List[TransferSchema]


class FailureRequest(BaseModel):
    """Request body for POST /v1/settlements/{intent_id}/failure"""

    reason: str = Field(..., min_length=1, max_length=500)


class IntentResponse(BaseModel):
    """Response for GET /v1/intents/{intent_id}"""

    intent_id: str
    restaurant_id: str
    venue_id: Optional[str] = None
    currency: str
    state: str
    processor_intent_id: Optional[str] = None
    failure_reason: Optional[str] = None
    split: SplitSchema
    transfers: List[TransferSchema]
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_intent(cls, intent: PaymentIntent) -> "IntentResponse":
        return cls(
            intent_id=intent.intent_id,
            restaurant_id=intent.restaurant_id,
            venue_id=intent.venue_id,
            currency=intent.currency,
            state=intent.state,
            processor_intent_id=intent.processor_intent_id,
            failure_reason=intent.failure_reason,
            split=SplitSchema(**intent.split.to_dict()),
            transfers=[TransferSchema(**t.to_dict()) for t in intent.transfers],
            created_at=intent.created_at,
            completed_at=intent.completed_at,
        )


class PaymentItem(BaseModel):
    """Single completed payment"""

    intent_id: str
    restaurant_id: str
    venue_id: Optional[str] = None
    currency: str
    gross_cents: int
    processor_fee_cents: int
    platform_fee_cents: int
    venue_fee_cents: int
    restaurant_cents: int
    completed_at: datetime

    @classmethod
    def from_record(cls, record: PaymentRecord) -> "PaymentItem":
        return cls(
            intent_id=record.intent_id,
            restaurant_id=record.restaurant_id,
            venue_id=record.venue_id,
            currency=record.currency,
            gross_cents=record.split.gross_cents,
            processor_fee_cents=record.split.processor_fee_cents,
            platform_fee_cents=record.split.platform_fee_cents,
            venue_fee_cents=record.split.venue_fee_cents,
            restaurant_cents=record.split.restaurant_cents,
            completed_at=record.completed_at,
        )


class PaymentListResponse(BaseModel):
    """Response for the payment listing endpoints"""

    payments: List[PaymentItem]
    count: int
    totals: Optional[Dict[str, Any]] = None


class FeeOverridesRequest(BaseModel):
    """Request body for PUT /v1/fees/restaurants/{restaurant_id}; omitted fields keep their value"""

    fee_type: Optional[str] = Field(None, description="fixed | percentage | hybrid")
    service_fee_fixed: Optional[int] = Field(None, ge=0)
    service_fee_percentage: Optional[float] = Field(None, ge=0, le=100)
    processor_fee_percentage: Optional[float] = Field(None, ge=0, le=100)
    processor_flat_fee: Optional[int] = Field(None, ge=0)


class FeeConfigResponse(BaseModel):
    """Effective fee configuration of a restaurant"""

    restaurant_id: str
    venue_id: Optional[str] = None
    fee_type: str
    service_fee_fixed: int
    service_fee_percentage: float
    processor_fee_percentage: float
    processor_flat_fee: int
    venue_enabled: bool
    venue_fee_percentage: float
    negotiated: bool

    @classmethod
    def from_resolution(cls, resolution: FeeResolution) -> "FeeConfigResponse":
        config = resolution.config
        return cls(
            restaurant_id=resolution.restaurant_id,
            venue_id=resolution.venue_id,
            fee_type=config.fee_type,
            service_fee_fixed=config.service_fee_fixed,
            service_fee_percentage=config.service_fee_percentage,
            processor_fee_percentage=config.processor_fee_percentage,
            processor_flat_fee=config.processor_flat_fee,
            venue_enabled=config.venue_enabled,
            venue_fee_percentage=config.venue_fee_percentage,
            negotiated=config.negotiated,
        )


class VenueFeeRequest(BaseModel):
    """Request body for PUT /v1/fees/venues/{venue_id}"""

    venue_fee_percentage: float = Field(..., ge=0, le=100)


class ChunkSchema(BaseModel):
    index: int
    size: int
    succeeded: bool
    affected: int = 0
    error: Optional[str] = None


class VenueFeeResponse(BaseModel):
    """Per-chunk report of a venue fee propagation"""

    venue_id: str
    venue_fee_percentage: float
    links_total: int
    complete: bool
    chunks: List[ChunkSchema]


class NegotiatedFeeItem(FeeConfigResponse):
    """Negotiated fee configuration with the restaurant it belongs to"""

    restaurant_name: str
    venue_name: Optional[str] = None
    updated_at: Optional[datetime] = None


class NegotiatedFeeListResponse(BaseModel):
    """Response for GET /v1/fees/restaurants"""

    configs: List[NegotiatedFeeItem]
    count: int
