"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

FEE_TYPES = ("fixed", "percentage", "hybrid")

INTENT_CREATED = "created"
INTENT_COMPLETED = "completed"
INTENT_FAILED = "failed"

TRANSFER_PENDING = "pending"
TRANSFER_SUCCEEDED = "succeeded"
TRANSFER_FAILED = "failed"

ROLE_RESTAURANT = "restaurant"
ROLE_VENUE = "venue"


@dataclass(frozen=True)
class FeeConfig:
    """Effective fee configuration for one restaurant"""

    fee_type: str  # "fixed" | "percentage" | "hybrid"
    service_fee_fixed: int  # minor units
    service_fee_percentage: float
    processor_fee_percentage: float
    processor_flat_fee: int  # minor units
    venue_enabled: bool
    venue_fee_percentage: float
    negotiated: bool = False


@dataclass(frozen=True)
class PaymentSplit:
    """Where each minor unit of a gross charge goes"""

    gross_cents: int
    processor_fee_cents: int
    platform_fee_cents: int
    venue_fee_cents: int
    restaurant_cents: int
    net_cents: int
    venue_enabled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PaymentSplit":
        """Rebuild a stored split; absent amounts read as zero"""
        data = data or {}
        return cls(
            gross_cents=int(data.get("gross_cents") or 0),
            processor_fee_cents=int(data.get("processor_fee_cents") or 0),
            platform_fee_cents=int(data.get("platform_fee_cents") or 0),
            venue_fee_cents=int(data.get("venue_fee_cents") or 0),
            restaurant_cents=int(data.get("restaurant_cents") or 0),
            net_cents=int(data.get("net_cents") or 0),
            venue_enabled=bool(data.get("venue_enabled", False)),
        )


@dataclass
class Transfer:
    """Single planned payout of part of a split"""

    destination_account_id: str
    amount_cents: int
    role: str  # "restaurant" | "venue"
    status: str = TRANSFER_PENDING
    failure_reason: Optional[str] = None
    processor_transfer_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transfer":
        return cls(
            destination_account_id=data["destination_account_id"],
            amount_cents=int(data.get("amount_cents") or 0),
            role=data.get("role", ROLE_RESTAURANT),
            status=data.get("status", TRANSFER_PENDING),
            failure_reason=data.get("failure_reason"),
            processor_transfer_id=data.get("processor_transfer_id"),
        )


@dataclass
class FeeResolution:
    """Snapshot read of everything a charge needs about its restaurant"""

    restaurant_id: str
    config: FeeConfig
    venue_id: Optional[str] = None
    restaurant_destination: Optional[str] = None
    venue_destination: Optional[str] = None
    venue_name: Optional[str] = None


@dataclass(frozen=True)
class PricingQuote:
    """
    Customer-facing price for a subtotal, grossed up so processor fees
    never eat into the platform or venue margin.

    Displayed fees include the processor gross-up; desired fees are what
    the platform and venue actually keep.
    """

    subtotal_cents: int
    tax_cents: int
    service_fee_cents: int
    venue_fee_cents: int
    processor_fee_cents: int
    total_cents: int
    desired_service_fee_cents: int
    desired_venue_fee_cents: int
    service_fee_percentage: float
    venue_fee_percentage: float
    tax_percentage: float

    @property
    def gross_up_cents(self) -> int:
        return (self.service_fee_cents + self.venue_fee_cents) - (
            self.desired_service_fee_cents + self.desired_venue_fee_cents
        )


@dataclass
class PaymentIntent:
    """Charge attempt with its split and planned transfers"""

    intent_id: str
    restaurant_id: str
    venue_id: Optional[str]
    currency: str
    split: PaymentSplit
    transfers: List[Transfer]
    state: str
    processor_intent_id: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass
class SettlementOutcome:
    """Result of executing the transfers of one intent"""

    intent_id: str
    transfers: List[Transfer] = field(default_factory=list)
    replayed: bool = False

    @property
    def attempted(self) -> int:
        return sum(1 for t in self.transfers if t.status != TRANSFER_PENDING)

    @property
    def succeeded(self) -> int:
        return sum(1 for t in self.transfers if t.status == TRANSFER_SUCCEEDED)

    @property
    def success(self) -> bool:
        # Every planned transfer must land, not just the restaurant's
        return all(t.status == TRANSFER_SUCCEEDED for t in self.transfers)


@dataclass(frozen=True)
class PaymentRecord:
    """Immutable completed payment used for analytics"""

    intent_id: str
    restaurant_id: str
    venue_id: Optional[str]
    currency: str
    split: PaymentSplit
    completed_at: datetime


@dataclass
class Caller:
    """Identity asserted by the upstream gateway"""

    caller_id: str
    role: str  # "operator" | "restaurant" | "venue" | "customer"

    @property
    def is_operator(self) -> bool:
        return self.role == "operator"
