"""SQLAlchemy ORM models for the payment core and the records it reads"""

import uuid
from sqlalchemy import Column, String, BigInteger, Float, DateTime, ForeignKey, Text, JSON, UniqueConstraint
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


def new_id() -> str:
    return uuid.uuid4().hex


class Restaurant(Base):
    """Restaurant record owned by the business module; read here for fees and payouts"""

    __tablename__ = "restaurant"

    id = Column(String(64), primary_key=True, default=new_id)
    name = Column(Text, nullable=False)
    owner_id = Column(Text, nullable=True, index=True)
    payout_account_id = Column(Text, nullable=True)
    fee_overrides = Column(JSON(none_as_null=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())


class Venue(Base):
    """Venue hosting several restaurants"""

    __tablename__ = "venue"

    id = Column(String(64), primary_key=True, default=new_id)
    name = Column(Text, nullable=False)
    manager_id = Column(Text, nullable=True, index=True)
    payout_account_id = Column(Text, nullable=True)
    default_fee_percentage = Column(Float, nullable=False, default=0)  # links with no agreed fee use this
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class RestaurantVenueLink(Base):
    """Restaurant <-> venue linkage with its fee agreement"""

    __tablename__ = "restaurant_venue_link"
    __table_args__ = (UniqueConstraint("restaurant_id", "venue_id", name="uq_restaurant_venue"),)

    id = Column(String(64), primary_key=True, default=new_id)
    restaurant_id = Column(String(64), ForeignKey("restaurant.id", ondelete="CASCADE"), nullable=False, index=True)
    venue_id = Column(String(64), ForeignKey("venue.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(Text, nullable=False, default="pending")  # pending | active | rejected
    venue_fee_percentage = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())


class PaymentIntentRecord(Base):
    """Charge attempt: split, planned transfers and lifecycle state"""

    __tablename__ = "payment_intent"

    id = Column(String(64), primary_key=True, default=new_id)
    restaurant_id = Column(String(64), nullable=False, index=True)
    venue_id = Column(String(64), nullable=True)
    currency = Column(String(3), nullable=False)
    gross_cents = Column(BigInteger, nullable=False)
    split = Column(JSON, nullable=False)
    transfers = Column(JSON, nullable=False)
    state = Column(Text, nullable=False, default="created")  # created | completed | failed
    processor_intent_id = Column(Text, nullable=True, unique=True)
    failure_reason = Column(Text, nullable=True)
    order_details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)


class PaymentRecordRow(Base):
    """Immutable completed payment, at most one per intent"""

    __tablename__ = "payment"

    intent_id = Column(String(64), ForeignKey("payment_intent.id"), primary_key=True)
    restaurant_id = Column(String(64), nullable=False, index=True)
    venue_id = Column(String(64), nullable=True, index=True)
    currency = Column(String(3), nullable=False)
    split = Column(JSON, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=False, index=True)
