"""StripeSubscription model"""
from sqlalchemy import Column, Integer, BigInteger, String, Boolean, DateTime

from storefront.models.base import Base, utcnow

NOT_STARTED = "not_started"


class StripeSubscription(Base):
    """Latest known subscription state per Stripe customer (one row per customer)"""
    __tablename__ = "stripe_subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(String(255), unique=True, nullable=False, index=True)
    subscription_id = Column(String(255), nullable=True)
    price_id = Column(String(255), nullable=True)
    current_period_start = Column(BigInteger, nullable=True)  # epoch seconds
    current_period_end = Column(BigInteger, nullable=True)  # epoch seconds
    cancel_at_period_end = Column(Boolean, default=False, nullable=False)
    payment_method_brand = Column(String(50), nullable=True)
    payment_method_last4 = Column(String(4), nullable=True)
    status = Column(String(50), nullable=False, default=NOT_STARTED)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
