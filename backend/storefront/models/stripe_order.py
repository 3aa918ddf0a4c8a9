"""StripeOrder model"""
from sqlalchemy import Column, Integer, BigInteger, String, DateTime

from storefront.models.base import Base, utcnow


class StripeOrder(Base):
    """Audit record of a completed one-time checkout session, amounts in minor units"""
    __tablename__ = "stripe_orders"

    id = Column(Integer, primary_key=True, index=True)
    checkout_session_id = Column(String(255), unique=True, nullable=False, index=True)
    payment_intent_id = Column(String(255), nullable=True, index=True)
    customer_id = Column(String(255), nullable=False, index=True)
    amount_subtotal = Column(BigInteger, nullable=True)
    amount_total = Column(BigInteger, nullable=True)
    currency = Column(String(10), nullable=True)
    payment_status = Column(String(50), nullable=False)
    status = Column(String(50), nullable=False, default="completed")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
