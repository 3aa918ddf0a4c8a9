"""Order and OrderItem models"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from storefront.models.base import Base, utcnow, new_uuid


class Order(Base):
    """Product purchase backing the bonus-access system"""
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=new_uuid)
    email = Column(String(255), nullable=False, index=True)
    total_amount = Column(Numeric(10, 2), nullable=False)
    payment_status = Column(String(50), nullable=False, default="paid")
    payment_intent_id = Column(String(255), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)

    order = relationship("Order", back_populates="items")
