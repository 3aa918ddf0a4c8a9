"""Product and CustomerProductAccess models"""
from sqlalchemy import Column, Integer, String, Text, Numeric, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from storefront.models.base import Base, utcnow, new_uuid


class Product(Base):
    """Catalog entry; bonus products are unlocked by purchasing requires_product_id"""
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=new_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    image_url = Column(String(1024), nullable=True)
    category = Column(String(100), nullable=True)
    download_url = Column(String(1024), nullable=True)
    stripe_price_id = Column(String(255), nullable=True, unique=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    is_featured = Column(Boolean, default=False, nullable=False)
    is_bonus = Column(Boolean, default=False, nullable=False)
    requires_product_id = Column(String(36), ForeignKey("products.id"), nullable=True)
    bonus_note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class CustomerProductAccess(Base):
    """Grant giving a customer email access to a product through an order"""
    __tablename__ = "customer_product_access"
    __table_args__ = (
        UniqueConstraint("email", "product_id", "order_id", name="uq_customer_product_access"),
    )

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    granted_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    product = relationship("Product")
