"""SQLAlchemy models package - imports all models so they register with Base.metadata"""
from storefront.models.base import Base
from storefront.models.subscription import StripeSubscription
from storefront.models.stripe_order import StripeOrder
from storefront.models.product import Product, CustomerProductAccess
from storefront.models.order import Order, OrderItem
from storefront.models.consulting import ConsultingService, ConsultationBooking

__all__ = [
    "Base", "StripeSubscription", "StripeOrder", "Product", "CustomerProductAccess",
    "Order", "OrderItem", "ConsultingService", "ConsultationBooking"
]
