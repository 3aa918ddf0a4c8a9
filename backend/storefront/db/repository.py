"""Query, upsert and procedure interface over the storefront tables

Every write commits its own transaction. SQLAlchemy errors are rolled back and
re-raised so callers decide whether a failure aborts their flow.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from storefront.core.exceptions import ServiceNotFoundError
from storefront.models import (
    ConsultationBooking, ConsultingService, CustomerProductAccess, Order,
    OrderItem, Product, StripeOrder, StripeSubscription
)
from storefront.models.base import utcnow

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class StorefrontRepository:
    """Database access for one unit of work, bound to a single session"""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def upsert_subscription(self, customer_id: str, **fields: Any) -> None:
        """Insert or update the subscription row keyed by customer_id.

        Uses INSERT ... ON CONFLICT (customer_id) DO UPDATE so concurrent
        deliveries for the same customer collapse onto one row.
        """
        values = {"customer_id": customer_id, **fields, "updated_at": utcnow()}
        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)

        try:
            if insert is None:
                self._merge_subscription(customer_id, values)
            else:
                stmt = insert(StripeSubscription.__table__).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=["customer_id"],
                    set_={key: stmt.excluded[key] for key in values if key != "customer_id"}
                )
                self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def _merge_subscription(self, customer_id: str, values: Dict[str, Any]) -> None:
        row = self.db.query(StripeSubscription).filter(
            StripeSubscription.customer_id == customer_id
        ).with_for_update().first()
        if row is None:
            self.db.add(StripeSubscription(**values))
        else:
            for key, value in values.items():
                setattr(row, key, value)

    def get_subscription(self, customer_id: str) -> Optional[StripeSubscription]:
        return self.db.query(StripeSubscription).filter(
            StripeSubscription.customer_id == customer_id
        ).first()

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def insert_stripe_order(self, **fields: Any) -> StripeOrder:
        """Insert the audit row for a completed checkout session"""
        order = StripeOrder(**fields)
        try:
            self.db.add(order)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(order)
        return order

    def create_order(
        self,
        email: str,
        total_amount: Decimal,
        payment_intent_id: Optional[str],
        product_id: Optional[str] = None
    ) -> Order:
        """Create an order, its item and the bonus access it unlocks in one transaction"""
        try:
            order = Order(
                email=email,
                total_amount=total_amount,
                payment_status="paid",
                payment_intent_id=payment_intent_id
            )
            self.db.add(order)
            self.db.flush()

            if product_id:
                self.db.add(OrderItem(
                    order_id=order.id,
                    product_id=product_id,
                    price=total_amount,
                    quantity=1
                ))

            for bonus in self._bonus_products_unlocked_by(product_id):
                self.db.add(CustomerProductAccess(
                    email=email,
                    product_id=bonus.id,
                    order_id=order.id
                ))

            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(order)
        return order

    def _bonus_products_unlocked_by(self, product_id: Optional[str]) -> List[Product]:
        query = self.db.query(Product).filter(Product.is_bonus.is_(True), Product.is_active.is_(True))
        if product_id:
            query = query.filter(or_(
                Product.requires_product_id == product_id,
                Product.requires_product_id.is_(None)
            ))
        else:
            query = query.filter(Product.requires_product_id.is_(None))
        return query.all()

    def list_bonus_products(self, email: str, order_id: str) -> List[Product]:
        return (
            self.db.query(Product)
            .join(CustomerProductAccess, CustomerProductAccess.product_id == Product.id)
            .filter(
                CustomerProductAccess.email == email,
                CustomerProductAccess.order_id == order_id,
                Product.is_bonus.is_(True)
            )
            .order_by(Product.title)
            .all()
        )

    def list_product_access(self, email: str) -> List[str]:
        rows = self.db.query(CustomerProductAccess.product_id).filter(
            CustomerProductAccess.email == email
        ).distinct().all()
        return [row.product_id for row in rows]

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def list_active_products(self) -> List[Product]:
        return (
            self.db.query(Product)
            .filter(Product.is_active.is_(True))
            .order_by(Product.is_featured.desc(), Product.created_at.desc())
            .all()
        )

    def get_product_by_price_id(self, price_id: str) -> Optional[Product]:
        return self.db.query(Product).filter(
            Product.stripe_price_id == price_id,
            Product.is_active.is_(True)
        ).first()

    def list_active_services(self) -> List[ConsultingService]:
        return (
            self.db.query(ConsultingService)
            .filter(ConsultingService.is_active.is_(True))
            .order_by(ConsultingService.price.asc())
            .all()
        )

    def get_consulting_service(self, service_id: str) -> Optional[ConsultingService]:
        return self.db.query(ConsultingService).filter(
            ConsultingService.service_id == service_id,
            ConsultingService.is_active.is_(True)
        ).first()

    # ------------------------------------------------------------------
    # Consultation bookings
    # ------------------------------------------------------------------

    def create_consultation_booking(
        self,
        service_id: str,
        customer_name: str,
        customer_email: str,
        scheduled_date: datetime,
        message: str,
        payment_intent_id: Optional[str],
        payment_amount: Decimal
    ) -> str:
        """Create a booking atomically and return its id.

        A booking already recorded for the same payment intent is returned
        as-is, so redelivered events never create a second booking.
        """
        try:
            if payment_intent_id:
                existing = self.db.query(ConsultationBooking).filter(
                    ConsultationBooking.payment_intent_id == payment_intent_id
                ).first()
                if existing:
                    logger.info(f"Booking {existing.id} already exists for payment intent {payment_intent_id}")
                    return existing.id

            service = self.db.query(ConsultingService).filter(
                ConsultingService.service_id == service_id
            ).first()
            if not service:
                raise ServiceNotFoundError(f"Consulting service {service_id} does not exist")

            booking = ConsultationBooking(
                service_id=service.service_id,
                customer_name=customer_name,
                customer_email=customer_email,
                scheduled_date=scheduled_date,
                message=message,
                payment_intent_id=payment_intent_id,
                payment_amount=payment_amount,
                status="confirmed"
            )
            self.db.add(booking)
            self.db.commit()
            return booking.id
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def get_booking(self, booking_id: str) -> Optional[ConsultationBooking]:
        return (
            self.db.query(ConsultationBooking)
            .options(joinedload(ConsultationBooking.service))
            .filter(ConsultationBooking.id == booking_id)
            .first()
        )

    def mark_booking_confirmation_sent(self, booking_id: str) -> None:
        booking = self.db.query(ConsultationBooking).filter(ConsultationBooking.id == booking_id).first()
        if not booking:
            return
        try:
            booking.confirmation_sent = True
            booking.confirmation_sent_at = utcnow()
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
