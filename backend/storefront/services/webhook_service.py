"""Stripe webhook processing: subscription reconciliation and one-time payments"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from opentelemetry import trace
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.core.exceptions import StorefrontError, SubscriptionSyncError
from storefront.core.metrics import webhook_events_counter
from storefront.db.repository import StorefrontRepository
from storefront.models.subscription import NOT_STARTED
from storefront.services.events import (
    CheckoutPayment, EventRoute, IgnoredEvent, SubscriptionSync, classify_event
)
from storefront.services.notification_client import NotificationClient
from storefront.services.stripe_service import StripeGateway, stripe_value
from storefront.utils.dates import parse_scheduled_date
from storefront.utils.money import minor_to_decimal

logger = logging.getLogger("webhook")
tracer = trace.get_tracer(__name__)


@dataclass(frozen=True)
class ProcessingOutcome:
    """Result of processing one event, reported on the background task's error channel"""
    event_id: Optional[str]
    event_type: str
    route: str
    status: str  # 'processed', 'ignored', 'aborted' or 'failed'
    detail: str = ""


# ============================================================================
# SUBSCRIPTION SYNC
# ============================================================================

def _subscription_period(subscription: Any, item: Any, key: str) -> Optional[int]:
    # Newer API versions report billing periods on the subscription item
    return stripe_value(subscription, key) or stripe_value(item, key)


def subscription_fields(subscription: Any) -> Dict[str, Any]:
    """Columns of the stored subscription row derived from a Stripe subscription"""
    items = stripe_value(stripe_value(subscription, "items"), "data", [])
    item = items[0] if items else None
    price = stripe_value(item, "price")

    fields = {
        "subscription_id": stripe_value(subscription, "id"),
        "price_id": stripe_value(price, "id"),
        "current_period_start": _subscription_period(subscription, item, "current_period_start"),
        "current_period_end": _subscription_period(subscription, item, "current_period_end"),
        "cancel_at_period_end": bool(stripe_value(subscription, "cancel_at_period_end", False)),
        "status": stripe_value(subscription, "status"),
    }

    payment_method = stripe_value(subscription, "default_payment_method")
    if payment_method is not None and not isinstance(payment_method, str):
        card = stripe_value(payment_method, "card")
        fields["payment_method_brand"] = stripe_value(card, "brand")
        fields["payment_method_last4"] = stripe_value(card, "last4")

    return fields


def sync_customer_from_stripe(customer_id: str, gateway: StripeGateway, repo: StorefrontRepository) -> str:
    """Overwrite the stored subscription row with Stripe's current state.

    Always re-reads Stripe rather than applying event deltas, so running it
    twice, or out of order, converges on the same row.

    Returns the stored status. Raises SubscriptionSyncError when the write fails.
    """
    subscription = gateway.latest_subscription(customer_id)

    if subscription is None:
        logger.info(f"No subscriptions found for customer: {customer_id}")
        try:
            repo.upsert_subscription(customer_id, status=NOT_STARTED)
        except SQLAlchemyError as e:
            logger.error(f"Error updating subscription status for {customer_id}: {e}")
            raise SubscriptionSyncError(customer_id, "Failed to update subscription status in database") from e
        return NOT_STARTED

    fields = subscription_fields(subscription)
    try:
        repo.upsert_subscription(customer_id, **fields)
    except SQLAlchemyError as e:
        logger.error(f"Error syncing subscription for {customer_id}: {e}")
        raise SubscriptionSyncError(customer_id, "Failed to sync subscription in database") from e

    logger.info(f"Successfully synced subscription for customer: {customer_id}")
    return fields["status"]


# ============================================================================
# ONE-TIME PAYMENTS
# ============================================================================

def process_one_time_payment(
    payment: CheckoutPayment,
    repo: StorefrontRepository,
    notifier: NotificationClient
) -> str:
    """Record a paid checkout session and fulfil it.

    The audit row is written first; if it fails nothing else happens. Booking
    or order creation failures are logged, and notification failures never
    undo what has been committed.

    Returns 'processed' or 'aborted'.
    """
    try:
        repo.insert_stripe_order(
            checkout_session_id=payment.checkout_session_id,
            payment_intent_id=payment.payment_intent_id,
            customer_id=payment.customer_id,
            amount_subtotal=payment.amount_subtotal,
            amount_total=payment.amount_total,
            currency=payment.currency,
            payment_status=payment.payment_status,
            status="completed"
        )
    except IntegrityError:
        logger.warning(f"Checkout session {payment.checkout_session_id} already recorded, skipping redelivery")
        return "aborted"
    except SQLAlchemyError as e:
        logger.error(f"Error inserting order for session {payment.checkout_session_id}: {e}")
        return "aborted"

    if not payment.customer_email:
        logger.warning(f"Checkout session {payment.checkout_session_id} has no customer email, nothing to fulfil")
        return "processed"

    if payment.is_consultation:
        _book_consultation(payment, repo, notifier)
    else:
        _fulfil_product_order(payment, repo, notifier)

    logger.info(f"Successfully processed one-time payment for session: {payment.checkout_session_id}")
    return "processed"


def _book_consultation(payment: CheckoutPayment, repo: StorefrontRepository, notifier: NotificationClient):
    metadata = payment.metadata
    try:
        booking_id = repo.create_consultation_booking(
            service_id=metadata.get("serviceId"),
            customer_name=metadata.get("customerName") or payment.customer_name or "Customer",
            customer_email=payment.customer_email,
            scheduled_date=parse_scheduled_date(metadata.get("scheduledDate", "")),
            message=metadata.get("message") or "",
            payment_intent_id=payment.payment_intent_id,
            payment_amount=minor_to_decimal(payment.amount_total)
        )
    except (SQLAlchemyError, StorefrontError, ValueError) as e:
        logger.error(f"Error creating consultation booking for session {payment.checkout_session_id}: {e}")
        return

    logger.info(f"Consultation booking {booking_id} created successfully")
    notifier.send_booking_confirmation(booking_id)


def _fulfil_product_order(payment: CheckoutPayment, repo: StorefrontRepository, notifier: NotificationClient):
    try:
        order = repo.create_order(
            email=payment.customer_email,
            total_amount=minor_to_decimal(payment.amount_total),
            payment_intent_id=payment.payment_intent_id,
            product_id=payment.metadata.get("productId")
        )
    except SQLAlchemyError as e:
        logger.error(f"Error creating order for bonus system: {e}")
        return

    notifier.send_bonus_email(
        payment.customer_email,
        payment.customer_name or "Valued Customer",
        order.id
    )


# ============================================================================
# DISPATCH
# ============================================================================

class WebhookProcessor:
    """Processes verified events; one instance is shared by all deliveries.

    Holds no per-event state: each call opens its own database session.
    """

    def __init__(
        self,
        gateway: StripeGateway,
        session_factory: Callable[[], Session],
        notifier: NotificationClient
    ):
        self.gateway = gateway
        self.session_factory = session_factory
        self.notifier = notifier

    def process(self, event: Dict[str, Any]) -> ProcessingOutcome:
        """Classify and handle one event. Subscription sync failures propagate."""
        route = classify_event(event)
        event_id = event.get("id")

        with tracer.start_as_current_span("stripe_webhook.process") as span:
            span.set_attribute("stripe.event_id", event_id or "")
            span.set_attribute("stripe.event_type", route.event_type)
            span.set_attribute("storefront.route", route.route)
            return self._dispatch(route, event_id)

    def _dispatch(self, route: EventRoute, event_id: Optional[str]) -> ProcessingOutcome:
        match route:
            case IgnoredEvent(reason=reason):
                logger.info(f"Ignoring event {event_id} ({route.event_type}): {reason}")
                return ProcessingOutcome(event_id, route.event_type, route.route, "ignored", reason)
            case SubscriptionSync(customer_id=customer_id):
                logger.info(f"Starting subscription sync for customer: {customer_id}")
                with self.session_factory() as db:
                    status = sync_customer_from_stripe(customer_id, self.gateway, StorefrontRepository(db))
                return ProcessingOutcome(event_id, route.event_type, route.route, "processed", status)
            case CheckoutPayment():
                with self.session_factory() as db:
                    status = process_one_time_payment(route, StorefrontRepository(db), self.notifier)
                return ProcessingOutcome(event_id, route.event_type, route.route, status)
            case _:
                raise TypeError(f"Unhandled event route: {route!r}")

    def run(self, event: Dict[str, Any], raise_errors: bool = False) -> ProcessingOutcome:
        """Process an event, logging and counting every outcome.

        As the background task it never raises. With raise_errors the failure
        is re-raised after being recorded.
        """
        try:
            outcome = self.process(event)
        except Exception as e:
            logger.error(f"Error processing webhook {event.get('id')}: {e}", exc_info=True)
            route = _route_name(event)
            webhook_events_counter.labels(route=route, outcome="failed").inc()
            if raise_errors:
                raise
            return ProcessingOutcome(event.get("id"), event.get("type", ""), route, "failed", str(e))

        webhook_events_counter.labels(route=outcome.route, outcome=outcome.status).inc()
        return outcome


def _route_name(event: Dict[str, Any]) -> str:
    try:
        route: EventRoute = classify_event(event)
    except Exception:
        return "unknown"
    return route.route
