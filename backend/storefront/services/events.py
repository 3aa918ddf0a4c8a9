"""Classification of verified Stripe events into business flows

Every event maps to exactly one route:

* ``IgnoredEvent`` - nothing to do, no database writes
* ``SubscriptionSync`` - re-read the customer's subscription from Stripe
* ``CheckoutPayment`` - a paid one-time checkout session
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

logger = logging.getLogger("webhook")

CHECKOUT_COMPLETED = "checkout.session.completed"
PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"

SUBSCRIPTION_SYNC_EVENT_TYPES = frozenset({
    CHECKOUT_COMPLETED,
    PAYMENT_INTENT_SUCCEEDED,
    "payment_intent.processing",
    "payment_intent.payment_failed",
    "payment_intent.canceled",
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
    "customer.subscription.paused",
    "customer.subscription.resumed",
    "customer.subscription.pending_update_applied",
    "customer.subscription.pending_update_expired",
    "customer.subscription.trial_will_end",
    "invoice.paid",
    "invoice.payment_action_required",
    "invoice.payment_failed",
    "invoice.payment_succeeded",
    "invoice.upcoming",
    "invoice.marked_uncollectible",
})


@dataclass(frozen=True)
class IgnoredEvent:
    event_type: str
    reason: str

    route = "ignored"


@dataclass(frozen=True)
class SubscriptionSync:
    event_type: str
    customer_id: str
    # True when the type is not a known subscription lifecycle event
    fallback: bool = False

    route = "subscription_sync"


@dataclass(frozen=True)
class CheckoutPayment:
    event_type: str
    checkout_session_id: str
    customer_id: str
    payment_intent_id: Optional[str]
    amount_subtotal: Optional[int]
    amount_total: Optional[int]
    currency: Optional[str]
    payment_status: str
    customer_email: Optional[str]
    customer_name: Optional[str]
    metadata: Dict[str, str] = field(default_factory=dict)

    route = "checkout_payment"

    @property
    def is_consultation(self) -> bool:
        return self.metadata.get("type") == "consultation"


EventRoute = Union[IgnoredEvent, SubscriptionSync, CheckoutPayment]


def event_object(event: Dict[str, Any]) -> Dict[str, Any]:
    data = event.get("data") or {}
    return data.get("object") or {}


def classify_event(event: Dict[str, Any]) -> EventRoute:
    """Decide which business flow a verified event belongs to"""
    event_type = event.get("type", "")
    obj = event_object(event)

    if not obj or "customer" not in obj:
        return IgnoredEvent(event_type, "not customer-scoped")

    # One-time payments are handled from checkout.session.completed only
    if event_type == PAYMENT_INTENT_SUCCEEDED and obj.get("invoice") is None:
        return IgnoredEvent(event_type, "payment intent without invoice")

    customer_id = obj.get("customer")
    if not customer_id or not isinstance(customer_id, str):
        logger.error(f"No customer received on event {event.get('id')} ({event_type})")
        return IgnoredEvent(event_type, "customer id missing")

    if event_type == CHECKOUT_COMPLETED:
        mode = obj.get("mode")
        if mode == "subscription":
            logger.info(f"Processing subscription checkout session {obj.get('id')}")
            return SubscriptionSync(event_type, customer_id)
        if mode == "payment" and obj.get("payment_status") == "paid":
            logger.info(f"Processing one-time payment checkout session {obj.get('id')}")
            return _checkout_payment(event_type, customer_id, obj)
        return IgnoredEvent(event_type, "payment not settled")

    if event_type in SUBSCRIPTION_SYNC_EVENT_TYPES:
        return SubscriptionSync(event_type, customer_id)

    logger.warning(f"Unclassified customer event {event_type} routed to subscription sync")
    return SubscriptionSync(event_type, customer_id, fallback=True)


def _checkout_payment(event_type: str, customer_id: str, session: Dict[str, Any]) -> CheckoutPayment:
    details = session.get("customer_details") or {}
    metadata = session.get("metadata") or {}
    payment_intent = session.get("payment_intent")
    if isinstance(payment_intent, dict):
        payment_intent = payment_intent.get("id")

    return CheckoutPayment(
        event_type=event_type,
        checkout_session_id=session.get("id"),
        customer_id=customer_id,
        payment_intent_id=payment_intent,
        amount_subtotal=session.get("amount_subtotal"),
        amount_total=session.get("amount_total"),
        currency=session.get("currency"),
        payment_status=session.get("payment_status"),
        customer_email=details.get("email") or session.get("customer_email"),
        customer_name=details.get("name"),
        metadata={str(k): str(v) for k, v in metadata.items() if v is not None}
    )
