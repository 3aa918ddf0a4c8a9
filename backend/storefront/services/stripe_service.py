"""Stripe API access: webhook verification, subscriptions and checkout sessions"""
import json
from typing import Any, Dict, Optional

import stripe

DEFAULT_TOLERANCE = 300  # seconds, Stripe's default replay window


def stripe_value(obj: Any, key: str, default=None):
    """Read a field from a Stripe object or plain dict.

    Stripe objects are dict subclasses, so key access is tried first;
    attribute access covers lightweight stand-ins.
    """
    if obj is None:
        return default
    if isinstance(obj, dict):
        value = obj.get(key, default)
    else:
        value = getattr(obj, key, default)
    return default if value is None else value


class StripeGateway:
    """Thin wrapper over the stripe SDK bound to one account's credentials"""

    def __init__(self, api_key: str, webhook_secret: str, tolerance: int = DEFAULT_TOLERANCE):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance

    def construct_event(self, payload: bytes, sig_header: str) -> Dict[str, Any]:
        """Verify the signature over the raw body and decode the event.

        Raises:
            stripe.SignatureVerificationError: signature missing, stale or wrong
            ValueError: body is not UTF-8 JSON
        """
        body = payload.decode("utf-8")
        stripe.WebhookSignature.verify_header(body, sig_header, self.webhook_secret, self.tolerance)
        event = json.loads(body)
        if not isinstance(event, dict) or "type" not in event:
            raise ValueError("Event payload is not a Stripe event object")
        return event

    def latest_subscription(self, customer_id: str) -> Optional[Any]:
        """Most recent subscription of any status, with its payment method expanded"""
        subscriptions = stripe.Subscription.list(
            customer=customer_id,
            limit=1,
            status="all",
            expand=["data.default_payment_method"],
            api_key=self.api_key
        )
        data = stripe_value(subscriptions, "data", [])
        return data[0] if data else None

    def create_checkout_session(self, **params: Any) -> Any:
        return stripe.checkout.Session.create(api_key=self.api_key, **params)
