"""Checkout session creation for consulting bookings and catalog products"""
import logging
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from storefront.core.exceptions import LookupFailedError, ProductNotFoundError, ServiceNotFoundError
from storefront.core.metrics import checkout_sessions_counter
from storefront.db.repository import StorefrontRepository
from storefront.schemas.checkout import ConsultationCheckoutRequest, ProductCheckoutRequest
from storefront.services.stripe_service import StripeGateway, stripe_value
from storefront.utils.money import decimal_to_minor

logger = logging.getLogger("checkout")

CURRENCY = "usd"
CHECKOUT_SESSION_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"


def create_consultation_checkout(
    checkout_request: ConsultationCheckoutRequest,
    origin: str,
    repo: StorefrontRepository,
    gateway: StripeGateway
) -> Dict[str, Optional[str]]:
    """Create a Stripe checkout session for a consulting service.

    The price always comes from the stored service, never from the client.
    The session metadata carries what the webhook needs to create the booking.

    Raises:
        LookupFailedError: the service query failed
        ServiceNotFoundError: no active service with that id (Stripe is not called)
    """
    service_id = checkout_request.serviceId
    try:
        service = repo.get_consulting_service(service_id)
    except SQLAlchemyError as e:
        logger.error(f"Database error fetching service {service_id}: {e}")
        raise LookupFailedError(f"Service lookup failed: {e}") from e

    if not service:
        logger.error(f"Service not found in database for ID: {service_id}")
        raise ServiceNotFoundError("Service not found. Please ensure services are configured in the database.")

    description = " - ".join(part for part in (service.description, service.duration) if part)
    product_data = {"name": service.title}
    if description:
        product_data["description"] = description

    session = gateway.create_checkout_session(
        payment_method_types=["card"],
        line_items=[{
            "price_data": {
                "currency": CURRENCY,
                "product_data": product_data,
                "unit_amount": decimal_to_minor(service.price),
            },
            "quantity": 1,
        }],
        mode="payment",
        # Customers are needed so the webhook can attribute the payment
        customer_creation="always",
        success_url=f"{origin}/consultation-success?session_id={CHECKOUT_SESSION_PLACEHOLDER}",
        cancel_url=f"{origin}/consulting",
        customer_email=checkout_request.customerEmail,
        metadata={
            "serviceId": service_id,
            "customerName": checkout_request.customerName,
            "scheduledDate": checkout_request.scheduledDate,
            "message": checkout_request.message or "",
            "type": "consultation",
        }
    )

    session_id = stripe_value(session, "id")
    checkout_sessions_counter.labels(kind="consultation", status="created").inc()
    logger.info(f"Stripe checkout session created successfully: {session_id}")
    return {"sessionId": session_id, "url": stripe_value(session, "url")}


def create_product_checkout(
    checkout_request: ProductCheckoutRequest,
    origin: str,
    repo: StorefrontRepository,
    gateway: StripeGateway
) -> Dict[str, Optional[str]]:
    """Create a Stripe checkout session for a catalog product priced in Stripe.

    Raises:
        LookupFailedError: the product query failed
        ProductNotFoundError: no active product uses that price
    """
    price_id = checkout_request.priceId
    try:
        product = repo.get_product_by_price_id(price_id)
    except SQLAlchemyError as e:
        logger.error(f"Database error fetching product for price {price_id}: {e}")
        raise LookupFailedError(f"Product lookup failed: {e}") from e

    if not product:
        raise ProductNotFoundError(f"No product is sold with price {price_id}")

    params = {
        "payment_method_types": ["card"],
        "line_items": [{"price": price_id, "quantity": 1}],
        "mode": "payment",
        # Customers are needed so the webhook can attribute the payment
        "customer_creation": "always",
        "success_url": checkout_request.successUrl
        or f"{origin}/success?session_id={CHECKOUT_SESSION_PLACEHOLDER}",
        "cancel_url": checkout_request.cancelUrl or f"{origin}/products",
        "metadata": {"productId": product.id},
    }
    if checkout_request.userEmail:
        params["customer_email"] = checkout_request.userEmail
    if checkout_request.userId:
        params["client_reference_id"] = checkout_request.userId

    session = gateway.create_checkout_session(**params)

    session_id = stripe_value(session, "id")
    checkout_sessions_counter.labels(kind="product", status="created").inc()
    logger.info(f"Product checkout session {session_id} created for product {product.id}")
    return {"sessionId": session_id, "url": stripe_value(session, "url")}
