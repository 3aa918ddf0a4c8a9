"""Checkout session routes"""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from storefront.api.deps import get_origin, get_repository, get_stripe_gateway
from storefront.core.exceptions import LookupFailedError, ProductNotFoundError, ServiceNotFoundError
from storefront.core.metrics import checkout_sessions_counter
from storefront.db.repository import StorefrontRepository
from storefront.schemas.checkout import (
    CheckoutSessionResponse, ConsultationCheckoutRequest, ProductCheckoutRequest
)
from storefront.services.checkout_service import create_consultation_checkout, create_product_checkout
from storefront.services.stripe_service import StripeGateway

router = APIRouter(tags=["checkout"])
logger = logging.getLogger("checkout")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/create-consultation-checkout", response_model=CheckoutSessionResponse)
def create_consultation_checkout_route(
    checkout_request: ConsultationCheckoutRequest,
    origin: str = Depends(get_origin),
    repo: StorefrontRepository = Depends(get_repository),
    gateway: StripeGateway = Depends(get_stripe_gateway)
):
    """Create a Stripe checkout session for a consulting booking"""
    missing = checkout_request.missing_fields()
    if missing:
        logger.error(f"Missing required fields: {', '.join(missing)}")
        return _error(400, "Missing required fields")

    try:
        return create_consultation_checkout(checkout_request, origin, repo, gateway)
    except ServiceNotFoundError as e:
        return _error(404, str(e))
    except LookupFailedError as e:
        return _error(500, str(e))
    except Exception as e:
        logger.error(f"Error creating consultation checkout: {e}", exc_info=True)
        checkout_sessions_counter.labels(kind="consultation", status="error").inc()
        return _error(500, str(e) or "An unexpected error occurred")


@router.post("/create-checkout", response_model=CheckoutSessionResponse)
def create_product_checkout_route(
    checkout_request: ProductCheckoutRequest,
    origin: str = Depends(get_origin),
    repo: StorefrontRepository = Depends(get_repository),
    gateway: StripeGateway = Depends(get_stripe_gateway)
):
    """Create a Stripe checkout session for a catalog product"""
    if not checkout_request.priceId:
        return _error(400, "priceId is required")

    try:
        return create_product_checkout(checkout_request, origin, repo, gateway)
    except ProductNotFoundError as e:
        return _error(404, str(e))
    except LookupFailedError as e:
        return _error(500, str(e))
    except Exception as e:
        logger.error(f"Error creating product checkout: {e}", exc_info=True)
        checkout_sessions_counter.labels(kind="product", status="error").inc()
        return _error(500, str(e) or "An unexpected error occurred")
