"""Catalog, product access and subscription status routes"""
from typing import List

from fastapi import APIRouter, Depends, Query

from storefront.api.deps import get_repository
from storefront.db.repository import StorefrontRepository
from storefront.models.subscription import NOT_STARTED
from storefront.schemas.catalog import (
    ConsultingServiceOut, ProductAccessOut, ProductOut, SubscriptionOut
)

router = APIRouter(tags=["catalog"])


@router.get("/products", response_model=List[ProductOut])
def list_products(repo: StorefrontRepository = Depends(get_repository)):
    """Active products, featured first, newest first"""
    return repo.list_active_products()


@router.get("/consulting-services", response_model=List[ConsultingServiceOut])
def list_consulting_services(repo: StorefrontRepository = Depends(get_repository)):
    """Active consulting services by ascending price"""
    return repo.list_active_services()


@router.get("/customer-product-access", response_model=ProductAccessOut)
def get_customer_product_access(
    email: str = Query(..., description="Customer email"),
    repo: StorefrontRepository = Depends(get_repository)
):
    return {"email": email, "product_ids": repo.list_product_access(email)}


@router.get("/subscriptions/{customer_id}", response_model=SubscriptionOut)
def get_subscription(customer_id: str, repo: StorefrontRepository = Depends(get_repository)):
    """Stored subscription state for a Stripe customer"""
    sub = repo.get_subscription(customer_id)
    if not sub:
        return {"customer_id": customer_id, "subscription_status": NOT_STARTED}
    return {
        "customer_id": sub.customer_id,
        "subscription_id": sub.subscription_id,
        "subscription_status": sub.status,
        "price_id": sub.price_id,
        "current_period_start": sub.current_period_start,
        "current_period_end": sub.current_period_end,
        "cancel_at_period_end": sub.cancel_at_period_end,
        "payment_method_brand": sub.payment_method_brand,
        "payment_method_last4": sub.payment_method_last4,
    }
