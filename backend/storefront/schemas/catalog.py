"""Pydantic schemas for catalog and subscription reads"""
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: Optional[str] = None
    price: Decimal
    image_url: Optional[str] = None
    category: Optional[str] = None
    stripe_price_id: Optional[str] = None
    is_featured: bool
    is_bonus: bool
    requires_product_id: Optional[str] = None
    bonus_note: Optional[str] = None


class ConsultingServiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    service_id: str
    title: str
    description: Optional[str] = None
    duration: Optional[str] = None
    price: Decimal


class ProductAccessOut(BaseModel):
    email: str
    product_ids: List[str]


class SubscriptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    customer_id: str
    subscription_id: Optional[str] = None
    subscription_status: str
    price_id: Optional[str] = None
    current_period_start: Optional[int] = None
    current_period_end: Optional[int] = None
    cancel_at_period_end: Optional[bool] = None
    payment_method_brand: Optional[str] = None
    payment_method_last4: Optional[str] = None
