"""Pydantic schemas for checkout creation

Fields are optional so missing values are reported as 400 by the endpoint
rather than as a validation error.
"""
from typing import Optional

from pydantic import BaseModel


class ConsultationCheckoutRequest(BaseModel):
    serviceId: Optional[str] = None
    customerName: Optional[str] = None
    customerEmail: Optional[str] = None
    scheduledDate: Optional[str] = None
    message: Optional[str] = None

    def missing_fields(self) -> list[str]:
        required = ("serviceId", "customerName", "customerEmail", "scheduledDate")
        return [name for name in required if not getattr(self, name)]


class ProductCheckoutRequest(BaseModel):
    priceId: Optional[str] = None
    userId: Optional[str] = None
    userEmail: Optional[str] = None
    successUrl: Optional[str] = None
    cancelUrl: Optional[str] = None


class CheckoutSessionResponse(BaseModel):
    sessionId: str
    url: Optional[str] = None
