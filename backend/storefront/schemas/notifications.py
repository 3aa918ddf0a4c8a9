"""Pydantic schemas for the notification endpoints"""
from typing import Optional

from pydantic import BaseModel


class BonusEmailRequest(BaseModel):
    email: Optional[str] = None
    customerName: Optional[str] = None
    orderId: Optional[str] = None


class BookingConfirmationRequest(BaseModel):
    bookingId: Optional[str] = None
