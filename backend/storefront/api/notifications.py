"""Notification email routes, called by the webhook processor"""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from storefront.api.deps import get_email_sender, get_repository
from storefront.core.exceptions import BookingNotFoundError, LookupFailedError, NotificationError
from storefront.core.security import require_service_token
from storefront.db.repository import StorefrontRepository
from storefront.schemas.notifications import BonusEmailRequest, BookingConfirmationRequest
from storefront.services.email_service import EmailSender
from storefront.services.notification_service import send_bonus_email, send_booking_confirmation

router = APIRouter(tags=["notifications"], dependencies=[Depends(require_service_token)])
logger = logging.getLogger("notifications")


@router.post("/send-bonus-email")
def send_bonus_email_route(
    bonus_request: BonusEmailRequest,
    repo: StorefrontRepository = Depends(get_repository),
    mailer: EmailSender = Depends(get_email_sender)
):
    """Send bonus download links for an order"""
    if not bonus_request.email or not bonus_request.orderId:
        return JSONResponse(status_code=400, content={"error": "Email and orderId are required"})

    try:
        return send_bonus_email(
            bonus_request.email,
            bonus_request.customerName or "Valued Customer",
            bonus_request.orderId,
            repo,
            mailer
        )
    except (LookupFailedError, NotificationError) as e:
        logger.error(f"Bonus email for order {bonus_request.orderId} failed: {e}")
        return JSONResponse(status_code=500, content={"error": str(e)})


@router.post("/send-booking-confirmation")
def send_booking_confirmation_route(
    confirmation_request: BookingConfirmationRequest,
    repo: StorefrontRepository = Depends(get_repository),
    mailer: EmailSender = Depends(get_email_sender)
):
    """Send the confirmation email for a consultation booking"""
    if not confirmation_request.bookingId:
        return JSONResponse(status_code=400, content={"error": "Booking ID is required"})

    try:
        return send_booking_confirmation(confirmation_request.bookingId, repo, mailer)
    except BookingNotFoundError as e:
        return JSONResponse(status_code=404, content={"error": str(e)})
    except NotificationError as e:
        logger.error(f"Booking confirmation for {confirmation_request.bookingId} failed: {e}")
        return JSONResponse(status_code=500, content={"error": str(e)})
