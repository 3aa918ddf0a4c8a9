"""Bonus download and booking confirmation emails"""
import logging
from typing import Any, Dict

from sqlalchemy.exc import SQLAlchemyError

from storefront.core.exceptions import BookingNotFoundError, LookupFailedError, NotificationError
from storefront.core.metrics import notifications_counter
from storefront.db.repository import StorefrontRepository
from storefront.services.email_service import (
    EmailSender, render_bonus_email, render_booking_confirmation_email
)

logger = logging.getLogger("notifications")

NO_BONUS_MESSAGE = "No bonus products found for this order"


def send_bonus_email(
    email: str,
    customer_name: str,
    order_id: str,
    repo: StorefrontRepository,
    mailer: EmailSender
) -> Dict[str, Any]:
    """Email download links for the bonus products an order unlocked.

    Nothing is sent when the order unlocked no bonus products.
    """
    try:
        bonus_products = repo.list_bonus_products(email, order_id)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching bonus products for order {order_id}: {e}")
        raise LookupFailedError("Failed to fetch bonus products") from e

    if not bonus_products:
        return {"message": NO_BONUS_MESSAGE}

    html_body = render_bonus_email(customer_name, bonus_products)
    logger.info(f"Sending bonus email to: {email} ({len(bonus_products)} products)")
    if not mailer.send(email, "Your Bonus Downloads Are Ready!", html_body):
        notifications_counter.labels(kind="bonus_email", status="undelivered").inc()
        raise NotificationError("Failed to send bonus email")

    notifications_counter.labels(kind="bonus_email", status="delivered").inc()
    return {
        "success": True,
        "message": "Bonus email sent successfully",
        "bonusCount": len(bonus_products),
    }


def send_booking_confirmation(booking_id: str, repo: StorefrontRepository, mailer: EmailSender) -> Dict[str, Any]:
    """Email the session details of a booking, at most once per booking"""
    try:
        booking = repo.get_booking(booking_id)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching booking {booking_id}: {e}")
        booking = None

    if not booking:
        raise BookingNotFoundError("Booking not found")

    if booking.confirmation_sent:
        logger.info(f"Booking confirmation for {booking_id} already sent, skipping")
        return {"success": True, "message": "Booking confirmation already sent"}

    html_body = render_booking_confirmation_email(booking)
    if not mailer.send(booking.customer_email, "Your Consulting Session is Confirmed!", html_body):
        notifications_counter.labels(kind="booking_confirmation", status="undelivered").inc()
        raise NotificationError("Failed to send booking confirmation")

    try:
        repo.mark_booking_confirmation_sent(booking_id)
    except SQLAlchemyError as e:
        # The email is out; a retry may send a duplicate
        logger.error(f"Failed to mark booking {booking_id} as confirmed: {e}")

    notifications_counter.labels(kind="booking_confirmation", status="delivered").inc()
    logger.info(f"Booking confirmation sent to: {booking.customer_email}")
    return {"success": True, "message": "Booking confirmation sent successfully"}
