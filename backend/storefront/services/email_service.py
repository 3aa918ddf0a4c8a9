"""Email service - transactional email via Resend"""
import html
import logging
from datetime import datetime
from typing import Iterable

import resend

from storefront.models import ConsultationBooking, Product

logger = logging.getLogger(__name__)

BRAND_GRADIENT = "linear-gradient(135deg, #2C2E83 0%, #8A2BE2 100%)"


class EmailSender:
    """Sends HTML email through the Resend API"""

    def __init__(self, api_key: str, from_email: str):
        self.api_key = api_key
        self.from_email = from_email

    def send(self, to: str, subject: str, html_body: str) -> bool:
        """
        Send one email.

        Args:
            to: Recipient email address
            subject: Email subject
            html_body: HTML email content

        Returns:
            bool: True on success, False on failure
        """
        if not self.api_key:
            logger.warning("RESEND_API_KEY is not set; skipping email")
            return False

        try:
            resend.api_key = self.api_key
            response = resend.Emails.send({
                "from": self.from_email,
                "to": to,
                "subject": subject,
                "html": html_body,
            })

            # Resend returns a dict with 'id' on success; older clients return an object
            email_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
            if email_id:
                logger.info(f"Email sent successfully to {to} (id: {email_id})")
                return True
            logger.error(f"Email send returned invalid response: {response}")
            return False
        except Exception as exc:
            logger.error(f"Failed to send email to {to}: {exc}", exc_info=True)
            return False


def _layout(title: str, heading: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
</head>
<body style="margin: 0; padding: 0; font-family: 'Helvetica Neue', Helvetica, Arial, sans-serif; background-color: #f5f5f7;">
  <div style="max-width: 600px; margin: 40px auto; background-color: white; border-radius: 12px; overflow: hidden;">
    <div style="background: {BRAND_GRADIENT}; padding: 40px 20px; text-align: center;">
      <h1 style="color: white; margin: 0; font-size: 28px;">{heading}</h1>
    </div>
    <div style="padding: 40px 30px;">
      {body}
      <p style="font-size: 16px; line-height: 1.6; color: #333; margin: 30px 0 10px 0;">
        Warm regards,<br>
        <strong>The Storefront Team</strong>
      </p>
    </div>
  </div>
</body>
</html>"""


def render_bonus_email(customer_name: str, bonus_products: Iterable[Product]) -> str:
    """Bonus download email listing one download button per bonus product"""
    links = "\n".join(
        f"""<div style="margin: 20px 0; padding: 20px; background-color: #f8f9fa; border-radius: 8px; border-left: 4px solid #2C2E83;">
        <h3 style="color: #2C2E83; margin: 0 0 10px 0;">{html.escape(product.title)}</h3>
        <a href="{html.escape(product.download_url or '#')}" style="display: inline-block; padding: 12px 24px; background: {BRAND_GRADIENT}; color: white; text-decoration: none; border-radius: 6px; font-weight: bold;">Download Now</a>
      </div>"""
        for product in bonus_products
    )
    body = f"""
      <p style="font-size: 16px; line-height: 1.6; color: #333;">Hi {html.escape(customer_name)},</p>
      <p style="font-size: 16px; line-height: 1.6; color: #333;">Thank you for your purchase! Your free bonuses are ready to download:</p>
      {links}
    """
    return _layout("Your Bonus Downloads Are Ready!", "Your Bonus Downloads Are Ready!", body)


def format_session_time(scheduled: datetime) -> tuple[str, str]:
    """(date, time) strings as shown in the confirmation email"""
    date_text = f"{scheduled:%A}, {scheduled:%B} {scheduled.day}, {scheduled:%Y}"
    time_text = scheduled.strftime("%I:%M %p")
    if scheduled.tzinfo is not None:
        time_text = f"{time_text} {scheduled.tzname()}"
    return date_text, time_text


def render_booking_confirmation_email(booking: ConsultationBooking) -> str:
    """Session details email for a confirmed consultation booking"""
    service = booking.service
    date_text, time_text = format_session_time(booking.scheduled_date)
    rows = [
        ("Service", html.escape(service.title if service else booking.service_id)),
        ("Date", date_text),
        ("Time", time_text),
        ("Duration", html.escape((service.duration if service else None) or "")),
    ]
    table = "\n".join(
        f"""<tr>
            <td style="padding: 8px 0; color: #666; font-weight: 600;">{label}:</td>
            <td style="padding: 8px 0; color: #333;">{value}</td>
          </tr>"""
        for label, value in rows
    )
    body = f"""
      <p style="font-size: 16px; line-height: 1.6; color: #333;">Hi {html.escape(booking.customer_name)},</p>
      <p style="font-size: 16px; line-height: 1.6; color: #333;">Thank you for booking your consulting session!</p>
      <div style="background-color: #f8f9fa; padding: 25px; border-radius: 8px; border-left: 4px solid #2C2E83;">
        <h3 style="color: #2C2E83; margin: 0 0 15px 0; font-size: 18px;">Your Session Details:</h3>
        <table style="width: 100%; border-collapse: collapse;">
          {table}
          <tr>
            <td style="padding: 8px 0; color: #666; font-weight: 600;">Meeting Link:</td>
            <td style="padding: 8px 0;"><a href="{html.escape(booking.meeting_link or '#')}" style="color: #2C2E83; font-weight: 600;">Join Meeting</a></td>
          </tr>
        </table>
      </div>
      <p style="font-size: 15px; line-height: 1.6; color: #1565c0;">
        You will receive reminders 24 hours and 1 hour before your scheduled session.
      </p>
    """
    return _layout(
        "Your Consulting Session is Confirmed!",
        "Your Consulting Session is Confirmed!",
        body
    )
