"""Service-to-service calls from the webhook to the notification endpoints"""
import logging
from typing import Any, Dict, Optional

import httpx

from storefront.core.metrics import notifications_counter

logger = logging.getLogger("notifications")


class NotificationClient:
    """Best-effort HTTP client for the bonus-email and booking-confirmation endpoints.

    Calls never raise: a failed notification is logged and reported as False,
    because the order or booking it announces is already committed.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 10.0,
        http_client: Optional[httpx.Client] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.http_client = http_client or httpx.Client(timeout=timeout)

    def send_booking_confirmation(self, booking_id: str) -> bool:
        return self._post("/send-booking-confirmation", {"bookingId": booking_id}, "booking_confirmation")

    def send_bonus_email(self, email: str, customer_name: str, order_id: str) -> bool:
        return self._post(
            "/send-bonus-email",
            {"email": email, "customerName": customer_name, "orderId": order_id},
            "bonus_email"
        )

    def _post(self, path: str, payload: Dict[str, Any], kind: str) -> bool:
        try:
            response = self.http_client.post(
                f"{self.base_url}{path}",
                json=payload,
                headers={"Authorization": f"Bearer {self.token}"}
            )
        except httpx.HTTPError as e:
            logger.error(f"Error calling {path}: {e}")
            notifications_counter.labels(kind=kind, status="error").inc()
            return False

        if response.is_success:
            logger.info(f"Notification {kind} sent successfully")
            notifications_counter.labels(kind=kind, status="sent").inc()
            return True

        logger.error(f"Notification {kind} failed ({response.status_code}): {response.text}")
        notifications_counter.labels(kind=kind, status="failed").inc()
        return False

    def close(self):
        self.http_client.close()
