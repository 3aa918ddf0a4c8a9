"""Domain exceptions raised by the service layer"""


class StorefrontError(Exception):
    """Base class for storefront errors"""


class SubscriptionSyncError(StorefrontError):
    """Writing the reconciled subscription state failed"""

    def __init__(self, customer_id: str, message: str):
        super().__init__(message)
        self.customer_id = customer_id


class ServiceNotFoundError(StorefrontError):
    """No active consulting service matches the requested business key"""


class ProductNotFoundError(StorefrontError):
    """No active product matches the requested Stripe price"""


class BookingNotFoundError(StorefrontError):
    """Consultation booking does not exist"""


class LookupFailedError(StorefrontError):
    """A database read failed while serving a request"""


class NotificationError(StorefrontError):
    """A notification email could not be delivered"""
