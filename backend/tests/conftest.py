"""Shared pytest fixtures for test suite"""
import hashlib
import hmac
import json
import os
import sys
import time
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional
from unittest.mock import Mock, patch

import httpx
import pytest

WEBHOOK_SECRET = "whsec_test_secret"
ANON_KEY = "anon-test-key"
SERVICE_ROLE_KEY = "service-role-test-key"

# Required settings must exist before the application module is imported
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DATABASE_SERVICE_ROLE_KEY", SERVICE_ROLE_KEY)
os.environ.setdefault("DATABASE_ANON_KEY", ANON_KEY)

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.core.config import Settings
from storefront.main import create_app
from storefront.models import Base, ConsultingService, Product
from storefront.services.email_service import EmailSender
from storefront.services.notification_client import NotificationClient
from storefront.services.stripe_service import StripeGateway
from storefront.services.webhook_service import WebhookProcessor


# SQLite in-memory database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


class FakeStripeGateway(StripeGateway):
    """Real signature verification; subscriptions and sessions served from memory"""

    def __init__(self):
        super().__init__("sk_test_123", WEBHOOK_SECRET)
        self.subscriptions: Dict[str, Optional[Dict[str, Any]]] = {}
        self.subscription_lookups: List[str] = []
        self.created_sessions: List[Dict[str, Any]] = []

    def latest_subscription(self, customer_id: str) -> Optional[Dict[str, Any]]:
        self.subscription_lookups.append(customer_id)
        return self.subscriptions.get(customer_id)

    def create_checkout_session(self, **params: Any) -> Dict[str, Any]:
        self.created_sessions.append(params)
        return {"id": "cs_test_123", "url": "https://checkout.stripe.com/c/pay/cs_test_123"}


class NotificationRecorder:
    """httpx transport handler recording service-to-service calls"""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.status_code = 200
        self.raise_error: Optional[Exception] = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append({
            "path": request.url.path,
            "json": json.loads(request.content),
            "authorization": request.headers.get("authorization"),
        })
        if self.raise_error:
            raise self.raise_error
        return httpx.Response(self.status_code, json={"success": self.status_code < 400})

    def paths(self) -> List[str]:
        return [call["path"] for call in self.calls]


def stripe_subscription(
    subscription_id: str = "sub_test123",
    status: str = "active",
    price_id: str = "price_monthly",
    period_start: int = 1700000000,
    period_end: int = 1702592000,
    cancel_at_period_end: bool = False,
    card: Optional[Dict[str, str]] = None
) -> Dict[str, Any]:
    """Subscription shaped like Stripe's list response with an expanded payment method"""
    return {
        "id": subscription_id,
        "object": "subscription",
        "status": status,
        "cancel_at_period_end": cancel_at_period_end,
        "current_period_start": period_start,
        "current_period_end": period_end,
        "items": {"object": "list", "data": [{"id": "si_test123", "price": {"id": price_id}}]},
        "default_payment_method": {"id": "pm_test123", "card": card} if card else None,
    }


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a stripe-signature header using Stripe's v1 scheme"""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def build_event(event_type: str, obj: Dict[str, Any], event_id: str = "evt_test123") -> Dict[str, Any]:
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": int(time.time()),
        "data": {"object": obj},
    }


def checkout_session(
    metadata: Optional[Dict[str, str]] = None,
    mode: str = "payment",
    payment_status: str = "paid",
    customer: Optional[str] = "cus_test123",
    session_id: str = "cs_test_paid",
    amount_total: int = 14999,
    email: Optional[str] = "delivered@resend.dev",
    name: Optional[str] = "Ada Lovelace"
) -> Dict[str, Any]:
    return {
        "id": session_id,
        "object": "checkout.session",
        "mode": mode,
        "payment_status": payment_status,
        "customer": customer,
        "payment_intent": "pi_test123",
        "amount_subtotal": amount_total,
        "amount_total": amount_total,
        "currency": "usd",
        "customer_details": {"email": email, "name": name},
        "metadata": metadata or {},
    }


def post_event(client: TestClient, event: Dict[str, Any], secret: str = WEBHOOK_SECRET):
    payload = json.dumps(event).encode("utf-8")
    return client.post(
        "/stripe-webhook",
        content=payload,
        headers={"stripe-signature": sign_payload(payload, secret), "Content-Type": "application/json"}
    )


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh SQLite in-memory database session for each test"""
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def test_settings() -> Settings:
    return Settings(
        STRIPE_SECRET_KEY="sk_test_123",
        STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET,
        DATABASE_URL=TEST_DATABASE_URL,
        DATABASE_SERVICE_ROLE_KEY=SERVICE_ROLE_KEY,
        DATABASE_ANON_KEY=ANON_KEY,
        SITE_URL="https://shop.example.com",
        FUNCTIONS_BASE_URL="http://notify.test",
        RESEND_API_KEY="re_test_123",
    )


@pytest.fixture(scope="function")
def fake_stripe() -> FakeStripeGateway:
    return FakeStripeGateway()


@pytest.fixture(scope="function")
def notification_recorder() -> NotificationRecorder:
    return NotificationRecorder()


@pytest.fixture(scope="function")
def notifier(notification_recorder) -> NotificationClient:
    return NotificationClient(
        "http://notify.test",
        ANON_KEY,
        http_client=httpx.Client(transport=httpx.MockTransport(notification_recorder))
    )


@pytest.fixture(scope="function")
def mock_email_service():
    """Mock email service (Resend) to avoid sending actual emails"""
    with patch('storefront.services.email_service.resend') as mock_resend:
        mock_resend.Emails.send = Mock(return_value={"id": "email_test123"})
        yield mock_resend


@pytest.fixture(scope="function")
def email_sender(mock_email_service) -> EmailSender:
    return EmailSender("re_test_123", "no-reply@storefront.test")


@pytest.fixture(scope="function")
def processor(db_session, fake_stripe, notifier) -> WebhookProcessor:
    return WebhookProcessor(fake_stripe, TestSessionLocal, notifier)


@pytest.fixture(scope="function")
def app(db_session, test_settings, fake_stripe, notifier, email_sender):
    return create_app(
        settings=test_settings,
        session_factory=TestSessionLocal,
        stripe_gateway=fake_stripe,
        notifier=notifier,
        email_sender=email_sender
    )


@pytest.fixture(scope="function")
def client(app) -> Generator[TestClient, None, None]:
    """FastAPI test client wired to the in-memory database and fakes"""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(scope="function")
def service_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {ANON_KEY}"}


@pytest.fixture(scope="function")
def consulting_service(db_session) -> ConsultingService:
    service = ConsultingService(
        service_id="ai-strategy",
        title="AI Strategy Session",
        description="One-on-one AI roadmap planning",
        duration="60 minutes",
        price=Decimal("149.99"),
        is_active=True
    )
    db_session.add(service)
    db_session.commit()
    db_session.refresh(service)
    return service


@pytest.fixture(scope="function")
def ebook_with_bonuses(db_session) -> Dict[str, Product]:
    """A paid e-book that unlocks two bonus downloads, plus an unrelated bonus"""
    ebook = Product(
        title="Zero to AI Income E-Book",
        price=Decimal("19.99"),
        stripe_price_id="price_ebook",
        category="ebooks",
        is_featured=True
    )
    db_session.add(ebook)
    db_session.flush()

    prompts = Product(
        title="50 Proven ChatGPT Prompts",
        price=Decimal("0"),
        is_bonus=True,
        requires_product_id=ebook.id,
        download_url="https://files.example.com/prompts.pdf"
    )
    guide = Product(
        title="Build It, Launch It, Grow It",
        price=Decimal("0"),
        is_bonus=True,
        requires_product_id=ebook.id,
        download_url="https://files.example.com/guide.pdf"
    )
    other = Product(title="Other Product", price=Decimal("9.99"), stripe_price_id="price_other")
    db_session.add_all([prompts, guide, other])
    db_session.flush()

    unrelated = Product(
        title="Unrelated Bonus",
        price=Decimal("0"),
        is_bonus=True,
        requires_product_id=other.id,
        download_url="https://files.example.com/unrelated.pdf"
    )
    db_session.add(unrelated)
    db_session.commit()
    return {"ebook": ebook, "prompts": prompts, "guide": guide, "other": other, "unrelated": unrelated}
