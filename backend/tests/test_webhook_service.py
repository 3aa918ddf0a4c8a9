"""Webhook processing service tests: subscription sync and one-time payments"""
import threading
from datetime import datetime
from decimal import Decimal
from unittest.mock import patch

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from storefront.core.exceptions import SubscriptionSyncError
from storefront.db.repository import StorefrontRepository
from storefront.models import (
    Base, ConsultationBooking, CustomerProductAccess, Order, OrderItem, StripeOrder, StripeSubscription
)
from storefront.services.events import classify_event
from storefront.services.webhook_service import (
    process_one_time_payment, subscription_fields, sync_customer_from_stripe
)

from conftest import FakeStripeGateway, build_event, checkout_session, stripe_subscription


def _db_down(*args, **kwargs):
    raise OperationalError("INSERT", {}, Exception("database is unavailable"))


def _consultation_event(**overrides):
    metadata = {
        "type": "consultation",
        "serviceId": "ai-strategy",
        "customerName": "Grace Hopper",
        "scheduledDate": "2026-11-02T15:30:00Z",
        "message": "Roadmap review",
    }
    metadata.update(overrides)
    return build_event("checkout.session.completed", checkout_session(metadata=metadata))


@pytest.mark.critical
class TestSubscriptionSync:
    """sync_customer_from_stripe"""

    def test_no_subscription_stores_not_started(self, db_session, fake_stripe):
        repo = StorefrontRepository(db_session)

        status = sync_customer_from_stripe("cus_new", fake_stripe, repo)

        assert status == "not_started"
        row = db_session.query(StripeSubscription).filter_by(customer_id="cus_new").one()
        assert row.status == "not_started"
        assert row.subscription_id is None
        assert fake_stripe.subscription_lookups == ["cus_new"]

    def test_full_subscription_is_stored(self, db_session, fake_stripe):
        fake_stripe.subscriptions["cus_abc"] = stripe_subscription(
            card={"brand": "visa", "last4": "4242"}, cancel_at_period_end=True
        )
        repo = StorefrontRepository(db_session)

        status = sync_customer_from_stripe("cus_abc", fake_stripe, repo)

        assert status == "active"
        row = db_session.query(StripeSubscription).filter_by(customer_id="cus_abc").one()
        assert row.subscription_id == "sub_test123"
        assert row.price_id == "price_monthly"
        assert row.current_period_start == 1700000000
        assert row.current_period_end == 1702592000
        assert row.cancel_at_period_end is True
        assert row.payment_method_brand == "visa"
        assert row.payment_method_last4 == "4242"

    def test_sync_twice_keeps_one_row_with_latest_state(self, db_session, fake_stripe):
        """Re-syncing converges on Stripe's current state instead of adding rows"""
        repo = StorefrontRepository(db_session)
        fake_stripe.subscriptions["cus_abc"] = stripe_subscription(period_end=1702592000)
        sync_customer_from_stripe("cus_abc", fake_stripe, repo)

        fake_stripe.subscriptions["cus_abc"] = stripe_subscription(status="past_due", period_end=1705270400)
        sync_customer_from_stripe("cus_abc", fake_stripe, repo)

        db_session.expire_all()
        rows = db_session.query(StripeSubscription).filter_by(customer_id="cus_abc").all()
        assert len(rows) == 1
        assert rows[0].status == "past_due"
        assert rows[0].current_period_end == 1705270400

    def test_concurrent_syncs_keep_one_row(self, tmp_path):
        """Two deliveries for the same customer racing on separate connections"""
        engine = create_engine(
            f"sqlite:///{tmp_path / 'subscriptions.db'}",
            connect_args={"check_same_thread": False, "timeout": 30}
        )
        Base.metadata.create_all(bind=engine)
        SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        barrier = threading.Barrier(2)
        errors = []
        period_ends = (1702592000, 1705270400)

        def sync(period_end):
            gateway = FakeStripeGateway()
            gateway.subscriptions["cus_race"] = stripe_subscription(period_end=period_end)
            try:
                with SessionLocal() as db:
                    barrier.wait(timeout=10)
                    sync_customer_from_stripe("cus_race", gateway, StorefrontRepository(db))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=sync, args=(end,)) for end in period_ends]
        try:
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join(timeout=30)

            assert errors == []
            with SessionLocal() as db:
                rows = db.query(StripeSubscription).filter_by(customer_id="cus_race").all()
            assert len(rows) == 1
            assert rows[0].current_period_end in period_ends
        finally:
            engine.dispose()

    def test_canceled_subscription_after_not_started(self, db_session, fake_stripe):
        repo = StorefrontRepository(db_session)
        sync_customer_from_stripe("cus_abc", fake_stripe, repo)
        fake_stripe.subscriptions["cus_abc"] = stripe_subscription(status="canceled")

        assert sync_customer_from_stripe("cus_abc", fake_stripe, repo) == "canceled"
        db_session.expire_all()
        assert db_session.query(StripeSubscription).count() == 1

    def test_database_error_raises_sync_error(self, db_session, fake_stripe):
        fake_stripe.subscriptions["cus_abc"] = stripe_subscription()
        repo = StorefrontRepository(db_session)

        with patch.object(StorefrontRepository, "upsert_subscription", side_effect=_db_down):
            with pytest.raises(SubscriptionSyncError) as exc_info:
                sync_customer_from_stripe("cus_abc", fake_stripe, repo)

        assert exc_info.value.customer_id == "cus_abc"

    def test_not_started_database_error_raises_sync_error(self, db_session, fake_stripe):
        repo = StorefrontRepository(db_session)
        with patch.object(StorefrontRepository, "upsert_subscription", side_effect=_db_down):
            with pytest.raises(SubscriptionSyncError):
                sync_customer_from_stripe("cus_abc", fake_stripe, repo)


@pytest.mark.high
class TestSubscriptionFields:
    """Mapping a Stripe subscription to row columns"""

    def test_period_falls_back_to_subscription_item(self):
        subscription = stripe_subscription()
        del subscription["current_period_start"]
        del subscription["current_period_end"]
        subscription["items"]["data"][0].update({
            "current_period_start": 1710000000,
            "current_period_end": 1712592000,
        })

        fields = subscription_fields(subscription)

        assert fields["current_period_start"] == 1710000000
        assert fields["current_period_end"] == 1712592000

    def test_unexpanded_payment_method_leaves_card_fields_out(self):
        subscription = stripe_subscription()
        subscription["default_payment_method"] = "pm_123"
        fields = subscription_fields(subscription)
        assert "payment_method_brand" not in fields
        assert "payment_method_last4" not in fields

    def test_subscription_without_items(self):
        subscription = stripe_subscription()
        subscription["items"] = {"data": []}
        assert subscription_fields(subscription)["price_id"] is None


@pytest.mark.critical
class TestConsultationPayment:
    """Paid consultation checkout sessions"""

    def test_creates_audit_row_booking_and_confirmation(
        self, db_session, consulting_service, notifier, notification_recorder
    ):
        payment = classify_event(_consultation_event())
        repo = StorefrontRepository(db_session)

        assert process_one_time_payment(payment, repo, notifier) == "processed"

        audit = db_session.query(StripeOrder).one()
        assert audit.checkout_session_id == "cs_test_paid"
        assert audit.amount_total == 14999
        assert audit.status == "completed"

        booking = db_session.query(ConsultationBooking).one()
        assert booking.service_id == "ai-strategy"
        assert booking.customer_name == "Grace Hopper"
        assert booking.customer_email == "delivered@resend.dev"
        assert booking.scheduled_date.replace(tzinfo=None) == datetime(2026, 11, 2, 15, 30)
        assert booking.payment_amount == Decimal("149.99")
        assert booking.payment_intent_id == "pi_test123"
        assert booking.message == "Roadmap review"

        assert notification_recorder.paths() == ["/send-booking-confirmation"]
        assert notification_recorder.calls[0]["json"] == {"bookingId": booking.id}
        assert notification_recorder.calls[0]["authorization"] == "Bearer anon-test-key"

    def test_customer_name_falls_back_to_checkout_details(
        self, db_session, consulting_service, notifier
    ):
        payment = classify_event(_consultation_event(customerName=""))
        process_one_time_payment(payment, StorefrontRepository(db_session), notifier)
        assert db_session.query(ConsultationBooking).one().customer_name == "Ada Lovelace"

    def test_audit_failure_has_no_side_effects(
        self, db_session, consulting_service, notifier, notification_recorder
    ):
        payment = classify_event(_consultation_event())
        repo = StorefrontRepository(db_session)

        with patch.object(StorefrontRepository, "insert_stripe_order", side_effect=_db_down):
            assert process_one_time_payment(payment, repo, notifier) == "aborted"

        assert db_session.query(ConsultationBooking).count() == 0
        assert db_session.query(Order).count() == 0
        assert notification_recorder.calls == []

    def test_redelivered_session_is_not_booked_twice(
        self, db_session, consulting_service, notifier, notification_recorder
    ):
        payment = classify_event(_consultation_event())
        repo = StorefrontRepository(db_session)

        assert process_one_time_payment(payment, repo, notifier) == "processed"
        assert process_one_time_payment(payment, repo, notifier) == "aborted"

        assert db_session.query(StripeOrder).count() == 1
        assert db_session.query(ConsultationBooking).count() == 1
        assert len(notification_recorder.calls) == 1

    def test_unknown_service_logs_and_skips_notification(
        self, db_session, notifier, notification_recorder, caplog
    ):
        payment = classify_event(_consultation_event(serviceId="does-not-exist"))

        with caplog.at_level("ERROR", logger="webhook"):
            status = process_one_time_payment(payment, StorefrontRepository(db_session), notifier)

        assert status == "processed"
        assert db_session.query(StripeOrder).count() == 1
        assert db_session.query(ConsultationBooking).count() == 0
        assert notification_recorder.calls == []
        assert "Error creating consultation booking" in caplog.text

    def test_invalid_scheduled_date_does_not_book(self, db_session, consulting_service, notifier):
        payment = classify_event(_consultation_event(scheduledDate="next tuesday"))
        process_one_time_payment(payment, StorefrontRepository(db_session), notifier)
        assert db_session.query(ConsultationBooking).count() == 0

    def test_notification_failure_keeps_booking(
        self, db_session, consulting_service, notifier, notification_recorder
    ):
        notification_recorder.raise_error = httpx.ConnectError("connection refused")
        payment = classify_event(_consultation_event())

        assert process_one_time_payment(payment, StorefrontRepository(db_session), notifier) == "processed"
        assert db_session.query(ConsultationBooking).count() == 1

    def test_missing_email_stops_after_audit_row(self, db_session, consulting_service, notifier):
        event = build_event("checkout.session.completed", checkout_session(
            metadata={"type": "consultation", "serviceId": "ai-strategy"}, email=None
        ))
        payment = classify_event(event)

        assert process_one_time_payment(payment, StorefrontRepository(db_session), notifier) == "processed"
        assert db_session.query(StripeOrder).count() == 1
        assert db_session.query(ConsultationBooking).count() == 0


@pytest.mark.critical
class TestProductPayment:
    """Paid product checkout sessions"""

    def test_creates_order_item_grants_and_bonus_email(
        self, db_session, ebook_with_bonuses, notifier, notification_recorder
    ):
        ebook = ebook_with_bonuses["ebook"]
        event = build_event("checkout.session.completed", checkout_session(
            metadata={"productId": ebook.id}, amount_total=1999, session_id="cs_ebook"
        ))
        payment = classify_event(event)

        assert process_one_time_payment(payment, StorefrontRepository(db_session), notifier) == "processed"

        order = db_session.query(Order).one()
        assert order.email == "delivered@resend.dev"
        assert order.total_amount == Decimal("19.99")
        assert order.payment_status == "paid"

        item = db_session.query(OrderItem).one()
        assert item.product_id == ebook.id
        assert item.order_id == order.id

        granted = {grant.product_id for grant in db_session.query(CustomerProductAccess).all()}
        assert granted == {ebook_with_bonuses["prompts"].id, ebook_with_bonuses["guide"].id}

        assert notification_recorder.paths() == ["/send-bonus-email"]
        assert notification_recorder.calls[0]["json"] == {
            "email": "delivered@resend.dev",
            "customerName": "Ada Lovelace",
            "orderId": order.id,
        }

    def test_order_without_product_grants_only_unconditional_bonuses(
        self, db_session, ebook_with_bonuses, notifier
    ):
        payment = classify_event(build_event("checkout.session.completed", checkout_session()))
        process_one_time_payment(payment, StorefrontRepository(db_session), notifier)

        assert db_session.query(Order).count() == 1
        assert db_session.query(OrderItem).count() == 0
        assert db_session.query(CustomerProductAccess).count() == 0

    def test_bonus_email_uses_default_customer_name(
        self, db_session, notifier, notification_recorder
    ):
        payment = classify_event(build_event("checkout.session.completed", checkout_session(name=None)))
        process_one_time_payment(payment, StorefrontRepository(db_session), notifier)
        assert notification_recorder.calls[0]["json"]["customerName"] == "Valued Customer"

    def test_bonus_email_rejection_keeps_order(
        self, db_session, notifier, notification_recorder
    ):
        notification_recorder.status_code = 500
        payment = classify_event(build_event("checkout.session.completed", checkout_session()))

        assert process_one_time_payment(payment, StorefrontRepository(db_session), notifier) == "processed"
        assert db_session.query(Order).count() == 1


@pytest.mark.high
class TestWebhookProcessor:
    """Outcome reporting for background processing"""

    def test_ignored_event_outcome(self, processor):
        outcome = processor.run(build_event("product.created", {"id": "prod_1"}, event_id="evt_ignored"))

        assert outcome.event_id == "evt_ignored"
        assert outcome.route == "ignored"
        assert outcome.status == "ignored"
        assert outcome.detail == "not customer-scoped"

    def test_sync_outcome_reports_stored_status(self, processor, fake_stripe):
        fake_stripe.subscriptions["cus_abc"] = stripe_subscription(status="trialing")

        outcome = processor.run(build_event("customer.subscription.created", {"customer": "cus_abc"}))

        assert outcome.route == "subscription_sync"
        assert outcome.status == "processed"
        assert outcome.detail == "trialing"

    def test_failure_is_reported_not_raised(self, processor, fake_stripe):
        fake_stripe.subscriptions["cus_abc"] = stripe_subscription()

        with patch.object(StorefrontRepository, "upsert_subscription", side_effect=_db_down):
            outcome = processor.run(build_event("invoice.paid", {"customer": "cus_abc"}))

        assert outcome.status == "failed"
        assert outcome.route == "subscription_sync"
        assert "Failed to sync subscription" in outcome.detail

    def test_failure_reraised_when_requested(self, processor, fake_stripe):
        fake_stripe.subscriptions["cus_abc"] = stripe_subscription()

        with patch.object(StorefrontRepository, "upsert_subscription", side_effect=_db_down):
            with pytest.raises(SubscriptionSyncError):
                processor.run(build_event("invoice.paid", {"customer": "cus_abc"}), raise_errors=True)

    def test_checkout_payment_outcome(self, processor, db_session, consulting_service):
        outcome = processor.run(_consultation_event())

        assert outcome.route == "checkout_payment"
        assert outcome.status == "processed"
        assert db_session.query(ConsultationBooking).count() == 1
