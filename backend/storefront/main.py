"""FastAPI application entry point"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.orm import sessionmaker

from storefront.core.config import Settings, get_settings
from storefront.core.logging import setup_logging
from storefront.core.middleware import setup_cors_middleware
from storefront.core.otel import initialize_otel, instrument_app
from storefront.db.session import create_db_engine, create_session_factory, init_db
from storefront.services.email_service import EmailSender
from storefront.services.notification_client import NotificationClient
from storefront.services.stripe_service import StripeGateway
from storefront.services.webhook_service import WebhookProcessor

from storefront.api import catalog, checkout, notifications, webhooks

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    settings: Settings = app.state.settings

    if initialize_otel(settings):
        logger.info(f"OpenTelemetry initialized, exporting to {settings.OTEL_EXPORTER_OTLP_ENDPOINT}")
        instrument_app(app, app.state.engine)
    else:
        logger.info("OpenTelemetry not configured - running without distributed tracing")

    logger.info("Initializing database...")
    try:
        init_db(app.state.engine)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    yield

    logger.info("Shutting down...")
    app.state.notifier.close()


def create_app(
    settings: Optional[Settings] = None,
    session_factory: Optional[sessionmaker] = None,
    stripe_gateway: Optional[StripeGateway] = None,
    notifier: Optional[NotificationClient] = None,
    email_sender: Optional[EmailSender] = None
) -> FastAPI:
    """Build the application with explicitly constructed clients.

    Any client not passed in is built from settings.
    """
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    if session_factory is None:
        session_factory = create_session_factory(create_db_engine(settings.DATABASE_URL))
    if stripe_gateway is None:
        stripe_gateway = StripeGateway(settings.STRIPE_SECRET_KEY, settings.STRIPE_WEBHOOK_SECRET)
    if notifier is None:
        notifier = NotificationClient(
            settings.FUNCTIONS_BASE_URL,
            settings.DATABASE_ANON_KEY,
            timeout=settings.NOTIFICATION_TIMEOUT_SECONDS
        )
    if email_sender is None:
        email_sender = EmailSender(settings.RESEND_API_KEY, settings.RESEND_FROM_EMAIL)

    app = FastAPI(
        title="Storefront Backend",
        description="Digital-goods storefront: catalog, checkout, consulting bookings and Stripe reconciliation",
        version="1.0.0",
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.engine = session_factory.kw["bind"]
    app.state.stripe_gateway = stripe_gateway
    app.state.notifier = notifier
    app.state.email_sender = email_sender
    app.state.webhook_processor = WebhookProcessor(stripe_gateway, session_factory, notifier)

    setup_cors_middleware(app, settings)

    app.include_router(webhooks.router)
    app.include_router(checkout.router)
    app.include_router(notifications.router)
    app.include_router(catalog.router)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler"""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"}
        )

    @app.get("/metrics")
    def metrics_endpoint():
        """Prometheus metrics endpoint"""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/health")
    def health_check():
        """Health check endpoint"""
        return {"status": "healthy"}

    return app


app = create_app()
