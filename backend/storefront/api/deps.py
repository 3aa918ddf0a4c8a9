"""FastAPI dependencies resolving the clients built by the application factory"""
from typing import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from storefront.core.config import Settings
from storefront.db.repository import StorefrontRepository
from storefront.services.email_service import EmailSender
from storefront.services.stripe_service import StripeGateway
from storefront.services.webhook_service import WebhookProcessor


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Generator[Session, None, None]:
    """Request-scoped database session"""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_repository(db: Session = Depends(get_db)) -> StorefrontRepository:
    return StorefrontRepository(db)


def get_stripe_gateway(request: Request) -> StripeGateway:
    return request.app.state.stripe_gateway


def get_email_sender(request: Request) -> EmailSender:
    return request.app.state.email_sender


def get_webhook_processor(request: Request) -> WebhookProcessor:
    return request.app.state.webhook_processor


def get_origin(request: Request, settings: Settings = Depends(get_app_settings)) -> str:
    """Origin used to build checkout return URLs"""
    return (request.headers.get("origin") or settings.SITE_URL).rstrip("/")
