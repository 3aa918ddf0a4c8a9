"""Stripe webhook endpoint"""
import logging

import stripe
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from storefront.api.deps import get_app_settings, get_stripe_gateway, get_webhook_processor
from storefront.core.config import Settings
from storefront.core.metrics import webhook_rejections_counter
from storefront.services.stripe_service import StripeGateway
from storefront.services.webhook_service import WebhookProcessor

router = APIRouter(tags=["webhooks"])
logger = logging.getLogger("webhook")


@router.options("/stripe-webhook")
def stripe_webhook_preflight():
    """CORS preflight"""
    return Response(status_code=204)


@router.post("/stripe-webhook")
async def stripe_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    gateway: StripeGateway = Depends(get_stripe_gateway),
    processor: WebhookProcessor = Depends(get_webhook_processor),
    settings: Settings = Depends(get_app_settings)
):
    """Handle Stripe webhook events

    The body is read as raw bytes: the signature covers the exact payload.
    Events are acknowledged before they are processed unless
    WEBHOOK_PROCESS_INLINE is set.
    """
    try:
        sig_header = request.headers.get("stripe-signature")
        if not sig_header:
            webhook_rejections_counter.labels(reason="missing_signature").inc()
            raise HTTPException(400, "No signature found")

        payload = await request.body()

        try:
            event = gateway.construct_event(payload, sig_header)
        except (stripe.SignatureVerificationError, ValueError) as e:
            logger.error(f"Webhook signature verification failed: {e}")
            webhook_rejections_counter.labels(reason="invalid_signature").inc()
            raise HTTPException(400, f"Webhook signature verification failed: {e}")

        if settings.WEBHOOK_PROCESS_INLINE:
            await run_in_threadpool(processor.run, event, True)
        else:
            background_tasks.add_task(processor.run, event)

        return {"received": True}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error processing webhook: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(e)})
