"""Stripe webhook handler.

Processes checkout.session.completed events; everything else is acknowledged
and ignored.
"""

import logging

import stripe
from fastapi import APIRouter, HTTPException, Request, status

from casual_lease.core.config import settings
from casual_lease.core.database import async_session_factory
from casual_lease.schemas import WebhookAck
from casual_lease.services.reconciliation import ReconciliationOutcome, reconcile_checkout_completed
from casual_lease.services.stripe_service import construct_webhook_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/stripe", response_model=WebhookAck)
async def stripe_webhook(request: Request):
    """Handle Stripe webhook events.

    Uses a dedicated DB session (not the request-scoped one) because webhook
    processing must commit independently of any ongoing request.
    """
    if not settings.stripe_secret_key:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Stripe not configured")

    payload = await request.body()
    sig_header = request.headers.get("stripe-signature", "")

    try:
        event = construct_webhook_event(payload, sig_header)
    except (ValueError, stripe.SignatureVerificationError):
        logger.warning("Rejected Stripe webhook with invalid payload or signature")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook signature") from None

    event_type = event["type"]
    logger.info("Stripe webhook received: %s (%s)", event_type, event["id"])

    if event_type == "checkout.session.completed":
        async with async_session_factory() as db:
            outcome = await reconcile_checkout_completed(db, event["data"]["object"])
        if outcome == ReconciliationOutcome.FAILED:
            # Non-2xx makes Stripe redeliver
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Webhook processing failed"
            )

    return WebhookAck()
