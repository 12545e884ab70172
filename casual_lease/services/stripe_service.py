"""Stripe integration service for payment processing.

Wraps the Stripe Python SDK. All amounts are in cents (AUD).
"""

import json
import logging
from datetime import date

import stripe

from casual_lease.core.config import settings
from casual_lease.models.booking import BookingType

logger = logging.getLogger(__name__)


class StripeNotConfiguredError(RuntimeError):
    """No Stripe secret key is configured."""


def _configure() -> None:
    """Set the Stripe API key from settings."""
    if not settings.stripe_secret_key:
        raise StripeNotConfiguredError("Stripe secret key is not configured")
    stripe.api_key = settings.stripe_secret_key


def _format_date(d: date) -> str:
    return d.strftime("%d %b %Y")


async def create_refund(payment_intent_id: str, idempotency_key: str | None = None) -> stripe.Refund:
    """Refund the full captured amount of a PaymentIntent.

    Raises stripe.StripeError (or StripeNotConfiguredError) on failure; the
    caller decides whether that is fatal.
    """
    _configure()

    refund = stripe.Refund.create(payment_intent=payment_intent_id, idempotency_key=idempotency_key)
    logger.info("Stripe refund %s created for payment intent %s", refund.id, payment_intent_id)
    return refund


async def create_checkout_session(
    booking_id: int,
    booking_number: str,
    customer_email: str,
    centre_name: str,
    asset_label: str,
    total_amount_cents: int,
    start_date: date,
    end_date: date,
    booking_type: BookingType = BookingType.SITE,
) -> dict[str, str]:
    """Create a Stripe Checkout Session for a card-paid booking.

    The metadata routes the completion webhook back to the right booking table.
    Returns {"session_id", "url"} for the client redirect.
    """
    _configure()

    session = stripe.checkout.Session.create(
        mode="payment",
        payment_method_types=["card"],
        customer_email=customer_email,
        line_items=[
            {
                "price_data": {
                    "currency": settings.stripe_currency,
                    "unit_amount": total_amount_cents,
                    "product_data": {
                        "name": f"Casual Lease - {centre_name} {asset_label}",
                        "description": (
                            f"Booking {booking_number}\n{_format_date(start_date)} - {_format_date(end_date)}"
                        ),
                    },
                },
                "quantity": 1,
            }
        ],
        metadata={
            "bookingId": str(booking_id),
            "bookingNumber": booking_number,
            "bookingType": booking_type.value,
        },
        success_url=f"{settings.app_url}/my-bookings?payment=success&booking={booking_number}",
        cancel_url=f"{settings.app_url}/my-bookings?payment=cancelled&booking={booking_number}",
    )
    return {"session_id": session.id, "url": session.url}


def construct_webhook_event(payload: bytes, sig_header: str) -> stripe.Event:
    """Verify and construct a Stripe webhook event.

    Without a webhook secret (local development) the payload is parsed
    unverified.
    """
    if settings.stripe_webhook_secret:
        return stripe.Webhook.construct_event(payload, sig_header, settings.stripe_webhook_secret)

    logger.warning("Stripe webhook secret not set - accepting unverified event")
    return stripe.Event.construct_from(json.loads(payload), settings.stripe_secret_key)
