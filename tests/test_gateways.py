"""Email and Stripe adapters, and the customer email templates."""

import json
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import aiosmtplib
import pytest
import stripe

from casual_lease.core.config import settings
from casual_lease.models import BookingType, RefundStatus
from casual_lease.services.email import EmailAttachment, build_message, send_email
from casual_lease.services.notifications import CancellationNotice, format_money, render_cancellation_email
from casual_lease.services.stripe_service import (
    StripeNotConfiguredError,
    construct_webhook_event,
    create_checkout_session,
    create_refund,
)

SMTP = {
    "smtp_host": "smtp.example.com",
    "smtp_user": "mailer",
    "smtp_password": "secret",
    "smtp_from": "bookings@casuallease.com.au",
}


@pytest.fixture
def smtp_configured():
    with (
        patch.object(settings, "smtp_host", SMTP["smtp_host"]),
        patch.object(settings, "smtp_user", SMTP["smtp_user"]),
        patch.object(settings, "smtp_password", SMTP["smtp_password"]),
        patch.object(settings, "smtp_from", SMTP["smtp_from"]),
    ):
        yield


# ---------------------------------------------------------------------------
# Email
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@patch("casual_lease.services.email.aiosmtplib.send", new_callable=AsyncMock)
async def test_send_email_skipped_without_smtp(mock_send):
    with patch.object(settings, "smtp_host", ""):
        assert await send_email("jane@example.com", "Hello", "<p>Hi</p>") is False
    mock_send.assert_not_awaited()


@pytest.mark.asyncio
@patch("casual_lease.services.email.aiosmtplib.send", new_callable=AsyncMock)
async def test_send_email_delivers(mock_send, smtp_configured):
    assert await send_email("jane@example.com", "Hello", "<p>Hi</p>") is True

    message = mock_send.call_args[0][0]
    assert message["To"] == "jane@example.com"
    assert message["From"] == SMTP["smtp_from"]
    assert mock_send.call_args.kwargs["hostname"] == SMTP["smtp_host"]


@pytest.mark.asyncio
@patch(
    "casual_lease.services.email.aiosmtplib.send",
    new_callable=AsyncMock,
    side_effect=aiosmtplib.SMTPConnectError("connection refused"),
)
async def test_send_email_relay_failure_returns_false(mock_send, smtp_configured):
    assert await send_email("jane@example.com", "Hello", "<p>Hi</p>") is False


def test_build_message_with_attachment():
    message = build_message(
        "jane@example.com",
        "Tax Invoice: BK-1",
        "<p>Invoice attached</p>",
        [EmailAttachment(filename="BK-1.pdf", content=b"%PDF-1.4")],
    )

    attachments = list(message.iter_attachments())
    assert len(attachments) == 1
    assert attachments[0].get_filename() == "BK-1.pdf"
    assert attachments[0].get_content_type() == "application/pdf"


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


def test_format_money():
    assert format_money(0) == "$0.00"
    assert format_money(123456) == "$1,234.56"


@pytest.mark.parametrize(
    "refund_status,phrase",
    [
        (RefundStatus.NOT_REQUIRED, "no refund is applicable"),
        (RefundStatus.PROCESSED, "full refund of $1,100.00"),
        (RefundStatus.PENDING, "refund is being arranged"),
        (RefundStatus.MANUAL, "refund is being arranged"),
    ],
)
def test_cancellation_email_refund_wording(refund_status, phrase):
    notice = CancellationNotice(
        booking_number="BK-0001",
        customer_name="Jane Citizen",
        customer_email="jane@example.com",
        centre_name="Westfield Bondi",
        asset_label="Site 3",
        start_date=date(2026, 3, 2),
        end_date=date(2026, 3, 8),
        total_with_gst_cents=110_000,
        refund_status=refund_status,
        trading_name="Pop Up <Coffee>",
        cancellation_reason="Centre maintenance",
    )

    subject, html = render_cancellation_email(notice)

    assert subject == "Booking Cancellation: BK-0001"
    assert phrase in html
    assert "Pop Up &lt;Coffee&gt;" in html
    assert "Centre maintenance" in html
    assert "Monday, 2 March 2026" in html


# ---------------------------------------------------------------------------
# Stripe
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_stripe_calls_require_secret_key():
    with patch.object(settings, "stripe_secret_key", ""):
        with pytest.raises(StripeNotConfiguredError):
            await create_refund("pi_1")


@pytest.mark.asyncio
@patch("casual_lease.services.stripe_service.stripe.Refund.create")
async def test_create_refund_passes_idempotency_key(mock_create):
    mock_create.return_value = MagicMock(id="re_1")
    with patch.object(settings, "stripe_secret_key", "sk_test_dummy"):
        refund = await create_refund("pi_1", idempotency_key="refund:site:7")

    assert refund.id == "re_1"
    mock_create.assert_called_once_with(payment_intent="pi_1", idempotency_key="refund:site:7")


@pytest.mark.asyncio
@patch("casual_lease.services.stripe_service.stripe.checkout.Session.create")
async def test_checkout_session_metadata_routes_back_to_booking(mock_create):
    mock_create.return_value = MagicMock(id="cs_1", url="https://checkout.stripe.com/c/pay/cs_1")
    with patch.object(settings, "stripe_secret_key", "sk_test_dummy"):
        result = await create_checkout_session(
            booking_id=12,
            booking_number="BK-0012",
            customer_email="jane@example.com",
            centre_name="Westfield Bondi",
            asset_label="Shop 4",
            total_amount_cents=110_000,
            start_date=date(2026, 3, 2),
            end_date=date(2026, 3, 8),
            booking_type=BookingType.VACANT_SHOP,
        )

    assert result == {"session_id": "cs_1", "url": "https://checkout.stripe.com/c/pay/cs_1"}
    kwargs = mock_create.call_args.kwargs
    assert kwargs["metadata"] == {"bookingId": "12", "bookingNumber": "BK-0012", "bookingType": "vacant_shop"}
    assert kwargs["line_items"][0]["price_data"]["unit_amount"] == 110_000
    assert kwargs["line_items"][0]["price_data"]["currency"] == "aud"


def test_unverified_webhook_event_in_development():
    payload = json.dumps({"id": "evt_1", "object": "event", "type": "checkout.session.completed"}).encode()
    with patch.object(settings, "stripe_webhook_secret", ""):
        event = construct_webhook_event(payload, "")
    assert event["type"] == "checkout.session.completed"


def test_verified_webhook_event_rejects_bad_signature():
    with patch.object(settings, "stripe_webhook_secret", "whsec_test"):
        with pytest.raises(stripe.SignatureVerificationError):
            construct_webhook_event(b'{"id": "evt_1"}', "t=1,v1=deadbeef")
