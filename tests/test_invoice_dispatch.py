"""Invoice dispatch and the outbox drain."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from casual_lease.core.time import as_utc
from casual_lease.models import BookingStatus, InvoiceOutbox, PaymentMethod
from casual_lease.services.errors import InvoiceDispatchError, NotFoundError
from casual_lease.services.invoice_dispatch import DrainResult, dispatch_invoice_if_required, drain_invoice_outbox
from casual_lease.services.email import EmailAttachment
from casual_lease.services.invoice_pdf import build_invoice_pdf
from casual_lease.services.notifications import InvoiceNotice, render_invoice_email, send_invoice_email

NOW = datetime(2026, 2, 10, 14, 0, tzinfo=UTC)


@pytest.mark.asyncio
@patch("casual_lease.services.invoice_dispatch.send_invoice_email", new_callable=AsyncMock, return_value=True)
async def test_dispatch_sends_once(mock_send, db, seed):
    data = await seed(status=BookingStatus.CONFIRMED, paid_at=NOW - timedelta(hours=1))

    assert await dispatch_invoice_if_required(db, data.booking.id, now=NOW) is True
    assert await dispatch_invoice_if_required(db, data.booking.id, now=NOW) is False

    mock_send.assert_awaited_once()
    notice = mock_send.call_args[0][0]
    assert notice.paid is True
    assert notice.abn == "12345678901"
    assert notice.company_name == "Pop Up Pty Ltd"
    assert notice.due_date is None

    (attachment,) = mock_send.call_args[0][1]
    assert attachment.filename == f"Invoice-{data.booking.booking_number}.pdf"
    assert attachment.mime_type == "application/pdf"
    assert attachment.content.startswith(b"%PDF-")

    await db.refresh(data.booking)
    assert as_utc(data.booking.invoice_dispatched_at) == NOW


@pytest.mark.asyncio
@patch("casual_lease.services.invoice_dispatch.send_invoice_email", new_callable=AsyncMock, return_value=True)
async def test_invoice_booking_carries_due_date(mock_send, db, seed):
    approved = datetime(2026, 2, 1, 9, 0, tzinfo=UTC)
    data = await seed(status=BookingStatus.CONFIRMED, payment_method=PaymentMethod.INVOICE, approved_at=approved)

    await dispatch_invoice_if_required(db, data.booking.id, now=NOW)

    notice = mock_send.call_args[0][0]
    assert notice.paid is False
    assert notice.due_date == (approved + timedelta(days=14)).date()


@pytest.mark.asyncio
@patch("casual_lease.services.invoice_dispatch.send_invoice_email", new_callable=AsyncMock, return_value=True)
async def test_unconfirmed_booking_not_invoiced(mock_send, db, seed):
    data = await seed(status=BookingStatus.PENDING)

    assert await dispatch_invoice_if_required(db, data.booking.id, now=NOW) is False
    mock_send.assert_not_awaited()


@pytest.mark.asyncio
@patch("casual_lease.services.invoice_dispatch.send_invoice_email", new_callable=AsyncMock, return_value=False)
async def test_undelivered_invoice_raises(mock_send, db, seed):
    data = await seed(status=BookingStatus.CONFIRMED)

    with pytest.raises(InvoiceDispatchError):
        await dispatch_invoice_if_required(db, data.booking.id, now=NOW)

    await db.refresh(data.booking)
    assert data.booking.invoice_dispatched_at is None


@pytest.mark.asyncio
async def test_missing_booking_raises(db):
    with pytest.raises(NotFoundError):
        await dispatch_invoice_if_required(db, 424242, now=NOW)


@pytest.mark.asyncio
@patch("casual_lease.services.invoice_dispatch.send_invoice_email", new_callable=AsyncMock, return_value=True)
async def test_drain_marks_rows_dispatched(mock_send, db, seed):
    data = await seed(status=BookingStatus.CONFIRMED, paid_at=NOW)
    db.add(InvoiceOutbox(booking_id=data.booking.id))
    await db.commit()

    result = await drain_invoice_outbox(db, max_attempts=3, now=NOW)

    assert result == DrainResult(dispatched=1, failed=0)
    entry = (await db.execute(select(InvoiceOutbox).execution_options(populate_existing=True))).scalar_one()
    assert as_utc(entry.dispatched_at) == NOW
    assert entry.attempts == 0

    # Nothing left to do
    assert await drain_invoice_outbox(db, max_attempts=3, now=NOW) == DrainResult()
    mock_send.assert_awaited_once()


@pytest.mark.asyncio
@patch("casual_lease.services.invoice_dispatch.send_invoice_email", new_callable=AsyncMock, return_value=False)
async def test_drain_retries_until_max_attempts(mock_send, db, seed):
    data = await seed(status=BookingStatus.CONFIRMED, paid_at=NOW)
    db.add(InvoiceOutbox(booking_id=data.booking.id))
    await db.commit()

    for _ in range(3):
        assert await drain_invoice_outbox(db, max_attempts=2, now=NOW) in (
            DrainResult(failed=1),
            DrainResult(),
        )

    assert mock_send.await_count == 2
    entry = (await db.execute(select(InvoiceOutbox).execution_options(populate_existing=True))).scalar_one()
    assert entry.attempts == 2
    assert entry.dispatched_at is None
    assert "not delivered" in entry.last_error


def test_invoice_email_rendering():
    notice = InvoiceNotice(
        booking_number="BK-0007",
        customer_name="Jane Citizen",
        customer_email="jane@example.com",
        centre_name="Westfield <Parramatta>",
        asset_label="Site 7",
        start_date=datetime(2026, 3, 2).date(),
        end_date=datetime(2026, 3, 8).date(),
        total_amount_cents=100_000,
        gst_amount_cents=10_000,
        gst_percentage=10.0,
        paid=True,
        abn="12345678901",
    )

    subject, html = render_invoice_email(notice)

    assert subject == "Tax Invoice: BK-0007"
    assert "$1,100.00" in html
    assert "GST (10%)" in html
    assert "Westfield &lt;Parramatta&gt;" in html
    assert "PAID" in html


def _unpaid_notice(**overrides):
    fields = dict(
        booking_number="BK-0008",
        customer_name="Zoë Nguyễn",
        customer_email="zoe@example.com",
        centre_name="Westfield Chatswood",
        asset_label="Site 8",
        start_date=datetime(2026, 3, 2).date(),
        end_date=datetime(2026, 3, 2).date(),
        total_amount_cents=50_000,
        gst_amount_cents=5_000,
        gst_percentage=10.0,
        paid=False,
        due_date=datetime(2026, 2, 15).date(),
        company_name="Café ☕ Pty Ltd",
        abn="98765432109",
    )
    fields.update(overrides)
    return InvoiceNotice(**fields)


def test_invoice_pdf_handles_names_outside_latin1():
    pdf = build_invoice_pdf(_unpaid_notice(), issued_on=NOW.date())

    assert pdf.startswith(b"%PDF-")
    assert pdf.rstrip().endswith(b"%%EOF")


@pytest.mark.asyncio
@patch("casual_lease.services.notifications.send_email", new_callable=AsyncMock, return_value=True)
async def test_invoice_email_carries_attachment(mock_send_email):
    attachment = EmailAttachment(filename="Invoice-BK-0008.pdf", content=b"%PDF-1.4")

    assert await send_invoice_email(_unpaid_notice(), [attachment]) is True

    to, subject, html, attachments = mock_send_email.call_args[0]
    assert to == "zoe@example.com"
    assert subject == "Tax Invoice: BK-0008"
    assert "PDF copy" in html
    assert attachments == [attachment]
