"""Tax invoice dispatch for confirmed site bookings.

Payment confirmation does not email the invoice itself. It queues an
``InvoiceOutbox`` row in the same transaction, and the Celery worker drains
the outbox with bounded retries. ``invoice_dispatched_at`` on the booking
makes dispatch idempotent, so a row that is retried after a crash between
sending and stamping sends at most one extra copy.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from casual_lease.core.config import settings
from casual_lease.core.time import as_utc, utc_now
from casual_lease.models.booking import Booking, BookingStatus, BookingType, PaymentMethod
from casual_lease.models.outbox import InvoiceOutbox
from casual_lease.models.user import CustomerProfile, User
from casual_lease.services.booking_kinds import get_kind, load_asset_chain
from casual_lease.services.email import EmailAttachment
from casual_lease.services.errors import InvoiceDispatchError, NotFoundError
from casual_lease.services.invoice_pdf import build_invoice_pdf, invoice_filename
from casual_lease.services.notifications import InvoiceNotice, send_invoice_email
from casual_lease.services.payment_reminders import payment_due_date

logger = logging.getLogger(__name__)


@dataclass
class DrainResult:
    dispatched: int = 0
    failed: int = 0


async def dispatch_invoice_if_required(db: AsyncSession, booking_id: int, now: datetime | None = None) -> bool:
    """Email the tax invoice for a site booking unless it has gone already.

    Returns True if an invoice was sent, False if none was required (not
    confirmed, or already dispatched). Raises NotFoundError when the booking
    or what the invoice needs is missing, and InvoiceDispatchError when the
    email could not be delivered.
    """
    now = now or utc_now()
    kind = get_kind(BookingType.SITE)

    booking = await db.get(Booking, booking_id, populate_existing=True)
    if booking is None:
        raise NotFoundError("Booking", booking_id)
    if booking.status != BookingStatus.CONFIRMED or booking.invoice_dispatched_at is not None:
        return False

    asset, centre = await load_asset_chain(db, kind, booking)
    if asset is None or centre is None:
        raise NotFoundError("Site or centre for booking", booking.booking_number)

    customer = await db.get(User, booking.customer_id)
    if customer is None:
        raise NotFoundError("Customer for booking", booking.booking_number)
    if not customer.email:
        raise InvoiceDispatchError(f"Customer {customer.id} has no email address")

    profile = (
        await db.execute(select(CustomerProfile).where(CustomerProfile.user_id == customer.id).limit(1))
    ).scalar_one_or_none()

    due_date = None
    if booking.payment_method == PaymentMethod.INVOICE and booking.approved_at is not None:
        due_date = payment_due_date(as_utc(booking.approved_at)).date()

    notice = InvoiceNotice(
        booking_number=booking.booking_number,
        customer_name=customer.name or "Customer",
        customer_email=customer.email,
        centre_name=centre.name,
        asset_label=asset.label,
        start_date=booking.start_date,
        end_date=booking.end_date,
        total_amount_cents=booking.total_amount_cents,
        gst_amount_cents=booking.gst_amount_cents,
        gst_percentage=booking.gst_percentage,
        paid=booking.paid_at is not None,
        due_date=due_date,
        company_name=profile.company_name if profile else None,
        abn=profile.abn if profile else None,
    )
    pdf = EmailAttachment(
        filename=invoice_filename(booking.booking_number),
        content=build_invoice_pdf(notice, issued_on=now.date()),
    )
    if not await send_invoice_email(notice, [pdf]):
        raise InvoiceDispatchError(f"Invoice email for booking {booking.booking_number} was not delivered")

    await db.execute(
        update(Booking)
        .where(Booking.id == booking.id)
        .values(invoice_dispatched_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info("Invoice dispatched for booking %s", booking.booking_number)
    return True


async def drain_invoice_outbox(
    db: AsyncSession,
    max_attempts: int | None = None,
    now: datetime | None = None,
) -> DrainResult:
    """Send invoices for undispatched outbox rows that still have attempts left."""
    max_attempts = max_attempts or settings.invoice_outbox_max_attempts
    now = now or utc_now()
    result = DrainResult()

    rows = (
        await db.execute(
            select(InvoiceOutbox.id, InvoiceOutbox.booking_id, InvoiceOutbox.attempts)
            .where(InvoiceOutbox.dispatched_at.is_(None), InvoiceOutbox.attempts < max_attempts)
            .order_by(InvoiceOutbox.id)
        )
    ).all()
    for entry_id, booking_id, attempts in rows:
        try:
            await dispatch_invoice_if_required(db, booking_id, now=now)
        except (InvoiceDispatchError, NotFoundError) as exc:
            await db.rollback()
            attempts += 1
            values = {"attempts": attempts, "last_error": str(exc)}
            result.failed += 1
            if attempts >= max_attempts:
                logger.error("Giving up on invoice for booking %s after %d attempts: %s", booking_id, attempts, exc)
            else:
                logger.warning("Invoice dispatch for booking %s failed (attempt %d): %s", booking_id, attempts, exc)
        else:
            values = {"dispatched_at": now}
            result.dispatched += 1

        await db.execute(update(InvoiceOutbox).where(InvoiceOutbox.id == entry_id).values(**values))
        await db.commit()

    if result.dispatched or result.failed:
        logger.info("Invoice outbox drained: %d dispatched, %d failed", result.dispatched, result.failed)
    return result
