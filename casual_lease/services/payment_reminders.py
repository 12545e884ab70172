"""Payment reminders for unpaid invoice bookings.

An approved invoice booking is due ``payment_grace_days`` (14) after approval.
Reminders go out at three points relative to that due date:

- upcoming: exactly 7 days before
- due:      within a day either side of the due date
- overdue:  exactly 7 days after

The scan runs daily, so each tier is hit on one run. A booking reminded in
the last 24 hours is skipped whatever its tier. A failed send leaves
``last_reminder_sent`` alone so the next run can retry.
"""

import contextlib
import enum
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from html import escape

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from casual_lease.core.config import settings
from casual_lease.core.time import as_utc, utc_now
from casual_lease.models.booking import BookingColumns, BookingStatus, PaymentMethod
from casual_lease.models.centre import ShoppingCentre
from casual_lease.models.user import User
from casual_lease.services.booking_kinds import BOOKING_KINDS, BookingKind
from casual_lease.services.email import send_email
from casual_lease.services.notifications import format_date, format_money, wrap_html

logger = logging.getLogger(__name__)

DEDUP_WINDOW = timedelta(hours=24)
UPCOMING_DAYS_BEFORE = 7
OVERDUE_DAYS_AFTER = 7


class ReminderTier(enum.StrEnum):
    UPCOMING = "upcoming"
    DUE = "due"
    OVERDUE = "overdue"


# Subject prefix, urgency colour (orange -> red -> dark red)
TIER_STYLE: dict[ReminderTier, tuple[str, str]] = {
    ReminderTier.UPCOMING: ("Payment Due Soon", "#ff9800"),
    ReminderTier.DUE: ("Payment Due", "#f44336"),
    ReminderTier.OVERDUE: ("Payment Overdue", "#b71c1c"),
}


@dataclass
class ReminderRunResult:
    sent: int = 0
    failed: int = 0


@dataclass
class ReminderCandidate:
    """An unpaid invoice booking joined with what the email needs."""

    kind: BookingKind
    booking: BookingColumns
    customer_name: str | None
    customer_email: str | None
    centre_name: str
    asset_label: str


def payment_due_date(approved_at: datetime) -> datetime:
    return approved_at + timedelta(days=settings.payment_grace_days)


def days_until_due(due_date: datetime, now: datetime) -> int:
    """Whole days until the due date, floored (negative once overdue)."""
    return math.floor((due_date - now) / timedelta(days=1))


def tier_for_days(days: int) -> ReminderTier | None:
    if days == UPCOMING_DAYS_BEFORE:
        return ReminderTier.UPCOMING
    if -1 <= days <= 1:
        return ReminderTier.DUE
    if days == -OVERDUE_DAYS_AFTER:
        return ReminderTier.OVERDUE
    return None


def classify_reminder(approved_at: datetime, now: datetime) -> ReminderTier | None:
    """Which reminder (if any) an invoice approved at ``approved_at`` needs at ``now``."""
    return tier_for_days(days_until_due(payment_due_date(as_utc(approved_at)), as_utc(now)))


def recently_reminded(last_reminder_sent: datetime | None, now: datetime) -> bool:
    if last_reminder_sent is None:
        return False
    return as_utc(now) - as_utc(last_reminder_sent) < DEDUP_WINDOW


def render_reminder_email(
    candidate: ReminderCandidate, tier: ReminderTier, due_date: datetime, now: datetime
) -> tuple[str, str]:
    """Return (subject, html) for a reminder of the given tier."""
    booking = candidate.booking
    title, colour = TIER_STYLE[tier]
    days = days_until_due(due_date, now)

    if tier == ReminderTier.UPCOMING:
        urgency = f"Your invoice is due in <strong>{days} days</strong>. Please arrange payment before the due date."
    elif tier == ReminderTier.DUE:
        urgency = "Your invoice is <strong>due now</strong>. Please pay today to keep your booking in good standing."
    else:
        overdue = -days
        urgency = (
            f"Your payment is now <strong>{overdue} day{'s' if overdue != 1 else ''} overdue</strong>. "
            "Please pay immediately to avoid late fees."
        )

    body = f"""
      <h2 style="color: #123047;">{title}</h2>
      <p>Dear {escape(candidate.customer_name or 'Valued Customer')},</p>
      <div style="background-color: {colour}22; padding: 15px; border-left: 4px solid {colour}; margin: 20px 0;">
        <p style="margin: 0; color: #333;">{urgency}</p>
      </div>
      <div style="background-color: #f5f7fa; padding: 20px; border-radius: 8px; margin: 20px 0;">
        <h3 style="margin-top: 0; color: #123047;">Invoice Details</h3>
        <p style="margin: 5px 0;"><strong>Invoice Number:</strong> {booking.booking_number}</p>
        <p style="margin: 5px 0;"><strong>Location:</strong> {escape(candidate.centre_name)}</p>
        <p style="margin: 5px 0;"><strong>Asset:</strong> {escape(candidate.asset_label)}</p>
        <p style="margin: 5px 0;"><strong>Dates:</strong> {format_date(booking.start_date)} - {format_date(booking.end_date)}</p>
        <p style="margin: 5px 0;"><strong>Total Amount:</strong> {format_money(booking.total_with_gst_cents)}</p>
        <p style="margin: 5px 0;"><strong>Due Date:</strong> {format_date(due_date.date())}</p>
      </div>
      <p>Please use <strong>{booking.booking_number}</strong> as your payment reference.</p>
      <p>If you have already made payment, please disregard this reminder.</p>
    """
    subject = f"{title}: Invoice {booking.booking_number}"
    return subject, wrap_html(body)


async def _load_candidates(db: AsyncSession, kind: BookingKind) -> list[ReminderCandidate]:
    """Unpaid, confirmed invoice bookings of one kind with customer and centre."""
    model, asset_model = kind.model, kind.asset_model
    result = await db.execute(
        select(model, User.name, User.email, asset_model, ShoppingCentre.name)
        .join(User, User.id == model.customer_id)
        .join(asset_model, asset_model.id == model.asset_id)
        .join(ShoppingCentre, ShoppingCentre.id == asset_model.centre_id)
        .where(
            model.payment_method == PaymentMethod.INVOICE,
            model.paid_at.is_(None),
            model.status == BookingStatus.CONFIRMED,
        )
        .order_by(model.id)
    )
    return [
        ReminderCandidate(
            kind=kind,
            booking=booking,
            customer_name=customer_name,
            customer_email=customer_email,
            centre_name=centre_name,
            asset_label=asset.label,
        )
        for booking, customer_name, customer_email, asset, centre_name in result.all()
    ]


async def _remind(db: AsyncSession, candidate: ReminderCandidate, now: datetime) -> bool | None:
    """Send one reminder if due. Returns None if nothing was due, else whether it sent."""
    booking = candidate.booking
    if booking.approved_at is None or not candidate.customer_email:
        return None
    if recently_reminded(booking.last_reminder_sent, now):
        return None

    due_date = payment_due_date(as_utc(booking.approved_at))
    tier = tier_for_days(days_until_due(due_date, now))
    if tier is None:
        return None

    subject, html = render_reminder_email(candidate, tier, due_date, now)
    try:
        sent = await send_email(candidate.customer_email, subject, html)
    except Exception:
        logger.exception("Error sending %s reminder for booking %s", tier.value, booking.booking_number)
        return False

    if not sent:
        logger.error("Failed to send %s reminder for booking %s", tier.value, booking.booking_number)
        return False

    model = candidate.kind.model
    await db.execute(
        update(model)
        .where(model.id == booking.id)
        .values(last_reminder_sent=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info(
        "Sent %s reminder for booking %s (due %s)", tier.value, booking.booking_number, due_date.date().isoformat()
    )
    return True


async def send_payment_reminders(db: AsyncSession, now: datetime | None = None) -> ReminderRunResult:
    """Scan all unpaid invoice bookings and send whatever reminders are due.

    Never raises: a database failure ends the run early and the counts so
    far are returned.
    """
    now = as_utc(now) if now else utc_now()
    result = ReminderRunResult()

    try:
        for kind in BOOKING_KINDS.values():
            for candidate in await _load_candidates(db, kind):
                outcome = await _remind(db, candidate, now)
                if outcome is True:
                    result.sent += 1
                elif outcome is False:
                    result.failed += 1
    except Exception:
        logger.exception(
            "Payment reminder run aborted after %d sent, %d failed", result.sent, result.failed
        )
        with contextlib.suppress(SQLAlchemyError):
            await db.rollback()
        return result

    logger.info("Payment reminders completed: %d sent, %d failed", result.sent, result.failed)
    return result
