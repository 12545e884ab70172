"""Stripe checkout reconciliation.

Applies a ``checkout.session.completed`` event to the booking it paid for.
The booking table is picked by the ``bookingType`` metadata (``site`` when
absent, for sessions created before the field existed).

Webhook delivery is at-least-once. Each checkout session is recorded in
``processed_checkout_sessions`` in the same transaction as its side effects,
so a redelivered event is recognised and skipped rather than double-ledgered.
Malformed events and unknown bookings are logged and ignored; this never raises.
"""

import enum
import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

import stripe
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from casual_lease.core.time import utc_now
from casual_lease.models.audit import BookingStatusHistory
from casual_lease.models.booking import BookingStatus
from casual_lease.models.outbox import InvoiceOutbox, ProcessedCheckoutSession
from casual_lease.models.transaction import Transaction, TransactionType
from casual_lease.services.booking_kinds import BookingKind, get_booking, get_kind, load_asset_chain

logger = logging.getLogger(__name__)

PAYMENT_ACTOR_NAME = "Stripe Payment"


class ReconciliationOutcome(enum.StrEnum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"  # session already processed
    IGNORED = "ignored"      # malformed or unknown booking
    FAILED = "failed"        # database error - safe to redeliver


def _parse_booking_id(raw: Any) -> int | None:
    try:
        booking_id = int(raw)
    except (TypeError, ValueError):
        return None
    return booking_id if booking_id > 0 else None


def _payment_intent_id(session: Mapping[str, Any]) -> str | None:
    payment_intent = session.get("payment_intent")
    # Expanded sessions carry the whole PaymentIntent object
    if isinstance(payment_intent, Mapping):
        return payment_intent.get("id")
    return payment_intent or None


async def reconcile_checkout_completed(
    db: AsyncSession,
    session: stripe.StripeObject | Mapping[str, Any],
    now: datetime | None = None,
) -> ReconciliationOutcome:
    """Mark the booking behind a completed checkout session as paid."""
    now = now or utc_now()
    if isinstance(session, stripe.StripeObject):
        # SDK objects are not dicts; work on the plain payload
        session = session.to_dict()
    session_id = session.get("id")
    metadata = session.get("metadata") or {}

    booking_id = _parse_booking_id(metadata.get("bookingId"))
    if not session_id or booking_id is None:
        logger.warning("Checkout session %s has no usable bookingId in metadata - ignoring", session_id)
        return ReconciliationOutcome.IGNORED

    try:
        kind = get_kind(metadata.get("bookingType") or "site")
    except ValueError:
        logger.warning("Checkout session %s has unknown bookingType %r - ignoring", session_id, metadata.get("bookingType"))
        return ReconciliationOutcome.IGNORED

    try:
        return await _apply(db, kind, booking_id, session_id, _payment_intent_id(session), now)
    except IntegrityError:
        # A concurrent delivery of the same session committed first
        await db.rollback()
        logger.info("Checkout session %s was processed concurrently - skipping", session_id)
        return ReconciliationOutcome.DUPLICATE
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to reconcile checkout session %s", session_id)
        return ReconciliationOutcome.FAILED


async def _apply(
    db: AsyncSession,
    kind: BookingKind,
    booking_id: int,
    session_id: str,
    payment_intent_id: str | None,
    now: datetime,
) -> ReconciliationOutcome:
    already = await db.execute(
        select(ProcessedCheckoutSession.id).where(ProcessedCheckoutSession.session_id == session_id)
    )
    if already.scalar_one_or_none() is not None:
        logger.info("Checkout session %s already processed - skipping", session_id)
        return ReconciliationOutcome.DUPLICATE

    booking = await get_booking(db, kind, booking_id)
    if booking is None:
        logger.warning("Checkout session %s refers to unknown %s booking %s", session_id, kind.booking_type, booking_id)
        return ReconciliationOutcome.IGNORED

    model = kind.model

    # paid_at is set at most once
    await db.execute(
        update(model)
        .where(model.id == booking.id)
        .values(
            paid_at=func.coalesce(model.paid_at, now),
            stripe_payment_intent_id=payment_intent_id or booking.stripe_payment_intent_id,
        )
        .execution_options(synchronize_session=False)
    )

    # Only pending advances; an admin may already have confirmed, and cancelled is terminal
    confirm = await db.execute(
        update(model)
        .where(model.id == booking.id, model.status == BookingStatus.PENDING)
        .values(status=BookingStatus.CONFIRMED)
        .execution_options(synchronize_session=False)
    )
    status_changed = confirm.rowcount == 1

    if booking.status == BookingStatus.CANCELLED:
        logger.warning("Payment received for cancelled booking %s - refund needs review", booking.booking_number)

    if status_changed and kind.records_payment_history:
        db.add(
            BookingStatusHistory(
                booking_type=kind.booking_type,
                booking_id=booking.id,
                previous_status=BookingStatus.PENDING,
                new_status=BookingStatus.CONFIRMED,
                changed_by=None,
                changed_by_name=PAYMENT_ACTOR_NAME,
                reason=f"Payment received via Stripe (PI: {payment_intent_id})",
            )
        )

    _, centre = await load_asset_chain(db, kind, booking)
    if centre is None:
        logger.error(
            "No centre/owner for %s booking %s - payment recorded without ledger entry",
            kind.booking_type,
            booking.booking_number,
        )
    else:
        db.add(
            Transaction(
                booking_type=kind.booking_type,
                booking_id=booking.id,
                owner_id=centre.owner_id,
                type=TransactionType.BOOKING,
                amount_cents=booking.total_amount_cents,
                gst_amount_cents=booking.gst_amount_cents,
                gst_percentage=booking.gst_percentage,
                owner_amount_cents=booking.owner_amount_cents,
                platform_fee_cents=booking.platform_fee_cents,
                remitted=False,
            )
        )

    if kind.dispatches_invoice:
        db.add(InvoiceOutbox(booking_id=booking.id))

    db.add(
        ProcessedCheckoutSession(
            session_id=session_id,
            payment_intent_id=payment_intent_id,
            booking_type=kind.booking_type,
            booking_id=booking.id,
        )
    )
    await db.commit()
    await db.refresh(booking)

    logger.info(
        "%s booking %s marked as paid (PI: %s)%s",
        kind.booking_type,
        booking.booking_number,
        payment_intent_id,
        " and confirmed" if status_changed else "",
    )
    return ReconciliationOutcome.APPLIED
