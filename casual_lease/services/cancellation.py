"""Booking cancellation service.

Cancels a booking and reconciles everything hanging off it: status history,
ledger reversal, Stripe refund, audit log, and the customer notice.

The booking status change is committed first and on its own. Every later
step commits separately and can only add to what is already committed - a
failed refund or email never un-cancels a booking. Refund failures leave the
booking flagged ``pending`` so an administrator can follow up.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from casual_lease.core.time import utc_now
from casual_lease.models.audit import AuditLog, BookingStatusHistory
from casual_lease.models.booking import BookingColumns, BookingStatus, BookingType, PaymentMethod, RefundStatus
from casual_lease.models.centre import ShoppingCentre
from casual_lease.models.transaction import Transaction, TransactionType
from casual_lease.models.user import CustomerProfile, User
from casual_lease.services.booking_kinds import BookingKind, get_booking, get_kind, load_asset_chain
from casual_lease.services.errors import BookingConflictError, NotFoundError
from casual_lease.services.notifications import CancellationNotice, send_booking_cancellation_email
from casual_lease.services.stripe_service import create_refund

logger = logging.getLogger(__name__)

DEFAULT_REASON = "Cancelled by administrator"


@dataclass
class CancellationResult:
    success: bool
    booking_number: str
    refund_status: RefundStatus | None
    already_cancelled: bool = False


def determine_refund_status(
    paid: bool,
    payment_method: PaymentMethod,
    perform_refund: bool,
    now: datetime,
) -> tuple[RefundStatus, datetime | None]:
    """Decide the refund status before anything is mutated.

    Returns (refund_status, refund_pending_at). A card payment refunded now
    starts ``pending`` and is settled after the Stripe call; one left for
    later is ``pending`` with the pending timestamp set.
    """
    if not paid:
        return RefundStatus.NOT_REQUIRED, None
    if payment_method == PaymentMethod.INVOICE:
        return RefundStatus.MANUAL, None
    if perform_refund:
        return RefundStatus.PENDING, None
    return RefundStatus.PENDING, now


def credit_note_number(booking_number: str) -> str:
    return f"CN-{booking_number}"


def refund_idempotency_key(kind: BookingKind, booking_id: int) -> str:
    return f"refund:{kind.booking_type.value}:{booking_id}"


async def cancel_booking(
    db: AsyncSession,
    booking_id: int,
    admin_user_id: int,
    reason: str | None = None,
    perform_refund: bool = False,
    booking_type: BookingType | str = BookingType.SITE,
    now: datetime | None = None,
) -> CancellationResult:
    """Cancel a booking on behalf of an administrator.

    Raises NotFoundError if the booking, its asset, centre, customer, or the
    administrator does not exist, and BookingConflictError if the booking's
    status changed between reading and cancelling it. All other failures are
    logged and absorbed.
    """
    now = now or utc_now()
    kind = get_kind(booking_type)

    # --- Context ---
    booking = await get_booking(db, kind, booking_id)
    if booking is None:
        raise NotFoundError("Booking", booking_id)

    asset, centre = await load_asset_chain(db, kind, booking)
    if asset is None:
        raise NotFoundError("Asset for booking", booking.booking_number)
    if centre is None:
        raise NotFoundError("Centre for asset", asset.id)

    customer = await db.get(User, booking.customer_id)
    if customer is None:
        raise NotFoundError("Customer for booking", booking.booking_number)

    admin = await db.get(User, admin_user_id)
    if admin is None:
        raise NotFoundError("Administrator", admin_user_id)

    profile_result = await db.execute(
        select(CustomerProfile).where(CustomerProfile.user_id == customer.id).limit(1)
    )
    profile = profile_result.scalar_one_or_none()

    if booking.status == BookingStatus.CANCELLED:
        logger.info("Booking %s is already cancelled - nothing to do", booking.booking_number)
        return CancellationResult(
            success=True,
            booking_number=booking.booking_number,
            refund_status=booking.refund_status,
            already_cancelled=True,
        )

    previous_status = booking.status
    customer_id = customer.id
    booking_number = booking.booking_number

    # --- Refund decision + status transition (the authoritative commit) ---
    refund_status, refund_pending_at = determine_refund_status(
        paid=booking.paid_at is not None,
        payment_method=booking.payment_method,
        perform_refund=perform_refund,
        now=now,
    )
    await _mark_cancelled(db, kind, booking, previous_status, reason, refund_status, refund_pending_at, now)

    # --- Status history ---
    db.add(
        BookingStatusHistory(
            booking_type=kind.booking_type,
            booking_id=booking.id,
            previous_status=previous_status,
            new_status=BookingStatus.CANCELLED,
            changed_by=admin.id,
            changed_by_name=admin.name or "Unknown",
            reason=reason or DEFAULT_REASON,
        )
    )
    await db.commit()

    # --- Ledger reversal ---
    await _reverse_booking_transaction(db, kind, booking, centre)

    # --- Stripe refund ---
    if (
        perform_refund
        and booking.payment_method == PaymentMethod.STRIPE
        and booking.paid_at is not None
        and booking.stripe_payment_intent_id
    ):
        refund_status = await _refund_card_payment(db, kind, booking, now)

    notice = _build_notice(
        booking=booking,
        customer=customer,
        profile=profile,
        centre=centre,
        asset_label=asset.label,
        reason=reason,
        refund_status=refund_status,
    )

    # --- Audit log (best-effort) ---
    await _write_audit_log(
        db,
        admin_user_id=admin.id,
        booking_id=booking.id,
        booking_number=booking_number,
        changes={
            "bookingNumber": booking_number,
            "previousStatus": previous_status.value,
            "newStatus": BookingStatus.CANCELLED.value,
            "reason": reason,
            "refundStatus": refund_status.value,
            "performRefund": perform_refund,
        },
    )

    # --- Customer notice (best-effort) ---
    if notice is None:
        logger.warning("Customer %s has no email - cancellation notice for %s not sent", customer_id, booking_number)
    else:
        await _notify_customer(notice)

    return CancellationResult(success=True, booking_number=booking_number, refund_status=refund_status)


async def _mark_cancelled(
    db: AsyncSession,
    kind: BookingKind,
    booking: BookingColumns,
    expected_status: BookingStatus,
    reason: str | None,
    refund_status: RefundStatus,
    refund_pending_at: datetime | None,
    now: datetime,
) -> None:
    """Compare-and-swap the booking into ``cancelled`` and commit.

    Guarded on the status we read so a concurrent writer (another
    cancellation, a payment webhook) is detected instead of overwritten.
    """
    model = kind.model
    values: dict = {
        "status": BookingStatus.CANCELLED,
        "cancelled_at": now,
        "refund_status": refund_status,
        "refund_pending_at": refund_pending_at,
    }
    if reason:
        values["admin_comments"] = func.coalesce(model.admin_comments, "") + f"\n[Cancelled] {reason}"

    result = await db.execute(
        update(model)
        .where(model.id == booking.id, model.status == expected_status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        booking_number = booking.booking_number
        await db.rollback()
        raise BookingConflictError(
            f"Booking {booking_number} changed status while being cancelled; reload and retry"
        )

    await db.commit()
    await db.refresh(booking)
    logger.info(
        "Booking %s cancelled (%s -> cancelled, refund %s)",
        booking.booking_number,
        expected_status.value,
        refund_status.value,
    )


async def _reverse_booking_transaction(
    db: AsyncSession,
    kind: BookingKind,
    booking: BookingColumns,
    centre: ShoppingCentre,
) -> Transaction | None:
    """Insert the negating ``cancellation`` row for the booking's ledger entry.

    Returns None (and logs) when the booking was never ledgered or already reversed.
    """
    txn_result = await db.execute(
        select(Transaction)
        .where(
            Transaction.booking_type == kind.booking_type,
            Transaction.booking_id == booking.id,
            Transaction.type.in_([TransactionType.BOOKING, TransactionType.CANCELLATION]),
        )
        .order_by(Transaction.id)
    )
    ledger = txn_result.scalars().all()
    original = next((t for t in ledger if t.type == TransactionType.BOOKING), None)

    if original is None:
        logger.warning(
            "No booking transaction found for booking %s - skipping reversal", booking.booking_number
        )
        return None
    if any(t.type == TransactionType.CANCELLATION for t in ledger):
        logger.warning("Booking %s already has a reversal transaction - skipping", booking.booking_number)
        return None

    reversal = Transaction(
        booking_type=kind.booking_type,
        booking_id=booking.id,
        owner_id=centre.owner_id,
        type=TransactionType.CANCELLATION,
        amount_cents=-original.amount_cents,
        gst_amount_cents=-original.gst_amount_cents,
        gst_percentage=original.gst_percentage,
        owner_amount_cents=-original.owner_amount_cents,
        platform_fee_cents=-original.platform_fee_cents,
        remitted=False,
        gst_adjustment_note_number=credit_note_number(booking.booking_number),
    )
    db.add(reversal)
    await db.commit()
    return reversal


async def _refund_card_payment(
    db: AsyncSession,
    kind: BookingKind,
    booking: BookingColumns,
    now: datetime,
) -> RefundStatus:
    """Ask Stripe for a full refund and record the outcome on the booking."""
    try:
        await create_refund(
            booking.stripe_payment_intent_id,
            idempotency_key=refund_idempotency_key(kind, booking.id),
        )
    except Exception:
        logger.exception(
            "Stripe refund failed for booking %s - flagged for manual follow-up", booking.booking_number
        )
        values = {"refund_status": RefundStatus.PENDING, "refund_pending_at": now}
    else:
        values = {"refund_status": RefundStatus.PROCESSED}

    await db.execute(
        update(kind.model)
        .where(kind.model.id == booking.id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    await db.refresh(booking)
    return values["refund_status"]


async def _write_audit_log(
    db: AsyncSession,
    admin_user_id: int,
    booking_id: int,
    booking_number: str,
    changes: dict,
) -> None:
    try:
        db.add(
            AuditLog(
                user_id=admin_user_id,
                action="booking_cancel",
                entity_type="booking",
                entity_id=booking_id,
                changes=json.dumps(changes),
            )
        )
        await db.commit()
    except SQLAlchemyError:
        logger.exception("Failed to write audit log for cancellation of booking %s", booking_number)
        await db.rollback()


def _build_notice(
    booking: BookingColumns,
    customer: User,
    profile: CustomerProfile | None,
    centre: ShoppingCentre,
    asset_label: str,
    reason: str | None,
    refund_status: RefundStatus,
) -> CancellationNotice | None:
    """Snapshot what the email needs; None when the customer has no address."""
    if not customer.email:
        return None

    return CancellationNotice(
        booking_number=booking.booking_number,
        customer_name=customer.name or "Customer",
        customer_email=customer.email,
        centre_name=centre.name,
        asset_label=asset_label,
        start_date=booking.start_date,
        end_date=booking.end_date,
        total_with_gst_cents=booking.total_with_gst_cents,
        company_name=profile.company_name if profile else None,
        trading_name=profile.trading_name if profile else None,
        cancellation_reason=reason,
        refund_status=refund_status,
    )


async def _notify_customer(notice: CancellationNotice) -> None:
    try:
        sent = await send_booking_cancellation_email(notice)
    except Exception:
        logger.exception("Failed to send cancellation email for booking %s", notice.booking_number)
        return

    if not sent:
        logger.warning("Cancellation email for booking %s was not delivered", notice.booking_number)
