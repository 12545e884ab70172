"""Customer booking routes: Stripe checkout for card-paid bookings."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from casual_lease.core.database import get_db
from casual_lease.core.dependencies import get_current_user
from casual_lease.models.booking import BookingStatus, BookingType, PaymentMethod
from casual_lease.models.user import User
from casual_lease.schemas import CheckoutSessionOut
from casual_lease.services.booking_kinds import get_booking, get_kind, load_asset_chain
from casual_lease.services.stripe_service import StripeNotConfiguredError, create_checkout_session

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("/{booking_type}/{booking_id}/checkout", response_model=CheckoutSessionOut)
async def start_checkout(
    booking_type: BookingType,
    booking_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    kind = get_kind(booking_type)
    booking = await get_booking(db, kind, booking_id)
    if booking is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    if booking.customer_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your booking")

    if booking.payment_method != PaymentMethod.STRIPE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="This booking does not use Stripe payment"
        )
    if booking.paid_at is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Booking is already paid")
    if booking.status in (BookingStatus.CANCELLED, BookingStatus.REJECTED):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot pay for a cancelled or rejected booking"
        )

    asset, centre = await load_asset_chain(db, kind, booking)

    try:
        return await create_checkout_session(
            booking_id=booking.id,
            booking_number=booking.booking_number,
            customer_email=user.email or "",
            centre_name=centre.name if centre else "Shopping Centre",
            asset_label=asset.label if asset else "",
            total_amount_cents=booking.total_with_gst_cents,
            start_date=booking.start_date,
            end_date=booking.end_date,
            booking_type=kind.booking_type,
        )
    except StripeNotConfiguredError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Card payments are not available"
        ) from None
