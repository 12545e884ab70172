"""Admin routes: booking cancellation and the manual payment reminder run."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from casual_lease.core.database import get_db
from casual_lease.core.dependencies import require_admin
from casual_lease.models.booking import BookingType
from casual_lease.models.user import User
from casual_lease.schemas import CancelBookingRequest, CancellationOut, ReminderRunOut
from casual_lease.services.cancellation import cancel_booking
from casual_lease.services.errors import BookingConflictError, NotFoundError
from casual_lease.services.payment_reminders import send_payment_reminders

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/bookings/{booking_type}/{booking_id}/cancel", response_model=CancellationOut)
async def admin_cancel_booking(
    booking_type: BookingType,
    booking_id: int,
    body: CancelBookingRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await cancel_booking(
            db,
            booking_id=booking_id,
            admin_user_id=admin.id,
            reason=body.reason,
            perform_refund=body.perform_refund,
            booking_type=booking_type,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from None
    except BookingConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from None


@router.post("/payment-reminders/run", response_model=ReminderRunOut)
async def run_payment_reminders(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Run the reminder scan now instead of waiting for the scheduler."""
    return await send_payment_reminders(db)
