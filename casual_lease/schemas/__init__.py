"""Pydantic schemas for API serialisation."""

from pydantic import BaseModel, ConfigDict

from casual_lease.models.booking import RefundStatus

# --- Cancellation ---


class CancelBookingRequest(BaseModel):
    reason: str | None = None
    perform_refund: bool = False


class CancellationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    success: bool
    booking_number: str
    refund_status: RefundStatus | None
    already_cancelled: bool = False


# --- Payment reminders ---


class ReminderRunOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sent: int
    failed: int


# --- Payments ---


class CheckoutSessionOut(BaseModel):
    session_id: str
    url: str | None


class WebhookAck(BaseModel):
    received: bool = True
