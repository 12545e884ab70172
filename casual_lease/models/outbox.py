"""Payment webhook bookkeeping: delivery dedupe and the invoice outbox."""

from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from casual_lease.models.base import Base, TimestampMixin, enum_values
from casual_lease.models.booking import BookingType


class ProcessedCheckoutSession(TimestampMixin, Base):
    """A checkout session whose completion has already been applied.

    The unique session id makes webhook processing idempotent under
    at-least-once delivery: it is inserted in the same transaction as the
    payment side effects, so a duplicate either sees the row or fails to commit.
    """

    __tablename__ = "processed_checkout_sessions"

    id: Mapped[int] = mapped_column(primary_key=True)
    session_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    payment_intent_id: Mapped[str | None] = mapped_column(String(255))
    booking_type: Mapped[BookingType] = mapped_column(
        Enum(BookingType, name="booking_type", values_callable=enum_values),
        nullable=False,
    )
    booking_id: Mapped[int] = mapped_column(Integer, nullable=False)

    def __repr__(self) -> str:
        return f"<ProcessedCheckoutSession {self.session_id}>"


class InvoiceOutbox(TimestampMixin, Base):
    """Invoice dispatch request, drained with retries by the Celery worker."""

    __tablename__ = "invoice_outbox"

    id: Mapped[int] = mapped_column(primary_key=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    attempts: Mapped[int] = mapped_column(default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text)
    dispatched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<InvoiceOutbox booking={self.booking_id} attempts={self.attempts}>"
