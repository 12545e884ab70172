"""Ledger transaction model.

One row per money movement. A booking gets one ``booking`` row when payment
is captured and at most one ``cancellation`` row (all amounts negated) when it
is cancelled, so a fully reversed booking sums to zero.
"""

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from casual_lease.models.base import Base, TimestampMixin, enum_values
from casual_lease.models.booking import BookingType


class TransactionType(enum.StrEnum):
    BOOKING = "booking"
    CANCELLATION = "cancellation"
    MONTHLY_FEE = "monthly_fee"


class Transaction(TimestampMixin, Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(primary_key=True)
    # Polymorphic reference: booking_id points into the table picked by booking_type
    booking_type: Mapped[BookingType] = mapped_column(
        Enum(BookingType, name="booking_type", values_callable=enum_values),
        default=BookingType.SITE,
        nullable=False,
    )
    booking_id: Mapped[int] = mapped_column(Integer, nullable=False)
    owner_id: Mapped[int] = mapped_column(ForeignKey("owners.id", ondelete="CASCADE"), nullable=False, index=True)
    type: Mapped[TransactionType] = mapped_column(
        Enum(TransactionType, name="transaction_type", values_callable=enum_values),
        nullable=False,
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    gst_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    gst_percentage: Mapped[float] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=False)
    owner_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    platform_fee_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    remitted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    remitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    gst_adjustment_note_number: Mapped[str | None] = mapped_column(String(60))

    __table_args__ = (Index("ix_transactions_booking", "booking_type", "booking_id"),)

    def __repr__(self) -> str:
        return f"<Transaction {self.type.value} {self.amount_cents}c booking={self.booking_type.value}:{self.booking_id}>"
